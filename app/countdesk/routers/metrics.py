from fastapi import APIRouter, Response

from app.countdesk.core.metrics import metrics

router = APIRouter()


@router.get("/ops/metrics", include_in_schema=False)
def get_metrics():
    snapshot = metrics.render()
    return Response(content=snapshot.content, media_type=snapshot.content_type, headers={"Cache-Control": "no-store"})
