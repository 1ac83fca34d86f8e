from fastapi import FastAPI

from app.countdesk.api import api_router
from app.countdesk.core.config import settings
from app.countdesk.core.errors import setup_exception_handlers
from app.countdesk.core.logging import configure_logging
from app.countdesk.middleware.observability import ObservabilityMiddleware
from app.countdesk.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
