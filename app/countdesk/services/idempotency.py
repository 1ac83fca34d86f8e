import hashlib
import json
from dataclasses import dataclass
from datetime import datetime

from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from app.countdesk.core.error_catalog import AppError, ErrorCatalog
from app.countdesk.db.models import IdempotencyRecord
from app.countdesk.repos.idempotency import IdempotencyRepository


IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAY_HEADER = "X-Idempotency-Result"


@dataclass
class IdempotencyReplay:
    status_code: int
    response_body: dict


class IdempotencyContext:
    """Handle on an in-progress record; callers finish it with success or failure."""

    def __init__(self, record: IdempotencyRecord, repo: IdempotencyRepository):
        self._record = record
        self._repo = repo

    def _finish(self, state: str, status_code: int, response_body: dict) -> None:
        self._record.status_code = status_code
        self._record.response_body = json.dumps(response_body, default=str)
        self._record.state = state
        self._record.updated_at = datetime.utcnow()
        self._repo.save(self._record)

    def record_success(self, *, status_code: int, response_body: dict) -> None:
        self._finish("succeeded", status_code, response_body)

    def record_failure(self, *, status_code: int, response_body: dict) -> None:
        # the failing request may have left the session mid-transaction
        self._repo.db.rollback()
        self._finish("failed", status_code, response_body)


class IdempotencyService:
    def __init__(self, db):
        self.repo = IdempotencyRepository(db)

    @staticmethod
    def fingerprint(payload: object) -> str:
        payload_bytes = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(payload_bytes).hexdigest()

    def start(
        self,
        *,
        endpoint: str,
        method: str,
        idempotency_key: str,
        request_hash: str,
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        existing = self.repo.get_by_key(endpoint=endpoint, method=method, idempotency_key=idempotency_key)
        if existing:
            return self._handle_existing(existing, request_hash)

        record = IdempotencyRecord(
            endpoint=endpoint,
            method=method,
            idempotency_key=idempotency_key,
            request_hash=request_hash,
            state="in_progress",
            status_code=None,
            response_body=None,
        )
        try:
            record = self.repo.save(record)
        except IntegrityError:
            self.repo.db.rollback()
            return self._handle_existing(
                self.repo.get_by_key(endpoint=endpoint, method=method, idempotency_key=idempotency_key),
                request_hash,
            )

        return IdempotencyContext(record, self.repo), None

    def _handle_existing(
        self, existing: IdempotencyRecord | None, request_hash: str
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        if existing is not None and existing.request_hash != request_hash:
            raise AppError(ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD)
        if existing is None or existing.state == "in_progress" or existing.response_body is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        return None, IdempotencyReplay(
            status_code=existing.status_code,
            response_body=json.loads(existing.response_body),
        )


def extract_idempotency_key(headers) -> str | None:
    key = headers.get(IDEMPOTENCY_HEADER)
    return key.strip() if key and key.strip() else None


def start_for_request(db, request, payload: object) -> tuple[IdempotencyContext | None, JSONResponse | None]:
    """Begin an idempotent request when the caller sent an ``Idempotency-Key``.

    Returns the open context (also stored on ``request.state`` so error
    handlers can record failures) or a ready replay response.
    """
    key = extract_idempotency_key(request.headers)
    if key is None:
        return None, None
    context, replay = IdempotencyService(db).start(
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=key,
        request_hash=IdempotencyService.fingerprint(payload),
    )
    if replay:
        return None, JSONResponse(
            status_code=replay.status_code,
            content=replay.response_body,
            headers={REPLAY_HEADER: ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )
    request.state.idempotency = context
    return context, None
