from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from app.countdesk.core.config import settings
from app.countdesk.core.logging import log_json
from app.countdesk.core.metrics import metrics
from app.countdesk.gateways.base import ExternalSystemError, GatewayError, InventoryGateway
from app.countdesk.gateways.retry import call_with_backoff

logger = logging.getLogger("countdesk.inventory_commit")


class CatalogItemNotFound(Exception):
    def __init__(self, message: str, *, barcode: str, location_id: str | None = None):
        self.barcode = barcode
        self.location_id = location_id
        super().__init__(message)


@dataclass(frozen=True)
class CommitReceipt:
    barcode: str
    location_id: str | None
    delta: int
    applied: bool
    inventory_item_id: str | None = None


class InventoryCommitter:
    """Pushes a verified delta to the inventory system.

    A zero delta is a successful no-op and never reaches the gateway. Throttled
    adjustments are retried with linearly increasing waits; anything else the
    gateway raises surfaces as ``ExternalSystemError``.
    """

    def __init__(
        self,
        gateway: InventoryGateway,
        *,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        reason: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gateway = gateway
        self.max_attempts = settings.GATEWAY_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.backoff_seconds = settings.GATEWAY_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        self.reason = reason or settings.ADJUSTMENT_REASON
        self.sleep = sleep

    def _call(self, operation: str, func):
        return call_with_backoff(
            operation,
            func,
            max_attempts=self.max_attempts,
            backoff_seconds=self.backoff_seconds,
            sleep=self.sleep,
        )

    def commit(self, barcode: str, location_id: str | None, delta: int, *, source: str = "task") -> CommitReceipt:
        if delta == 0:
            metrics.record_inventory_commit(source=source, result="noop")
            return CommitReceipt(barcode=barcode, location_id=location_id, delta=0, applied=False)
        if not location_id:
            metrics.record_inventory_commit(source=source, result="not_found")
            raise CatalogItemNotFound("location is not mapped", barcode=barcode, location_id=location_id)

        try:
            item = self._call("resolve_item", lambda: self.gateway.resolve_item(barcode))
            if item is None:
                metrics.record_inventory_commit(source=source, result="not_found")
                raise CatalogItemNotFound(f"no catalog item for {barcode}", barcode=barcode, location_id=location_id)
            self._call(
                "adjust_stock",
                lambda: self.gateway.adjust_stock(item.inventory_item_id, location_id, delta, self.reason),
            )
        except ExternalSystemError:
            metrics.record_inventory_commit(source=source, result="error")
            raise
        except GatewayError as exc:
            metrics.record_inventory_commit(source=source, result="error")
            raise ExternalSystemError(exc.message, details=exc.details) from exc

        metrics.record_inventory_commit(source=source, result="applied")
        log_json(
            logger,
            {
                "event": "inventory_adjusted",
                "source": source,
                "barcode": barcode,
                "location_id": location_id,
                "delta": delta,
            },
        )
        return CommitReceipt(
            barcode=barcode,
            location_id=location_id,
            delta=delta,
            applied=True,
            inventory_item_id=item.inventory_item_id,
        )
