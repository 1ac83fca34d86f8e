from __future__ import annotations

import logging
from dataclasses import dataclass

from app.countdesk.core.config import settings
from app.countdesk.core.error_catalog import AppError, ErrorCatalog
from app.countdesk.core.logging import log_json
from app.countdesk.db.models import LocationMapping
from app.countdesk.gateways.base import CatalogItem, GatewayError, InventoryGateway, ProductQuery, ProductVariant
from app.countdesk.gateways.retry import call_with_backoff
from app.countdesk.repos.locations import LocationRepository

logger = logging.getLogger("countdesk.catalog")


@dataclass
class StockLookup:
    item: CatalogItem
    location: str
    external_location_id: str
    available: int


class CatalogService:
    def __init__(self, db, gateway: InventoryGateway):
        self.db = db
        self.gateway = gateway
        self.locations = LocationRepository(db)

    def _call(self, operation: str, func):
        try:
            return call_with_backoff(
                operation,
                func,
                max_attempts=settings.GATEWAY_MAX_ATTEMPTS,
                backoff_seconds=settings.GATEWAY_BACKOFF_SECONDS,
            )
        except GatewayError as exc:
            raise AppError(
                ErrorCatalog.EXTERNAL_SYSTEM_ERROR,
                details={"message": exc.message, "operation": operation},
            ) from exc

    def list_locations(self) -> list[LocationMapping]:
        return self.locations.list_all()

    def sync_locations(self) -> list[LocationMapping]:
        external = self._call("list_locations", self.gateway.list_locations)
        for location in external:
            self.locations.upsert(location.name, location.external_id)
        self.db.commit()
        log_json(logger, {"event": "locations_synced", "count": len(external)})
        return self.locations.list_all()

    def product_types(self) -> list[str]:
        return self._call("list_product_types", self.gateway.list_product_types)

    def products(self, query: ProductQuery) -> list[ProductVariant]:
        return self._call("list_products", lambda: self.gateway.list_products(query))

    def lookup_stock(self, barcode: str, location: str) -> StockLookup:
        external_location_id = self.locations.external_id_for(location)
        if not external_location_id:
            raise AppError(ErrorCatalog.LOCATION_NOT_MAPPED, details={"location": location})
        item = self._call("resolve_item", lambda: self.gateway.resolve_item(barcode))
        if item is None:
            raise AppError(ErrorCatalog.CATALOG_ITEM_NOT_FOUND, details={"barcode": barcode})
        available = self._call(
            "read_stock",
            lambda: self.gateway.read_stock(item.inventory_item_id, external_location_id),
        )
        return StockLookup(
            item=item,
            location=location,
            external_location_id=external_location_id,
            available=available,
        )
