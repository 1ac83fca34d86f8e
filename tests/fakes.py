from __future__ import annotations

from dataclasses import dataclass, field

from app.countdesk.gateways.base import (
    CatalogItem,
    ExternalLocation,
    GatewayError,
    GatewayThrottled,
    InventoryGateway,
    ProductQuery,
    ProductVariant,
)


@dataclass
class AdjustCall:
    inventory_item_id: str
    location_id: str
    delta: int
    reason: str


@dataclass
class FakeGateway(InventoryGateway):
    """In-memory inventory system with scripted failures."""

    items: dict[str, CatalogItem] = field(default_factory=dict)
    stock: dict[tuple[str, str], int] = field(default_factory=dict)
    locations: list[ExternalLocation] = field(default_factory=list)
    products: list[ProductVariant] = field(default_factory=list)
    throttle_adjustments: int = 0
    fail_adjustments_for: set[str] = field(default_factory=set)
    adjust_calls: list[AdjustCall] = field(default_factory=list)
    resolve_calls: list[str] = field(default_factory=list)
    read_calls: list[tuple[str, str]] = field(default_factory=list)

    def add_item(self, barcode: str, *, name: str | None = None, product_type: str | None = None) -> CatalogItem:
        item = CatalogItem(
            internal_id=f"gid://shopify/ProductVariant/{barcode}",
            inventory_item_id=f"gid://shopify/InventoryItem/{barcode}",
            barcode=barcode,
            display_name=name or f"Item {barcode}",
            product_type=product_type,
        )
        self.items[barcode] = item
        return item

    def set_stock(self, barcode: str, location_id: str, quantity: int) -> None:
        self.stock[(self.items[barcode].inventory_item_id, location_id)] = quantity

    def resolve_item(self, code: str) -> CatalogItem | None:
        self.resolve_calls.append(code)
        return self.items.get(code)

    def read_stock(self, inventory_item_id: str, location_id: str) -> int:
        self.read_calls.append((inventory_item_id, location_id))
        return self.stock.get((inventory_item_id, location_id), 0)

    def adjust_stock(self, inventory_item_id: str, location_id: str, delta: int, reason: str) -> None:
        self.adjust_calls.append(AdjustCall(inventory_item_id, location_id, delta, reason))
        if self.throttle_adjustments > 0:
            self.throttle_adjustments -= 1
            raise GatewayThrottled()
        if inventory_item_id in self.fail_adjustments_for:
            raise GatewayError("adjustment rejected", details={"inventory_item_id": inventory_item_id})
        key = (inventory_item_id, location_id)
        self.stock[key] = self.stock.get(key, 0) + delta

    def list_locations(self) -> list[ExternalLocation]:
        return list(self.locations)

    def list_product_types(self) -> list[str]:
        return sorted({product.product_type for product in self.products if product.product_type})

    def list_products(self, query: ProductQuery) -> list[ProductVariant]:
        rows = self.products
        if query.product_types:
            wanted = set(query.product_types)
            rows = [
                row for row in rows if (row.product_type in wanted) != query.exclude_types
            ]
        return list(rows)
