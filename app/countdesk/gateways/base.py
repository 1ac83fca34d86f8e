from __future__ import annotations

import abc
from dataclasses import dataclass, field


class GatewayError(Exception):
    """The inventory system could not be reached or rejected the request."""

    def __init__(self, message: str, *, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class GatewayThrottled(GatewayError):
    def __init__(self, message: str = "Throttled", *, retry_after: float | None = None, details: dict | None = None):
        self.retry_after = retry_after
        super().__init__(message, details=details)


class ExternalSystemError(GatewayError):
    """Raised once a gateway call has failed for good (retry budget included)."""


DEPARTMENT_MAP: dict[str, str] = {
    "BRAID": "HAIR",
    "HAIR": "HAIR",
    "WIG": "HAIR",
    "HAIR & SKIN CARE": "CARE",
    "JEWELRY": "GENM",
    "MAKEUP": "GENM",
    "K-BEAUTY": "GENM",
    "TOOLS & ACCESSORIES": "GENM",
}


def department_for(product_type: str | None) -> str | None:
    if not product_type:
        return None
    return DEPARTMENT_MAP.get(product_type.strip().upper())


@dataclass(frozen=True)
class CatalogItem:
    internal_id: str
    inventory_item_id: str
    barcode: str
    display_name: str
    product_type: str | None = None

    @property
    def department(self) -> str | None:
        return department_for(self.product_type)


@dataclass(frozen=True)
class ExternalLocation:
    external_id: str
    name: str


@dataclass(frozen=True)
class ProductQuery:
    product_types: tuple[str, ...] = ()
    exclude_types: bool = False
    tags: tuple[str, ...] = ()
    title_contains: str | None = None


@dataclass(frozen=True)
class ProductVariant:
    product_id: str
    internal_id: str
    barcode: str | None
    name: str
    product_type: str | None
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def department(self) -> str | None:
        return department_for(self.product_type)


class InventoryGateway(abc.ABC):
    """Read/write access to the external system of record for stock levels."""

    @abc.abstractmethod
    def resolve_item(self, code: str) -> CatalogItem | None:
        ...

    @abc.abstractmethod
    def read_stock(self, inventory_item_id: str, location_id: str) -> int:
        """Return the available quantity; a missing inventory level reads as 0."""

    @abc.abstractmethod
    def adjust_stock(self, inventory_item_id: str, location_id: str, delta: int, reason: str) -> None:
        """Apply a relative adjustment; raise ``GatewayThrottled`` when rate limited."""

    @abc.abstractmethod
    def list_locations(self) -> list[ExternalLocation]:
        ...

    @abc.abstractmethod
    def list_product_types(self) -> list[str]:
        ...

    @abc.abstractmethod
    def list_products(self, query: ProductQuery) -> list[ProductVariant]:
        ...
