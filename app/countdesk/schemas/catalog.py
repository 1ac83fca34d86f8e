from datetime import datetime

from pydantic import BaseModel, Field


class LocationOut(BaseModel):
    name: str
    external_location_id: str
    updated_at: datetime | None = None


class LocationListResponse(BaseModel):
    rows: list[LocationOut]


class ProductTypesResponse(BaseModel):
    product_types: list[str]


class ProductSearchRequest(BaseModel):
    product_types: list[str] = Field(default_factory=list)
    exclude_types: bool = False
    tags: list[str] = Field(default_factory=list)
    title_contains: str | None = None


class ProductRow(BaseModel):
    product_id: str
    internal_id: str
    barcode: str | None
    name: str
    product_type: str | None
    department: str | None
    tags: list[str]


class ProductSearchResponse(BaseModel):
    rows: list[ProductRow]
    total: int


class InventoryLookupResponse(BaseModel):
    barcode: str
    name: str
    product_type: str | None
    department: str | None
    location: str
    external_location_id: str
    available: int
