from fastapi import APIRouter, Depends, Query

from app.countdesk.core.deps import get_gateway
from app.countdesk.db.session import get_db
from app.countdesk.gateways.base import InventoryGateway, ProductQuery
from app.countdesk.schemas.catalog import (
    InventoryLookupResponse,
    LocationListResponse,
    LocationOut,
    ProductRow,
    ProductSearchRequest,
    ProductSearchResponse,
    ProductTypesResponse,
)
from app.countdesk.schemas.errors import ERROR_RESPONSES
from app.countdesk.services.catalog import CatalogService

router = APIRouter(responses=ERROR_RESPONSES)


def _locations_response(mappings) -> LocationListResponse:
    return LocationListResponse(
        rows=[
            LocationOut(
                name=mapping.location_name,
                external_location_id=mapping.external_location_id,
                updated_at=mapping.updated_at,
            )
            for mapping in mappings
        ]
    )


@router.get("/catalog/locations", response_model=LocationListResponse)
def list_locations(gateway: InventoryGateway = Depends(get_gateway), db=Depends(get_db)):
    return _locations_response(CatalogService(db, gateway).list_locations())


@router.post("/catalog/locations/sync", response_model=LocationListResponse)
def sync_locations(gateway: InventoryGateway = Depends(get_gateway), db=Depends(get_db)):
    return _locations_response(CatalogService(db, gateway).sync_locations())


@router.get("/catalog/product-types", response_model=ProductTypesResponse)
def list_product_types(gateway: InventoryGateway = Depends(get_gateway), db=Depends(get_db)):
    return ProductTypesResponse(product_types=CatalogService(db, gateway).product_types())


@router.post("/catalog/products", response_model=ProductSearchResponse)
def search_products(
    payload: ProductSearchRequest,
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    query = ProductQuery(
        product_types=tuple(payload.product_types),
        exclude_types=payload.exclude_types,
        tags=tuple(payload.tags),
        title_contains=payload.title_contains,
    )
    variants = CatalogService(db, gateway).products(query)
    rows = [
        ProductRow(
            product_id=variant.product_id,
            internal_id=variant.internal_id,
            barcode=variant.barcode,
            name=variant.name,
            product_type=variant.product_type,
            department=variant.department,
            tags=list(variant.tags),
        )
        for variant in variants
    ]
    return ProductSearchResponse(rows=rows, total=len(rows))


@router.get("/catalog/inventory/{barcode}", response_model=InventoryLookupResponse)
def lookup_inventory(
    barcode: str,
    location: str = Query(min_length=1),
    gateway: InventoryGateway = Depends(get_gateway),
    db=Depends(get_db),
):
    lookup = CatalogService(db, gateway).lookup_stock(barcode, location)
    return InventoryLookupResponse(
        barcode=lookup.item.barcode,
        name=lookup.item.display_name,
        product_type=lookup.item.product_type,
        department=lookup.item.department,
        location=lookup.location,
        external_location_id=lookup.external_location_id,
        available=lookup.available,
    )
