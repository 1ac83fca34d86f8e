from app.countdesk.gateways.base import ExternalLocation, ProductVariant, department_for
from tests.helpers import BRANCH_STORE_ID, MAIN_STORE, MAIN_STORE_ID


def _variant(barcode, product_type, tags=()):
    return ProductVariant(
        product_id=f"gid://shopify/Product/{barcode}",
        internal_id=f"gid://shopify/ProductVariant/{barcode}",
        barcode=barcode,
        name=f"Item {barcode}",
        product_type=product_type,
        tags=tuple(tags),
    )


def test_department_map():
    assert department_for("Wig") == "HAIR"
    assert department_for(" hair & skin care ") == "CARE"
    assert department_for("Jewelry") == "GENM"
    assert department_for("Furniture") is None
    assert department_for(None) is None


def test_sync_locations_upserts_mappings(client, gateway):
    assert client.get("/api/catalog/locations").json()["rows"] == []

    first = client.post("/api/catalog/locations/sync").json()["rows"]
    assert {row["name"]: row["external_location_id"] for row in first} == {
        "Branch Store": BRANCH_STORE_ID,
        MAIN_STORE: MAIN_STORE_ID,
    }

    gateway.locations[0] = ExternalLocation(external_id="gid://shopify/Location/2001", name=MAIN_STORE)
    client.post("/api/catalog/locations/sync")
    rows = client.get("/api/catalog/locations").json()["rows"]
    assert len(rows) == 2
    assert next(row for row in rows if row["name"] == MAIN_STORE)["external_location_id"].endswith("/2001")


def test_product_types_and_search(client, gateway):
    gateway.products = [_variant("1001", "Wig", ["lace"]), _variant("2001", "Makeup"), _variant("3001", None)]

    assert client.get("/api/catalog/product-types").json()["product_types"] == ["Makeup", "Wig"]

    included = client.post("/api/catalog/products", json={"product_types": ["Wig"]}).json()
    assert [row["barcode"] for row in included["rows"]] == ["1001"]
    assert included["rows"][0]["department"] == "HAIR"
    assert included["rows"][0]["tags"] == ["lace"]

    excluded = client.post("/api/catalog/products", json={"product_types": ["Wig"], "exclude_types": True}).json()
    assert sorted(row["barcode"] for row in excluded["rows"]) == ["2001", "3001"]


def test_inventory_lookup(client, gateway, mapped_locations):
    gateway.set_stock("1001", MAIN_STORE_ID, 7)
    response = client.get("/api/catalog/inventory/1001", params={"location": MAIN_STORE})

    assert response.status_code == 200
    body = response.json()
    assert body["available"] == 7
    assert body["department"] == "HAIR"
    assert body["external_location_id"] == MAIN_STORE_ID


def test_inventory_lookup_missing_level_reads_zero(client, mapped_locations):
    response = client.get("/api/catalog/inventory/1002", params={"location": MAIN_STORE})
    assert response.json()["available"] == 0


def test_inventory_lookup_errors(client, mapped_locations):
    unknown = client.get("/api/catalog/inventory/9999", params={"location": MAIN_STORE})
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "CATALOG_ITEM_NOT_FOUND"

    unmapped = client.get("/api/catalog/inventory/1001", params={"location": "Warehouse"})
    assert unmapped.status_code == 404
    assert unmapped.json()["code"] == "LOCATION_NOT_MAPPED"
