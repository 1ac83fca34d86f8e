import os

MAIN_STORE = "Main Store"
MAIN_STORE_ID = "gid://shopify/Location/1001"
BRANCH_STORE = "Branch Store"
BRANCH_STORE_ID = "gid://shopify/Location/1002"
CATALOG_BARCODES = ("1001", "1002", "1003", "1004", "1005")
USING_POSTGRES = os.getenv("DATABASE_URL", "").startswith("postgres")


def create_task(client, *, locations=None, barcodes=None, publish=True, headers=None, **extra):
    payload = {
        "department": "HAIR",
        "locations": locations or [MAIN_STORE],
        "items": [{"barcode": barcode, "name": f"Item {barcode}"} for barcode in (barcodes or CATALOG_BARCODES[:3])],
        "publish": publish,
        **extra,
    }
    response = client.post("/api/tasks", json=payload, headers=headers or {})
    assert response.status_code == 201, response.text
    return response.json()["tasks"]


def scan(client, task, barcode, kind, value=None, **extra):
    item = next(item for item in task["items"] if item["barcode"] == barcode)
    event = {"kind": kind}
    if value is not None:
        event["value"] = value
    return client.patch(
        f"/api/tasks/{task['id']}/items/{item['id']}/scan",
        json={"event": event, **extra},
    )


def item_by_barcode(task, barcode):
    return next(item for item in task["items"] if item["barcode"] == barcode)
