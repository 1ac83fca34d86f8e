from datetime import datetime, timezone

import pytest
import requests

from app.countdesk.gateways.base import ExternalSystemError, GatewayError, GatewayThrottled, ProductQuery
from app.countdesk.gateways.shopify import (
    ACCESS_TOKEN_HEADER,
    ShopifyGateway,
    build_product_search,
    parse_retry_after,
)
from app.countdesk.services.inventory_commit import InventoryCommitter


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, text_body=False):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self._text_body = text_body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._text_body:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def post(self, url, *, headers, json, timeout):
        self.requests.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _gateway(*responses, token="shpat_test"):
    session = FakeSession(*responses)
    gateway = ShopifyGateway(
        shop_domain="example.myshopify.com",
        access_token=token,
        api_version="2025-01",
        connect_timeout=2.0,
        read_timeout=9.0,
        session=session,
    )
    return gateway, session


def test_resolve_item_posts_graphql():
    node = {
        "id": "gid://shopify/ProductVariant/1",
        "sku": "SKU-1",
        "barcode": "1001",
        "displayName": "Lace wig - Black",
        "inventoryItem": {"id": "gid://shopify/InventoryItem/1"},
        "product": {"title": "Lace wig", "productType": "Wig"},
    }
    gateway, session = _gateway(FakeResponse(payload={"data": {"productVariants": {"edges": [{"node": node}]}}}))

    item = gateway.resolve_item("1001")

    assert item.inventory_item_id == "gid://shopify/InventoryItem/1"
    assert item.department == "HAIR"
    (sent,) = session.requests
    assert sent["url"] == "https://example.myshopify.com/admin/api/2025-01/graphql.json"
    assert sent["headers"][ACCESS_TOKEN_HEADER] == "shpat_test"
    assert sent["json"]["variables"] == {"query": 'barcode:"1001" OR sku:"1001"'}
    assert sent["timeout"] == (2.0, 9.0)


def test_resolve_item_without_match():
    gateway, _ = _gateway(FakeResponse(payload={"data": {"productVariants": {"edges": []}}}))
    assert gateway.resolve_item("0000") is None


def test_read_stock_missing_level_is_zero():
    gateway, _ = _gateway(FakeResponse(payload={"data": {"inventoryItem": {"inventoryLevel": None}}}))
    assert gateway.read_stock("gid://shopify/InventoryItem/1", "gid://shopify/Location/1") == 0


def test_read_stock_available_quantity():
    level = {"quantities": [{"name": "available", "quantity": 6}]}
    gateway, _ = _gateway(FakeResponse(payload={"data": {"inventoryItem": {"inventoryLevel": level}}}))
    assert gateway.read_stock("gid://shopify/InventoryItem/1", "gid://shopify/Location/1") == 6


def test_adjust_stock_sends_relative_delta():
    result = {"inventoryAdjustQuantities": {"inventoryAdjustmentGroup": {"id": "g1"}, "userErrors": []}}
    gateway, session = _gateway(FakeResponse(payload={"data": result}))

    gateway.adjust_stock("gid://shopify/InventoryItem/1", "gid://shopify/Location/1", -3, "correction")

    change = session.requests[0]["json"]["variables"]["input"]["changes"][0]
    assert change["delta"] == -3
    assert session.requests[0]["json"]["variables"]["input"]["reason"] == "correction"


def test_adjust_stock_user_errors():
    result = {"inventoryAdjustQuantities": {"userErrors": [{"field": ["delta"], "message": "bad delta"}]}}
    gateway, _ = _gateway(FakeResponse(payload={"data": result}))
    with pytest.raises(GatewayError, match="bad delta"):
        gateway.adjust_stock("i", "l", 1, "correction")


def test_http_429_is_throttled():
    gateway, _ = _gateway(FakeResponse(status_code=429, headers={"Retry-After": "2"}))
    with pytest.raises(GatewayThrottled) as excinfo:
        gateway.read_stock("i", "l")
    assert excinfo.value.retry_after == 2.0


def test_http_429_with_date_retry_after_is_throttled():
    gateway, _ = _gateway(FakeResponse(status_code=429, headers={"Retry-After": "Wed, 21 Oct 2099 07:28:00 GMT"}))
    with pytest.raises(GatewayThrottled) as excinfo:
        gateway.read_stock("i", "l")
    assert excinfo.value.retry_after > 0


def test_retry_after_forms():
    now = datetime(2026, 10, 21, 7, 27, 30, tzinfo=timezone.utc)
    assert parse_retry_after("2", now=now) == 2.0
    assert parse_retry_after("Wed, 21 Oct 2026 07:28:00 GMT", now=now) == 30.0
    assert parse_retry_after("Wed, 21 Oct 2026 07:00:00 GMT", now=now) == 0.0
    assert parse_retry_after("soon", now=now) is None
    assert parse_retry_after(None) is None


def test_committer_gives_up_on_date_throttles():
    throttled = [FakeResponse(status_code=429, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}) for _ in range(3)]
    gateway, session = _gateway(*throttled)
    sleeps = []
    committer = InventoryCommitter(gateway, max_attempts=3, backoff_seconds=0.5, sleep=sleeps.append)

    with pytest.raises(ExternalSystemError):
        committer.commit("2001", "gid://shopify/Location/1", 3)
    assert len(session.requests) == 3
    assert len(sleeps) == 2


def test_graphql_throttle_error():
    payload = {"errors": [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]}
    gateway, _ = _gateway(FakeResponse(payload=payload))
    with pytest.raises(GatewayThrottled):
        gateway.read_stock("i", "l")


def test_other_failures_are_gateway_errors():
    gateway, _ = _gateway(
        FakeResponse(status_code=500),
        FakeResponse(text_body=True),
        requests.ConnectionError("refused"),
        FakeResponse(payload={"errors": [{"message": "Field missing"}]}),
    )
    for _ in range(4):
        with pytest.raises(GatewayError) as excinfo:
            gateway.read_stock("i", "l")
        assert not isinstance(excinfo.value, GatewayThrottled)


def test_missing_credentials():
    gateway, session = _gateway(token="")
    with pytest.raises(GatewayError):
        gateway.list_locations()
    assert session.requests == []


def test_locations_follow_pagination():
    first = {
        "locations": {
            "edges": [{"node": {"id": "gid://shopify/Location/1", "name": "Main Store"}}],
            "pageInfo": {"hasNextPage": True, "endCursor": "c1"},
        }
    }
    second = {
        "locations": {
            "edges": [{"node": {"id": "gid://shopify/Location/2", "name": "Branch Store"}}],
            "pageInfo": {"hasNextPage": False, "endCursor": None},
        }
    }
    gateway, session = _gateway(FakeResponse(payload={"data": first}), FakeResponse(payload={"data": second}))

    names = [location.name for location in gateway.list_locations()]

    assert names == ["Main Store", "Branch Store"]
    assert session.requests[1]["json"]["variables"]["after"] == "c1"


def test_product_search_syntax():
    assert build_product_search(ProductQuery()) is None
    assert build_product_search(ProductQuery(product_types=("Wig", "Braid"))) == (
        '(product_type:"Wig" OR product_type:"Braid")'
    )
    assert build_product_search(ProductQuery(product_types=("Wig",), exclude_types=True, tags=("sale",))) == (
        'NOT (product_type:"Wig") AND tag:"sale"'
    )
