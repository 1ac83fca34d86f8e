from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from app.countdesk.core.config import settings
from app.countdesk.core.logging import log_json
from app.countdesk.gateways.base import (
    CatalogItem,
    ExternalLocation,
    GatewayError,
    GatewayThrottled,
    InventoryGateway,
    ProductQuery,
    ProductVariant,
)

logger = logging.getLogger("countdesk.gateway.shopify")

ACCESS_TOKEN_HEADER = "X-Shopify-Access-Token"
PAGE_SIZE = 250

RESOLVE_ITEM_QUERY = """
query resolveItem($query: String!) {
  productVariants(first: 1, query: $query) {
    edges {
      node {
        id
        sku
        barcode
        displayName
        inventoryItem { id }
        product { title productType }
      }
    }
  }
}
"""

READ_STOCK_QUERY = """
query readStock($inventoryItemId: ID!, $locationId: ID!) {
  inventoryItem(id: $inventoryItemId) {
    inventoryLevel(locationId: $locationId) {
      quantities(names: ["available"]) { name quantity }
    }
  }
}
"""

ADJUST_STOCK_MUTATION = """
mutation adjustStock($input: InventoryAdjustQuantitiesInput!) {
  inventoryAdjustQuantities(input: $input) {
    inventoryAdjustmentGroup { id }
    userErrors { field message }
  }
}
"""

LOCATIONS_QUERY = """
query listLocations($first: Int!, $after: String) {
  locations(first: $first, after: $after) {
    edges { node { id name } }
    pageInfo { hasNextPage endCursor }
  }
}
"""

PRODUCT_TYPES_QUERY = """
query listProductTypes($first: Int!) {
  productTypes(first: $first) { edges { node } }
}
"""

PRODUCTS_QUERY = """
query listProducts($first: Int!, $after: String, $query: String) {
  products(first: $first, after: $after, query: $query) {
    edges {
      node {
        id
        title
        productType
        tags
        variants(first: 100) {
          edges { node { id sku barcode displayName } }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_product_search(query: ProductQuery) -> str | None:
    """Translate a product filter into Shopify search syntax."""
    clauses: list[str] = []
    if query.product_types:
        joined = " OR ".join(f"product_type:{_quote(value)}" for value in query.product_types)
        clause = f"({joined})"
        clauses.append(f"NOT {clause}" if query.exclude_types else clause)
    for tag in query.tags:
        clauses.append(f"tag:{_quote(tag)}")
    if query.title_contains:
        clauses.append(f"title:*{query.title_contains.strip()}*")
    if not clauses:
        return None
    return " AND ".join(clauses)


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Seconds to wait from a ``Retry-After`` header, given as seconds or an HTTP-date."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


class ShopifyGateway(InventoryGateway):
    def __init__(
        self,
        *,
        shop_domain: str,
        access_token: str,
        api_version: str,
        connect_timeout: float,
        read_timeout: float,
        session: requests.Session | None = None,
    ):
        self.shop_domain = shop_domain
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = (connect_timeout, read_timeout)
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=4, pool_maxsize=4)
            session.mount("https://", adapter)
        self.session = session

    @classmethod
    def from_settings(cls) -> "ShopifyGateway":
        return cls(
            shop_domain=settings.SHOPIFY_SHOP_DOMAIN,
            access_token=settings.SHOPIFY_ACCESS_TOKEN,
            api_version=settings.SHOPIFY_API_VERSION,
            connect_timeout=settings.GATEWAY_CONNECT_TIMEOUT_SECONDS,
            read_timeout=settings.GATEWAY_READ_TIMEOUT_SECONDS,
        )

    @property
    def endpoint(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}/graphql.json"

    def _execute(self, operation: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        if not self.shop_domain or not self.access_token:
            raise GatewayError("Shopify credentials are not configured", details={"operation": operation})
        started = time.perf_counter()
        try:
            response = self.session.post(
                self.endpoint,
                headers={ACCESS_TOKEN_HEADER: self.access_token, "Content-Type": "application/json"},
                json={"query": query, "variables": variables},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(str(exc), details={"operation": operation, "type": type(exc).__name__}) from exc
        latency_ms = (time.perf_counter() - started) * 1000
        log_json(
            logger,
            {
                "event": "gateway_call",
                "operation": operation,
                "status_code": response.status_code,
                "latency_ms": round(latency_ms, 2),
            },
            level=logging.DEBUG,
        )

        if response.status_code == 429:
            raise GatewayThrottled(
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                details={"operation": operation},
            )
        if not response.ok:
            raise GatewayError(
                f"Shopify responded with HTTP {response.status_code}",
                details={"operation": operation, "status_code": response.status_code},
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise GatewayError("Shopify returned a non-JSON body", details={"operation": operation}) from exc

        errors = payload.get("errors") or []
        if errors:
            if any((error.get("extensions") or {}).get("code") == "THROTTLED" for error in errors):
                raise GatewayThrottled(details={"operation": operation})
            raise GatewayError(
                errors[0].get("message", "GraphQL error"),
                details={"operation": operation, "errors": errors},
            )
        return payload.get("data") or {}

    def resolve_item(self, code: str) -> CatalogItem | None:
        search = f"barcode:{_quote(code)} OR sku:{_quote(code)}"
        data = self._execute("resolve_item", RESOLVE_ITEM_QUERY, {"query": search})
        edges = (data.get("productVariants") or {}).get("edges") or []
        if not edges:
            return None
        node = edges[0]["node"]
        inventory_item = node.get("inventoryItem") or {}
        if not inventory_item.get("id"):
            return None
        product = node.get("product") or {}
        return CatalogItem(
            internal_id=node["id"],
            inventory_item_id=inventory_item["id"],
            barcode=node.get("barcode") or node.get("sku") or code,
            display_name=node.get("displayName") or product.get("title") or code,
            product_type=product.get("productType") or None,
        )

    def read_stock(self, inventory_item_id: str, location_id: str) -> int:
        data = self._execute(
            "read_stock",
            READ_STOCK_QUERY,
            {"inventoryItemId": inventory_item_id, "locationId": location_id},
        )
        level = (data.get("inventoryItem") or {}).get("inventoryLevel")
        if not level:
            return 0
        for quantity in level.get("quantities") or []:
            if quantity.get("name") == "available":
                return int(quantity.get("quantity") or 0)
        return 0

    def adjust_stock(self, inventory_item_id: str, location_id: str, delta: int, reason: str) -> None:
        variables = {
            "input": {
                "reason": reason,
                "name": "available",
                "changes": [
                    {"inventoryItemId": inventory_item_id, "locationId": location_id, "delta": delta},
                ],
            }
        }
        data = self._execute("adjust_stock", ADJUST_STOCK_MUTATION, variables)
        result = data.get("inventoryAdjustQuantities") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise GatewayError(
                user_errors[0].get("message", "Inventory adjustment rejected"),
                details={"operation": "adjust_stock", "user_errors": user_errors},
            )

    def list_locations(self) -> list[ExternalLocation]:
        locations: list[ExternalLocation] = []
        cursor = None
        while True:
            data = self._execute("list_locations", LOCATIONS_QUERY, {"first": PAGE_SIZE, "after": cursor})
            connection = data.get("locations") or {}
            for edge in connection.get("edges") or []:
                node = edge["node"]
                locations.append(ExternalLocation(external_id=node["id"], name=node["name"]))
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return locations
            cursor = page_info.get("endCursor")

    def list_product_types(self) -> list[str]:
        data = self._execute("list_product_types", PRODUCT_TYPES_QUERY, {"first": PAGE_SIZE})
        edges = (data.get("productTypes") or {}).get("edges") or []
        return sorted({edge["node"] for edge in edges if edge.get("node")})

    def list_products(self, query: ProductQuery) -> list[ProductVariant]:
        search = build_product_search(query)
        variants: list[ProductVariant] = []
        cursor = None
        while True:
            data = self._execute(
                "list_products",
                PRODUCTS_QUERY,
                {"first": PAGE_SIZE, "after": cursor, "query": search},
            )
            connection = data.get("products") or {}
            for edge in connection.get("edges") or []:
                product = edge["node"]
                for variant_edge in (product.get("variants") or {}).get("edges") or []:
                    variant = variant_edge["node"]
                    variants.append(
                        ProductVariant(
                            product_id=product["id"],
                            internal_id=variant["id"],
                            barcode=variant.get("barcode") or variant.get("sku") or None,
                            name=variant.get("displayName") or product.get("title") or "",
                            product_type=product.get("productType") or None,
                            tags=tuple(product.get("tags") or ()),
                        )
                    )
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return variants
            cursor = page_info.get("endCursor")
