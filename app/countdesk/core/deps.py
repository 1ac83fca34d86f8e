from functools import lru_cache

from fastapi import Request

from app.countdesk.core.context import RequestContext, get_request_context
from app.countdesk.gateways.base import InventoryGateway
from app.countdesk.gateways.shopify import ShopifyGateway


@lru_cache
def _shopify_gateway() -> ShopifyGateway:
    return ShopifyGateway.from_settings()


def get_gateway() -> InventoryGateway:
    return _shopify_gateway()


def require_request_context(request: Request) -> RequestContext:
    return get_request_context(request)
