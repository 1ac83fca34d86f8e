import pytest

from app.countdesk.gateways.base import ExternalSystemError, GatewayThrottled
from app.countdesk.gateways.retry import call_with_backoff
from app.countdesk.services.inventory_commit import CatalogItemNotFound, InventoryCommitter
from tests.fakes import FakeGateway

LOCATION = "gid://shopify/Location/1"


@pytest.fixture()
def gateway():
    fake = FakeGateway()
    fake.add_item("2001")
    return fake


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def committer(gateway, sleeps):
    return InventoryCommitter(gateway, max_attempts=3, backoff_seconds=1.5, sleep=sleeps.append)


def test_zero_delta_is_a_noop(committer, gateway):
    receipt = committer.commit("2001", LOCATION, 0)
    assert receipt.applied is False
    assert gateway.resolve_calls == []
    assert gateway.adjust_calls == []


def test_zero_delta_does_not_need_a_location(committer, gateway):
    assert committer.commit("2001", None, 0).applied is False


def test_applies_relative_adjustment(committer, gateway):
    receipt = committer.commit("2001", LOCATION, -4)
    assert receipt.applied is True
    assert receipt.inventory_item_id == gateway.items["2001"].inventory_item_id
    (call,) = gateway.adjust_calls
    assert (call.location_id, call.delta, call.reason) == (LOCATION, -4, "correction")


def test_unknown_item(committer, gateway):
    with pytest.raises(CatalogItemNotFound):
        committer.commit("0000", LOCATION, 2)
    assert gateway.adjust_calls == []


def test_missing_location(committer, gateway):
    with pytest.raises(CatalogItemNotFound):
        committer.commit("2001", None, 2)
    assert gateway.resolve_calls == []


def test_throttle_backoff_grows_linearly(committer, gateway, sleeps):
    gateway.throttle_adjustments = 2
    committer.commit("2001", LOCATION, 3)
    assert sleeps == [1.5, 3.0]
    assert len(gateway.adjust_calls) == 3


def test_throttle_budget_exhausted(committer, gateway, sleeps):
    gateway.throttle_adjustments = 5
    with pytest.raises(ExternalSystemError):
        committer.commit("2001", LOCATION, 3)
    assert len(gateway.adjust_calls) == 3
    assert sleeps == [1.5, 3.0]


def test_gateway_error_surfaces_as_external_error(committer, gateway):
    gateway.fail_adjustments_for = {gateway.items["2001"].inventory_item_id}
    with pytest.raises(ExternalSystemError) as excinfo:
        committer.commit("2001", LOCATION, 1)
    assert excinfo.value.message == "adjustment rejected"


def test_retry_hint_extends_backoff():
    attempts = []
    sleeps = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise GatewayThrottled(retry_after=4.0)
        return "ok"

    assert call_with_backoff("read_stock", flaky, max_attempts=3, backoff_seconds=1.0, sleep=sleeps.append) == "ok"
    assert sleeps == [4.0]
