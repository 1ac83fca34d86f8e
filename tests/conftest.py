import importlib
import os

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient

os.environ.setdefault("GATEWAY_BACKOFF_SECONDS", "0")

from app.countdesk.gateways.base import ExternalLocation  # noqa: E402
from tests.db_utils import postgres_test_database  # noqa: E402
from tests.fakes import FakeGateway  # noqa: E402
from tests.helpers import (  # noqa: E402
    BRANCH_STORE,
    BRANCH_STORE_ID,
    CATALOG_BARCODES,
    MAIN_STORE,
    MAIN_STORE_ID,
    USING_POSTGRES,
)

BASE_DATABASE_URL = os.getenv("DATABASE_URL", "")


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url

    import app.countdesk.core.config as config
    import app.countdesk.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app(), session


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


@pytest.fixture()
def database_url(tmp_path):
    if USING_POSTGRES:
        with postgres_test_database(BASE_DATABASE_URL) as url:
            yield url
    else:
        yield f"sqlite+pysqlite:///{tmp_path / 'test.db'}"


@pytest.fixture()
def gateway():
    fake = FakeGateway(
        locations=[
            ExternalLocation(external_id=MAIN_STORE_ID, name=MAIN_STORE),
            ExternalLocation(external_id=BRANCH_STORE_ID, name=BRANCH_STORE),
        ]
    )
    for barcode in CATALOG_BARCODES:
        fake.add_item(barcode, product_type="WIG")
    return fake


@pytest.fixture()
def client(database_url, gateway):
    from app.countdesk.core.deps import get_gateway
    from app.countdesk.core.metrics import metrics

    _run_migrations(database_url)
    app, session = _setup_app(database_url)
    app.dependency_overrides[get_gateway] = lambda: gateway
    metrics.reset()

    with TestClient(app) as client:
        yield client

    session.engine.dispose()


@pytest.fixture()
def db_session(client):
    from app.countdesk.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def mapped_locations(client):
    response = client.post("/api/catalog/locations/sync")
    assert response.status_code == 200
    return {row["name"]: row["external_location_id"] for row in response.json()["rows"]}
