"""
Pytest fixtures for the inventory tests.

Each test gets its own file-backed SQLite database so that threads can
open independent connections.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from lab_inventory.core.database import build_engine, get_db, init_db
from lab_inventory.main import app
from lab_inventory.models.inventory import ItemKind
from lab_inventory.schemas.inventory import BatchCreate, ItemCreate
from lab_inventory.services.batch_service import add_batch
from lab_inventory.services.item_service import create_item
from lab_inventory.utils.datetime_utils import utc_now, utc_today


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'inventory.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_item(db):
    """Create a catalog item; keyword arguments override ItemCreate fields."""

    def _make(name="Glucose Reagent", kind=ItemKind.REAGENT, **fields):
        return create_item(db, ItemCreate(name=name, kind=kind, **fields))

    return _make


@pytest.fixture
def make_batch(db):
    """
    Receive a batch for an item.

    expires_in: days from today (None = no expiry)
    received_ago: hours before now the batch was received
    """

    def _make(item, quantity, expires_in=None, received_ago=0, **fields):
        expiry = utc_today() + timedelta(days=expires_in) if expires_in is not None else None
        payload = BatchCreate(
            quantity=Decimal(str(quantity)),
            expiry_date=expiry,
            received_date=utc_now() - timedelta(hours=received_ago),
            **fields,
        )
        return add_batch(db, item.id, payload)

    return _make
