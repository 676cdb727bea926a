# The app module builds its engine at import time; point it at a scratch file
# before anything from storefront is imported.
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(tempfile.mkdtemp(prefix="storefront-"), "app.db")

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.db import Base, engine_options, get_db
from storefront.main import app
from storefront.models.customer import AccountStatus, Customer
from storefront.models.game import Game, ReleaseStatus
from storefront.models.publisher import Publisher
from storefront.services.accounts import AccountStore
from storefront.services.catalog import CatalogStore
from storefront.services.key_inventory import KeyInventory
from storefront.services.order_ledger import OrderLedger


@pytest.fixture
def engine(tmp_path):
    url = f"sqlite:///{tmp_path / 'store.db'}"
    eng = create_engine(url, **engine_options(url))
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def build_ledger(session) -> OrderLedger:
    return OrderLedger(
        session,
        inventory=KeyInventory(session),
        accounts=AccountStore(session),
        catalog=CatalogStore(session),
    )


@pytest.fixture
def ledger(db):
    return build_ledger(db)


@pytest.fixture
def make_ledger():
    return build_ledger


@pytest.fixture
def make_customer(db):
    def _make(balance_cents: int = 10_000, status: str = AccountStatus.ACTIVE.value) -> uuid.UUID:
        customer = Customer(
            id=uuid.uuid4(),
            email=f"{uuid.uuid4().hex[:12]}@example.com",
            display_name="Player",
            status=status,
            balance_cents=balance_cents,
        )
        db.add(customer)
        db.commit()
        return customer.id

    return _make


@pytest.fixture
def make_publisher(db):
    def _make(name: str = "Northwind Games") -> uuid.UUID:
        publisher = Publisher(id=uuid.uuid4(), name=name)
        db.add(publisher)
        db.commit()
        return publisher.id

    return _make


@pytest.fixture
def make_game(db, make_publisher):
    def _make(
        *,
        publisher_id: uuid.UUID | None = None,
        name: str = "Starfall",
        price_cents: int = 5999,
        discount_cents: int | None = None,
        release_status: str = ReleaseStatus.RELEASED.value,
        version: str = "1.0",
        keys: int = 0,
    ) -> uuid.UUID:
        game = Game(
            id=uuid.uuid4(),
            publisher_id=publisher_id or make_publisher(),
            name=name,
            version=version,
            release_status=release_status,
            original_price_cents=price_cents,
            discount_price_cents=discount_cents,
        )
        db.add(game)
        db.commit()
        game_id = game.id
        if keys:
            KeyInventory(db).create_batch(game_id, version, keys)
        return game_id

    return _make


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _headers(account_type: str, account_id: uuid.UUID) -> dict:
        return {"X-Account-Type": account_type, "X-Account-Id": str(account_id)}

    return _headers
