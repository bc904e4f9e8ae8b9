import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from storefront.db import Database
from storefront.main import create_app


@pytest.fixture
def db():
    """Fresh in-memory SQLite store per test."""
    database = Database(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    database.init_db()
    yield database
    database.dispose()


@pytest.fixture
def client(db):
    app = create_app(db, prefix="")
    with TestClient(app) as c:
        yield c


@pytest.fixture
def session(db):
    s = db.SessionLocal()
    yield s
    s.close()


def make_category(client, name="Books"):
    r = client.post("/categories", json={"name": name})
    assert r.status_code == 201
    return r.json()


def make_product(client, name="Novel", price=9.99, category_id=None):
    body = {"name": name, "price": price}
    if category_id is not None:
        body["category_id"] = category_id
    r = client.post("/products", json=body)
    assert r.status_code == 201
    return r.json()
