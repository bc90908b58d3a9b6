"""Pytest fixtures for the store API tests."""

import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from database import create_document, get_db, init_indexes
from storage import LocalStorage


class RecordingNotifier:
    """Stands in for OrderNotifier and remembers every call."""

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.calls = []

    def notify(self, email, cart, total_price):
        self.calls.append({"email": email, "cart": cart, "totalPrice": total_price})
        return self.ok


@pytest.fixture
def db():
    """In-memory Mongo database with production indexes."""
    database = mongomock.MongoClient()["clickstore_test"]
    init_indexes(database)
    return database


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "uploads"), "/assets")


@pytest.fixture
def client(db, notifier, storage):
    from main import app, get_notifier, get_storage

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email: str, password: str = "secret123", name: str | None = None) -> dict:
    """Register a user and return auth headers."""
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "name": name},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    # first registered user is admin
    return register(client, "admin@example.com", name="Store Admin")


@pytest.fixture
def user_headers(client, admin_headers):
    return register(client, "jane@example.com", name="Jane Doe")


def make_product(db, name: str, price: float, **fields) -> str:
    doc = {
        "name": name,
        "price": price,
        "image_url": f"/assets/{name.lower().replace(' ', '-')}.png",
        "category": "",
        "subcategory": "",
        "is_available": True,
    }
    doc.update(fields)
    return create_document(db, "products", doc)


def set_cart(db, email: str, cart, version: int = 0) -> None:
    db["users"].update_one({"email": email}, {"$set": {"cart": cart, "cart_version": version}})


class FailingWrites:
    """Wraps a collection so that update_one raises."""

    def __init__(self, collection):
        self._collection = collection

    def find_one(self, *args, **kwargs):
        return self._collection.find_one(*args, **kwargs)

    def update_one(self, *args, **kwargs):
        raise PyMongoError("connection reset")


class FailingReads:
    """Wraps a collection so that every read raises."""

    def __init__(self, collection):
        self._collection = collection
        self.writes = 0

    def find_one(self, *args, **kwargs):
        raise PyMongoError("server selection timeout")

    def find(self, *args, **kwargs):
        raise PyMongoError("server selection timeout")

    def update_one(self, *args, **kwargs):
        self.writes += 1
        return self._collection.update_one(*args, **kwargs)


class FailingDatabase:
    """Database whose collections all fail on reads."""

    def __init__(self, db):
        self._db = db

    def __getitem__(self, name):
        return FailingReads(self._db[name])

    def list_collection_names(self):
        raise PyMongoError("server selection timeout")
