"""Pytest fixtures for storefront tests."""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SEED_PRODUCTS", "false")

import mongomock
import pytest
from fastapi.testclient import TestClient

from storefront.db.mongo import ensure_indexes, get_db
from storefront.main import app
from storefront.services import products_service, users_service

ADMIN_EMAIL = "admin@example.com"
PASSWORD = "secret123"


@pytest.fixture
def db():
    """A fresh in-memory database per test."""
    database = mongomock.MongoClient()["storefront_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user through the API and return (user, headers)."""

    def _register(email="shopper@example.com", password=PASSWORD):
        response = client.post("/api/auth/register", json={"email": email, "password": password})
        assert response.status_code == 201, response.text
        data = response.json()
        return data["user"], {"Authorization": f"Bearer {data['token']}"}

    return _register


@pytest.fixture
def auth_headers(register):
    return register()[1]


@pytest.fixture
def admin_headers(register):
    return register(email=ADMIN_EMAIL)[1]


@pytest.fixture
def make_product(db):
    def _make(name="Widget", price=10.0, category="Electronics", description="A useful widget.", image="widget.png"):
        return products_service.create_product(db, {
            "name": name,
            "description": description,
            "price": price,
            "image": image,
            "category": category,
        })

    return _make


@pytest.fixture
def shopper(db):
    """A user created directly in the database, for service-level tests."""
    return users_service.register_user(db, "direct@example.com", PASSWORD)


@pytest.fixture
def shipping_address():
    return {
        "name": "X",
        "email": "x@y.com",
        "address": "1 St",
        "city": "C",
        "postalCode": "00000",
        "country": "Z",
    }
