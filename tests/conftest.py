import mongomock
import pytest
from fastapi.testclient import TestClient

import mailer
from database import PRODUCTS, USERS, create_document, get_db
from main import app
from security import create_token, hash_password

PASSWORD = "secret123"


@pytest.fixture
def mongo():
    return mongomock.MongoClient()["oiko_test"]


@pytest.fixture
def client(mongo):
    app.dependency_overrides[get_db] = lambda: mongo
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Every email the app tries to send, as (to, subject) pairs."""
    sent = []

    def fake_send(to, subject, html):
        sent.append((to, subject))
        return True, None

    monkeypatch.setattr(mailer, "send_email", fake_send)
    return sent


@pytest.fixture
def make_user(mongo):
    def _make(email="shopper@example.com", role="customer", **fields):
        doc = {
            "email": email,
            "password": hash_password(PASSWORD),
            "firstName": "Sara",
            "lastName": "Khalid",
            "role": role,
            "fragmentPoints": 0,
            "addresses": [],
            "wishlist": [],
            "cart": [],
        }
        doc.update(fields)
        return create_document(mongo, USERS, doc)
    return _make


@pytest.fixture
def make_product(mongo):
    def _make(name="Cozy Hoodie", category="hoodies", price=199.0, stock=50, **fields):
        doc = {
            "name": name,
            "price": price,
            "description": f"{name} description",
            "image": "/img.jpg",
            "category": category,
            "colors": ["Black"],
            "sizes": ["M", "L"],
            "stock": stock,
            "featured": False,
        }
        doc.update(fields)
        return create_document(mongo, PRODUCTS, doc)
    return _make


def auth(user):
    return {"Authorization": f"Bearer {create_token(user)}"}


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", role="admin")
