import os
import tempfile

os.environ["DATABASE_URL"] = ""
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="furniture-uploads-")
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "admin-pass"

import mongomock
import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext

import auth
import database
from main import app

ADDRESS = {
    "name": "John Doe",
    "address": "123 Main St",
    "city": "Mumbai",
    "state": "Maharashtra",
    "postal_code": "400001",
    "country": "India",
    "phone": "9876543210",
}


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(auth, "pwd_context", CryptContext(schemes=["bcrypt"], bcrypt__rounds=4))


@pytest.fixture
def client():
    database.set_database(mongomock.MongoClient()["furniture_test"])
    with TestClient(app) as c:
        yield c
    database.set_database(None)


def login(client, email, password):
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


def register(client, name="Jane", email="jane@example.com", password="secret1"):
    response = client.post("/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def admin(client):
    return login(client, "admin@example.com", "admin-pass")


@pytest.fixture
def user(client):
    return register(client)


@pytest.fixture
def category(client, admin):
    response = client.post("/categories", json={"name": "Sofas", "description": "Comfy seating"}, headers=admin)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def make_product(client, admin, category):
    def _make(**fields):
        data = {
            "name": "Luxury Sofa",
            "description": "Three seater",
            "price": 2000,
            "stock": 5,
            "category": category["id"],
        }
        data.update(fields)
        response = client.post("/products", json=data, headers=admin)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def product(make_product):
    return make_product()
