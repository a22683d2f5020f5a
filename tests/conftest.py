import os
import tempfile

os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = ""
os.environ["DATABASE_NAME"] = ""
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="storefront-uploads-")

import mongomock
import pytest
from bson.objectid import ObjectId
from fastapi.testclient import TestClient

from config import get_config
from database import create_document, get_db
from main import app
from middleware import api_limiter, auth_limiter, upload_limiter
from security import hash_password, issue_access_token


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db():
    database = mongomock.MongoClient()["storefront_test"]
    database["user"].create_index("email", unique=True)
    database["order"].create_index("orderNumber", unique=True)
    return database


@pytest.fixture
def client(db):
    get_config.cache_clear()
    for limiter in (api_limiter, auth_limiter, upload_limiter):
        limiter.reset()
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()
    get_config.cache_clear()


def make_user(db, email, role="customer", password="secret123"):
    user_id = create_document(
        "user",
        {"name": email.split("@")[0].title(), "email": email, "passwordHash": hash_password(password), "role": role},
        db,
    )
    return user_id


def bearer(user_id, role):
    return {"Authorization": f"Bearer {issue_access_token(user_id, role)}"}


@pytest.fixture
def admin_headers(db):
    return bearer(make_user(db, "admin@example.com", role="admin"), "admin")


@pytest.fixture
def customer(db):
    user_id = make_user(db, "ayse@example.com")
    return {"id": user_id, "headers": bearer(user_id, "customer")}


@pytest.fixture
def category_id(db):
    return create_document("category", {"name": "Oturma Odası", "slug": "oturma-odasi", "parent": None, "displayOrder": 0}, db)


@pytest.fixture
def make_product(db, category_id):
    def _make(name="Berjer Koltuk", base_price=6000, discounted_price=None, active=True, **extra):
        doc = {
            "name": name,
            "slug": name.lower().replace(" ", "-"),
            "sku": f"SKU-{ObjectId()}",
            "description": "Tekli, konforlu okuma koltuğu.",
            "category": ObjectId(category_id),
            "basePrice": base_price,
            "images": ["/uploads/a.webp"],
            "variants": [],
            "active": active,
            **extra,
        }
        if discounted_price is not None:
            doc["discountedPrice"] = discounted_price
        return create_document("product", doc, db)

    return _make


@pytest.fixture
def other_customer(db):
    user_id = make_user(db, "mehmet@example.com")
    return {"id": user_id, "headers": bearer(user_id, "customer")}
