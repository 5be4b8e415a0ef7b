import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

import mongomock  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import emailer  # noqa: E402
from database import create_document, ensure_indexes, get_db  # noqa: E402
from schemas import Product, User  # noqa: E402
from security import hash_password, token_for  # noqa: E402

DEFAULT_PASSWORD = "secret123"


@pytest.fixture()
def db():
    """A fresh in-memory database with the production indexes."""
    database = mongomock.MongoClient()["storefront_test"]
    ensure_indexes(database)
    return database


@pytest.fixture()
def client(db):
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture OTP emails instead of calling the email provider."""
    outbox = []

    def fake_send(email, otp, user_name="User"):
        outbox.append({"email": email, "otp": otp, "name": user_name})
        return "test-message-id"

    monkeypatch.setattr(emailer, "send_otp_email", fake_send)
    return outbox


@pytest.fixture()
def make_user(db):
    """Factory: insert a user and return ``(user_doc, auth_headers)``."""
    counter = {"n": 0}

    def _make(role="customer", email=None, name=None, password=DEFAULT_PASSWORD, **fields):
        counter["n"] += 1
        email = email or f"{role}{counter['n']}@example.com"
        user = User(
            name=name or f"{role.title()} {counter['n']}",
            email=email,
            password_hash=hash_password(password) if password else None,
            role=role,
            is_approved=fields.pop("is_approved", True),
            **fields,
        )
        user_id = create_document(db, "user", user)
        doc = db["user"].find_one({"email": email})
        assert str(doc["_id"]) == user_id
        return doc, {"Authorization": f"Bearer {token_for(doc)}"}

    return _make


@pytest.fixture()
def make_product(db):
    """Factory: insert a product owned by ``seller`` and return its id."""

    def _make(seller, **fields):
        data = {"name": "Linen Shirt", "price": 25.0, "images": ["https://img.example.com/1.jpg"]}
        data.update(fields)
        product = Product(seller_id=str(seller["_id"]), **data)
        return create_document(db, "product", product)

    return _make
