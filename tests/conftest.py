import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["RAZORPAY_KEY_ID"] = ""
os.environ["RAZORPAY_KEY_SECRET"] = ""
os.environ["RAZORPAY_WEBHOOK_SECRET"] = ""
os.environ["SMTP_SERVER"] = ""
os.environ["ADMIN_REGISTRATION_CODES"] = "ADMIN-TEST-CODE"

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from auth.models import User
from auth.services import AuthService
from config import settings
from database import Base, get_db, make_engine, utcnow
from main import app
from media.storage import get_media_storage
from payment.gateway import GatewayAdapter, LocalGateway, get_gateway
from payment.services import CreditLedger
from properties.models import Property

GATEWAY_SECRET = "test-gateway-secret"
WEBHOOK_SECRET = "test-webhook-secret"
PASSWORD = "secret123"
PASSWORD_HASH = AuthService.hash_password(PASSWORD)


class FakeMediaStorage:
    """Records uploads and deletes instead of talking to the bucket."""

    def __init__(self):
        self.uploaded = []
        self.deleted = []

    def upload(self, file, folder="properties"):
        public_id = f"{folder}/{len(self.uploaded) + 1}-{file.filename}"
        self.uploaded.append(public_id)
        return {
            "url": f"https://cdn.test/{public_id}",
            "public_id": public_id,
            "metadata": {"resource_type": "image", "format": "jpg", "bytes": len(file.file.read())},
        }

    def delete(self, public_id):
        self.deleted.append(public_id)


class CapturingGateway(GatewayAdapter):
    """Live-mode gateway whose captured payments are set by the test."""
    name = "razorpay"
    key_id = "rzp_test_capturing"
    signing_secret = GATEWAY_SECRET
    is_live = True

    def __init__(self):
        self.payments = {}
        self.created = 0

    def create_order(self, amount_minor_units, currency, notes):
        self.created += 1
        return {"order_id": f"order_cap_{self.created}"}

    def fetch_order_payments(self, order_id):
        return self.payments.get(order_id, [])


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return LocalGateway(GATEWAY_SECRET)


@pytest.fixture
def ledger(gateway):
    return CreditLedger(gateway, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def storage():
    return FakeMediaStorage()


@pytest.fixture
def client(session_factory, gateway, storage, monkeypatch):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(settings, "RAZORPAY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_media_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


_counter = {"n": 0}


def make_user(db, user_type="tenant", credits=0, credit_expiry=None, is_verified=True, **fields):
    _counter["n"] += 1
    n = _counter["n"]
    user = User(
        name=fields.pop("name", "Test User"),
        email=fields.pop("email", f"user{n}@example.com"),
        phone=fields.pop("phone", f"9{n:09d}"),
        password_hash=PASSWORD_HASH,
        user_type=user_type,
        is_verified=is_verified,
        credits=credits,
        credit_expiry=credit_expiry,
        total_properties_allowed=settings.PROPERTIES_ALLOWED[user_type],
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_property(db, owner, status="approved", **fields):
    values = dict(
        title="Sunny 2BHK near the park",
        city="Pune",
        locality="Baner",
        price=18000,
        contact_person_name="Ravi Kumar",
        contact_person_phone="9876543210",
        contact_person_email="ravi@example.com",
        contact_person_whatsapp="9876543210",
    )
    values.update(fields)
    prop = Property(owner_id=owner.id, status=status, **values)
    db.add(prop)
    db.commit()
    prop.property_code = f"PROP{prop.id:06d}"
    db.commit()
    db.refresh(prop)
    return prop


def auth_headers(user):
    return {"Authorization": f"Bearer {AuthService.token_for(user)}"}


def days_from_now(days):
    return utcnow() + timedelta(days=days)
