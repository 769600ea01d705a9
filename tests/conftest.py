"""
Shared fixtures: in-memory SQLite database, TestClient and account factories.

Required settings are put in the environment before the app is imported.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-jwt-signing")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from factories import PERIOD_START, PERIOD_END

from billing_api.main import app
from billing_api.db.base import Base
from billing_api.db.session import get_db
from billing_api.db.models.account import Account
from billing_api.db.models.subscription import Subscription
from billing_api.core.security import hash_password, create_access_token


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db



@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def account(db_session):
    """An account linked to Stripe customer cus_test_1."""
    acc = Account(
        username="alice_1",
        email="a@x.com",
        password_hash=hash_password("secret1"),
        stripe_customer_id="cus_test_1",
    )
    db_session.add(acc)
    db_session.commit()
    db_session.refresh(acc)
    return acc


@pytest.fixture
def auth_headers(account):
    token = create_access_token({"sub": str(account.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_subscription(db_session):
    """Factory for subscriptions belonging to an account."""
    def _make(account, stripe_id="sub_test_1", status="active", cancel_at_period_end=False,
              price_id="price_basic", created_at=None):
        sub = Subscription(
            account_id=account.id,
            stripe_subscription_id=stripe_id,
            status=status,
            price_id=price_id,
            current_period_start=PERIOD_START,
            current_period_end=PERIOD_END,
            cancel_at_period_end=cancel_at_period_end,
        )
        if created_at is not None:
            sub.created_at = created_at
        db_session.add(sub)
        db_session.commit()
        db_session.refresh(sub)
        return sub
    return _make
