"""
Pytest configuration and shared fixtures for the hand review backend.
"""
import os

# Settings are read at import time; keep tests off Postgres and the rate limiter
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("STRIPE_MODE", "test")
os.environ.setdefault("STRIPE_PRICE_BASIC_TEST", "price_basic_test")
os.environ.setdefault("STRIPE_PRICE_PRO_TEST", "price_pro_test")
os.environ.setdefault("STRIPE_PRICE_PREMIUM_TEST", "price_premium_test")

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


@pytest.fixture(scope="function")
def db():
    """
    Create a fresh database for each test.

    Uses an in-memory SQLite database for fast, isolated testing.
    """
    from app.db.base import Base
    import app.models  # noqa: F401

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    """Factory creating users with unique Google subjects."""
    from app.models import User

    counter = {"n": 0}

    def _make(email=None, display_name="Player"):
        counter["n"] += 1
        user = User(
            display_name=display_name,
            email=email or f"player{counter['n']}@example.com",
            auth_provider="google",
            google_sub=f"google-sub-{counter['n']}",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_subscription(db):
    """Factory creating subscription rows; later rows start later by default."""
    from app.models import Subscription

    counter = {"n": 0}

    def _make(user, plan, status="active", store="stripe", limit_per_month=None,
              started_at=None, purchase_token="sub_test123"):
        counter["n"] += 1
        subscription = Subscription(
            user_id=user.id,
            plan=plan,
            status=status,
            store=store,
            limit_per_month=limit_per_month,
            started_at=started_at or datetime.utcnow() - timedelta(days=30) + timedelta(minutes=counter["n"]),
            purchase_token=purchase_token,
        )
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

    return _make


@pytest.fixture
def add_usage(db):
    """Append ``count`` usage rows for a user."""
    from app.models import UsageLog

    def _add(user, action_type, count, hand_id=None, created_at=None):
        for _ in range(count):
            db.add(UsageLog(
                user_id=user.id,
                action_type=action_type,
                hand_id=hand_id,
                created_at=created_at or datetime.utcnow(),
            ))
        db.commit()

    return _add


@pytest.fixture
def free_user(make_user):
    return make_user(email="free@example.com")


@pytest.fixture
def basic_user(make_user, make_subscription):
    user = make_user(email="basic@example.com")
    make_subscription(user, "basic")
    return user


@pytest.fixture
def pro_user(make_user, make_subscription):
    user = make_user(email="pro@example.com")
    make_subscription(user, "pro")
    return user


@pytest.fixture
def premium_user(make_user, make_subscription):
    user = make_user(email="premium@example.com")
    make_subscription(user, "premium")
    return user
