"""
Shared fixtures: in-memory SQLite session, API client and seeded users
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("SMTP_HOST", None)
os.environ.pop("RESEND_API_KEY", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tradesbook.auth import issue_token_for_user  # noqa: E402
from tradesbook.database import Base, get_db  # noqa: E402
from tradesbook.main import app  # noqa: E402
from tradesbook.models import Booking, Installer, User  # noqa: E402


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    """API client bound to the test session (lifespan seeding is skipped)."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def customer(db_session):
    user = User(
        email="aoife.byrne@example.ie",
        first_name="Aoife",
        last_name="Byrne",
        phone="0871234567",
        role="customer",
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin(db_session):
    user = User(email="admin@tradesbook.ie", first_name="Admin", role="admin", email_verified=True)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def installer(db_session):
    user = User(email="sean@mountpros.ie", first_name="Sean", last_name="Kelly", role="installer")
    db_session.add(user)
    db_session.flush()
    profile = Installer(
        user_id=user.id,
        business_name="Mount Pros Dublin",
        contact_name="Sean Kelly",
        email="sean@mountpros.ie",
        phone="0861112223",
        service_area="Dublin",
        approval_status="approved",
    )
    db_session.add(profile)
    db_session.commit()
    db_session.refresh(profile)
    return profile


@pytest.fixture
def other_installer(db_session):
    user = User(email="niamh@wallmounts.ie", first_name="Niamh", role="installer")
    db_session.add(user)
    db_session.flush()
    profile = Installer(
        user_id=user.id,
        business_name="Wall Mounts Cork",
        email="niamh@wallmounts.ie",
        approval_status="approved",
    )
    db_session.add(profile)
    db_session.commit()
    db_session.refresh(profile)
    return profile


def _auth(user: User) -> dict:
    return {"Authorization": f"Bearer {issue_token_for_user(user)}"}


@pytest.fixture
def customer_headers(customer):
    return _auth(customer)


@pytest.fixture
def admin_headers(admin):
    return _auth(admin)


@pytest.fixture
def installer_headers(installer):
    return _auth(installer.user)


# =============================================================================
# Bookings
# =============================================================================


@pytest.fixture
def make_booking(db_session):
    """Factory for bookings with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> Booking:
        counter["n"] += 1
        fields = {
            "qr_code": f"BK-TEST{counter['n']:04d}",
            "tv_size": 55,
            "service_type": "silver",
            "wall_type": "drywall",
            "mount_type": "tilting",
            "addons": [],
            "address": "12 Main Street, Swords, Co. Dublin",
            "contact_name": "Aoife Byrne",
            "contact_email": "aoife.byrne@example.ie",
            "contact_phone": "0871234567",
            "estimated_price": 180.0,
            "estimated_total": 180.0,
            "status": "open",
        }
        fields.update(overrides)
        booking = Booking(**fields)
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking

    return _make
