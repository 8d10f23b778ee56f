"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta

import pytest

from contact_intake.contacts.models import Contact
from contact_intake.contacts.service import create_contact
from contact_intake.database.base import Database
from contact_intake.notifications.models import NotificationLog

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [Contact, NotificationLog]


@pytest.fixture
def database():
    """In-memory SQLite store handle with all tables created."""
    db = Database("sqlite:///:memory:").open()
    db.create_all()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db_session(database):
    session = database.new_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def contact_fields():
    return {
        "name": "Rahul Sharma",
        "email": "rahul@test.com",
        "subject": "Moving Services Inquiry",
        "message": "Hi, I need to move my 2BHK apartment from Mumbai to Pune next month.",
    }


@pytest.fixture
def make_contact(db_session, contact_fields):
    """Create a committed contact, optionally backdated by ``minutes_ago``."""

    def _make(minutes_ago: int | None = None, **overrides):
        record = create_contact(db_session, {**contact_fields, **overrides})
        if minutes_ago is not None:
            created = datetime.now(UTC) - timedelta(minutes=minutes_ago)
            db_session.query(Contact).filter(Contact.id == record.id).update({"created_at": created})
        db_session.commit()
        return record

    return _make
