"""Contact store: intake, lookup, listing, search, pagination and stats."""

import logging
import math
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, date, datetime, time
from typing import Protocol
from uuid import UUID

from fastapi import BackgroundTasks
from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .classifier import classify
from .exceptions import FieldError, NotFound, StoreError, ValidationError
from .models import Contact, ContactPriority, ContactStatus
from .schemas import ContactPage, ContactRecord, ContactStats, Pagination
from .validation import validate_submission

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
# Largest OFFSET a BIGINT bind parameter can carry
MAX_OFFSET = 2**63 - 1


class Notifier(Protocol):
    def notify(self, record: ContactRecord) -> None: ...


# ── Helpers ────────────────────────────────────────────────────────────


def _to_uuid(value) -> UUID | None:
    """Convert string to UUID, returning None on failure."""
    if isinstance(value, UUID):
        return value
    if not value:
        return None
    try:
        return UUID(str(value))
    except (ValueError, AttributeError):
        return None


@contextmanager
def store_guard(db: Session) -> Iterator[None]:
    """Turn backend failures into StoreError and leave the session usable."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Contact store operation failed")
        raise StoreError(exc) from exc


def snapshot(contact: Contact) -> ContactRecord:
    return ContactRecord.model_validate(contact)


def load_contact(db: Session, contact_id, refresh: bool = False) -> Contact:
    """Fetch the ORM row or raise NotFound. Malformed ids count as missing."""
    uid = _to_uuid(contact_id)
    if uid is None:
        raise NotFound(contact_id)
    with store_guard(db):
        contact = db.get(Contact, uid, populate_existing=refresh)
    if contact is None:
        raise NotFound(contact_id)
    return contact


def _parse_status(value) -> ContactStatus:
    try:
        return ContactStatus(value)
    except ValueError:
        raise ValidationError.single("status", f"Unknown status: {value!r}") from None


def _parse_priority(value) -> ContactPriority:
    try:
        return ContactPriority(value)
    except ValueError:
        raise ValidationError.single("priority", f"Unknown priority: {value!r}") from None


def _newest_first(query):
    return query.order_by(Contact.created_at.desc())


# ── Create / read ──────────────────────────────────────────────────────


def create_contact(db: Session, fields: Mapping) -> ContactRecord:
    """Validate, classify and insert a new submission.

    The caller-supplied priority (if any) is ignored: new contacts always
    start from the keyword heuristic.
    """
    data = validate_submission(fields)
    priority = classify(data["subject"], data["message"])
    now = datetime.now(UTC)

    contact = Contact(
        id=uuid.uuid4(),
        status=ContactStatus.NEW,
        priority=priority,
        email_sent=False,
        created_at=now,
        updated_at=now,
        **data,
    )
    with store_guard(db):
        db.add(contact)
        db.flush()

    logger.info("New contact %s from %s (priority=%s)", contact.id, contact.email, priority)
    return snapshot(contact)


def get_contact(db: Session, contact_id) -> ContactRecord:
    return snapshot(load_contact(db, contact_id))


def list_by_status(db: Session, status) -> list[ContactRecord]:
    status = _parse_status(status)
    with store_guard(db):
        rows = _newest_first(db.query(Contact).filter(Contact.status == status)).all()
    return [snapshot(c) for c in rows]


def list_by_priority(db: Session, priority) -> list[ContactRecord]:
    priority = _parse_priority(priority)
    with store_guard(db):
        rows = _newest_first(db.query(Contact).filter(Contact.priority == priority)).all()
    return [snapshot(c) for c in rows]


def list_recent(db: Session, limit: int = 10) -> list[ContactRecord]:
    if limit < 1:
        raise ValidationError.single("limit", "Limit must be at least 1")
    if limit > MAX_PAGE_SIZE:
        raise ValidationError.single("limit", f"Limit cannot exceed {MAX_PAGE_SIZE}")
    with store_guard(db):
        rows = _newest_first(db.query(Contact)).limit(limit).all()
    return [snapshot(c) for c in rows]


def list_unread(db: Session) -> list[ContactRecord]:
    return list_by_status(db, ContactStatus.NEW)


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_contacts(db: Session, query: str) -> list[ContactRecord]:
    """Case-insensitive substring search over name, email, subject and message."""
    if not isinstance(query, str) or not query.strip():
        raise ValidationError.single("query", "Search query is required")
    pattern = _like_pattern(query.strip())
    with store_guard(db):
        rows = _newest_first(
            db.query(Contact).filter(
                or_(
                    Contact.name.ilike(pattern, escape="\\"),
                    Contact.email.ilike(pattern, escape="\\"),
                    Contact.subject.ilike(pattern, escape="\\"),
                    Contact.message.ilike(pattern, escape="\\"),
                )
            )
        ).all()
    return [snapshot(c) for c in rows]


def paginate_contacts(db: Session, status=None, page: int = 1, page_size: int = 10) -> ContactPage:
    errors = []
    if page < 1:
        errors.append(("page", "Page must be at least 1"))
    if page_size < 1:
        errors.append(("limit", "Page size must be at least 1"))
    elif page_size > MAX_PAGE_SIZE:
        errors.append(("limit", f"Page size cannot exceed {MAX_PAGE_SIZE}"))
    if not errors and (page - 1) * page_size > MAX_OFFSET:
        errors.append(("page", "Page is out of range"))
    if errors:
        raise ValidationError([FieldError(f, r) for f, r in errors])

    query = db.query(Contact)
    if status is not None:
        query = query.filter(Contact.status == _parse_status(status))

    with store_guard(db):
        total = query.count()
        rows = _newest_first(query).offset((page - 1) * page_size).limit(page_size).all()

    return ContactPage(
        records=[snapshot(c) for c in rows],
        pagination=Pagination(
            current=page,
            pages=math.ceil(total / page_size),
            total=total,
            limit=page_size,
        ),
    )


def get_stats(db: Session) -> ContactStats:
    """Total count, count since local midnight, and per-status counts."""
    today_start = datetime.combine(date.today(), time.min).astimezone(UTC)
    with store_guard(db):
        total = db.query(func.count(Contact.id)).scalar() or 0
        today = db.query(func.count(Contact.id)).filter(Contact.created_at >= today_start).scalar() or 0
        grouped = db.query(Contact.status, func.count(Contact.id)).group_by(Contact.status).all()
    return ContactStats(
        total=total,
        today=today,
        by_status={ContactStatus(status).value: count for status, count in grouped},
    )


def mark_email_sent(db: Session, contact_id) -> ContactRecord:
    """Record successful notification delivery. Later calls keep the first timestamp."""
    uid = _to_uuid(contact_id)
    if uid is None:
        raise NotFound(contact_id)
    now = datetime.now(UTC)
    stmt = (
        update(Contact)
        .where(Contact.id == uid, Contact.email_sent.is_(False))
        .values(email_sent=True, email_sent_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    with store_guard(db):
        db.execute(stmt)
    return snapshot(load_contact(db, uid, refresh=True))


# ── Entry points ───────────────────────────────────────────────────────


def _dispatch(notifier: Notifier, record: ContactRecord) -> None:
    try:
        notifier.notify(record)
    except Exception:
        logger.exception("Notifier failed for contact %s", record.id)


def submit_contact(
    db: Session,
    fields: Mapping,
    notifier: Notifier | None = None,
    background: BackgroundTasks | None = None,
) -> ContactRecord:
    """Intake: create and commit the contact, then inform the notifier.

    Notification is fire-and-forget. With ``background`` it runs after the
    response is sent; its failures never reach the submitter.
    """
    record = create_contact(db, fields)
    with store_guard(db):
        db.commit()

    if notifier is not None:
        if background is not None:
            background.add_task(_dispatch, notifier, record)
        else:
            _dispatch(notifier, record)
    return record


def fetch_contact(db: Session, contact_id) -> ContactRecord:
    """Administrative fetch: opening a new contact marks it as read."""
    from .lifecycle import mark_as_read

    record = get_contact(db, contact_id)
    if record.status == ContactStatus.NEW:
        record = mark_as_read(db, record.id)
    return record
