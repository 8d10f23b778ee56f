"""Status transitions and operator edits on existing contacts.

Status only moves forward (new -> read -> replied); archived is reachable
from every state and nothing leaves it. Each transition lists the states
it applies from. Called from any other state it is a no-op that returns
the contact unchanged.

Every edit is one conditional UPDATE, so concurrent operator actions on
the same contact cannot overwrite each other's columns.
"""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime

from sqlalchemy import func, literal, update
from sqlalchemy.orm import Session

from .exceptions import InvalidPriority, NotFound, ValidationError
from .models import Contact, ContactPriority, ContactStatus
from .schemas import ContactRecord
from .service import _to_uuid, load_contact, snapshot, store_guard
from .validation import validate_notes

logger = logging.getLogger(__name__)

LEGAL_FROM: dict[ContactStatus, frozenset[ContactStatus]] = {
    ContactStatus.READ: frozenset({ContactStatus.NEW}),
    ContactStatus.REPLIED: frozenset({ContactStatus.NEW, ContactStatus.READ, ContactStatus.REPLIED}),
    ContactStatus.ARCHIVED: frozenset(ContactStatus),
}


def _apply(db: Session, contact_id, values: dict, legal_from: frozenset[ContactStatus] | None = None) -> ContactRecord:
    uid = _to_uuid(contact_id)
    if uid is None:
        raise NotFound(contact_id)

    stmt = update(Contact).where(Contact.id == uid)
    if legal_from is not None:
        stmt = stmt.where(Contact.status.in_(list(legal_from)))
    stmt = stmt.values(updated_at=datetime.now(UTC), **values).execution_options(synchronize_session=False)

    with store_guard(db):
        result = db.execute(stmt)

    # Zero rows: either the contact is gone or its state is outside legal_from
    contact = load_contact(db, uid, refresh=True)
    if result.rowcount == 0:
        logger.debug("Update of %s skipped for contact %s in state %s", ", ".join(values), uid, contact.status)
    return snapshot(contact)


def _transition(db: Session, contact_id, target: ContactStatus, **extra) -> ContactRecord:
    return _apply(db, contact_id, {"status": target, **extra}, LEGAL_FROM[target])


def mark_as_read(db: Session, contact_id) -> ContactRecord:
    return _transition(db, contact_id, ContactStatus.READ)


def mark_as_replied(db: Session, contact_id) -> ContactRecord:
    """Set status to replied. The first reply time is kept on repeat calls."""
    now = literal(datetime.now(UTC), Contact.response_time.type)
    return _transition(db, contact_id, ContactStatus.REPLIED, response_time=func.coalesce(Contact.response_time, now))


def mark_as_archived(db: Session, contact_id) -> ContactRecord:
    return _transition(db, contact_id, ContactStatus.ARCHIVED)


def set_priority(db: Session, contact_id, priority) -> ContactRecord:
    try:
        value = ContactPriority(priority)
    except ValueError:
        raise InvalidPriority(priority) from None
    record = _apply(db, contact_id, {"priority": value})
    logger.info("Priority of contact %s set to %s", record.id, value)
    return record


def add_note(db: Session, contact_id, text: str | None) -> ContactRecord:
    """Replace the operator notes. Passing an empty string clears them."""
    notes = validate_notes(text)
    return _apply(db, contact_id, {"notes": notes})


ACTIONS = ("read", "replied", "archived", "priority", "note")


def apply_transition(db: Session, contact_id, action: str, payload: Mapping | None = None) -> ContactRecord:
    """Dispatch a named administrative action to its transition."""
    payload = payload or {}
    if action == "read":
        return mark_as_read(db, contact_id)
    if action == "replied":
        return mark_as_replied(db, contact_id)
    if action == "archived":
        return mark_as_archived(db, contact_id)
    if action == "priority":
        return set_priority(db, contact_id, payload.get("priority"))
    if action == "note":
        return add_note(db, contact_id, payload.get("notes"))
    raise ValidationError.single("action", f"Unknown action {action!r}; expected one of: {', '.join(ACTIONS)}")
