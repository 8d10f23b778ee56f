"""Contact form submission model and enums."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base


class ContactStatus(enum.StrEnum):
    NEW = "new"
    READ = "read"
    REPLIED = "replied"
    ARCHIVED = "archived"


class ContactPriority(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ContactSource(enum.StrEnum):
    WEBSITE = "website"
    MOBILE = "mobile"
    API = "api"


def _enum_column(enum_cls: type[enum.StrEnum], name: str) -> SQLEnum:
    return SQLEnum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e])


class Contact(Base):
    __tablename__ = "contact_messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)

    status = Column(_enum_column(ContactStatus, "contact_status"), nullable=False, default=ContactStatus.NEW)
    priority = Column(
        _enum_column(ContactPriority, "contact_priority"), nullable=False, default=ContactPriority.MEDIUM
    )
    source = Column(_enum_column(ContactSource, "contact_source"), nullable=False, default=ContactSource.WEBSITE)

    # Submission metadata
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    # Notification tracking
    email_sent = Column(Boolean, nullable=False, default=False)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)

    response_time = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_contacts_email", "email"),
        Index("idx_contacts_created", "created_at"),
        Index("idx_contacts_status", "status"),
        Index("idx_contacts_priority", "priority"),
    )

    def __repr__(self) -> str:
        return f"<Contact {self.id} {self.email} ({self.status})>"
