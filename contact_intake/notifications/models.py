"""Notification tracking model."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base


class NotificationLog(Base):
    """One row per email sent for a contact."""

    __tablename__ = "notification_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    contact_id = Column(
        UUID(as_uuid=True),
        ForeignKey("contact_messages.id", ondelete="CASCADE"),
        nullable=False,
    )
    notification_type = Column(String(50), nullable=False)  # "confirmation" / "admin_alert"
    recipient = Column(String(255), nullable=False)
    subject = Column(String(500), default="")
    detail = Column(Text, default="")
    sent_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (Index("idx_notif_contact_type", "contact_id", "notification_type"),)
