"""Create contact_messages table.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

contact_status = sa.Enum("new", "read", "replied", "archived", name="contact_status")
contact_priority = sa.Enum("low", "medium", "high", "urgent", name="contact_priority")
contact_source = sa.Enum("website", "mobile", "api", name="contact_source")


def upgrade() -> None:
    op.create_table(
        "contact_messages",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("subject", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", contact_status, nullable=False, server_default="new"),
        sa.Column("priority", contact_priority, nullable=False, server_default="medium"),
        sa.Column("source", contact_source, nullable=False, server_default="website"),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("response_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_contacts_email", "contact_messages", ["email"])
    op.create_index("idx_contacts_created", "contact_messages", ["created_at"])
    op.create_index("idx_contacts_status", "contact_messages", ["status"])
    op.create_index("idx_contacts_priority", "contact_messages", ["priority"])


def downgrade() -> None:
    op.drop_index("idx_contacts_priority", table_name="contact_messages")
    op.drop_index("idx_contacts_status", table_name="contact_messages")
    op.drop_index("idx_contacts_created", table_name="contact_messages")
    op.drop_index("idx_contacts_email", table_name="contact_messages")
    op.drop_table("contact_messages")
    contact_source.drop(op.get_bind(), checkfirst=True)
    contact_priority.drop(op.get_bind(), checkfirst=True)
    contact_status.drop(op.get_bind(), checkfirst=True)
