"""Contact snapshots and request/response schemas."""

from collections.abc import Mapping
from datetime import UTC, datetime
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from .models import ContactPriority, ContactSource, ContactStatus

NAME_LENGTH = (2, 100)
SUBJECT_LENGTH = (5, 200)
MESSAGE_LENGTH = (10, 2000)
EMAIL_MAX_LENGTH = 254
IP_ADDRESS_MAX_LENGTH = 45
NOTES_MAX_LENGTH = 1000

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"


class ContactRecord(BaseModel):
    """Read-only copy of a stored contact. The ORM row never leaves the store."""

    id: UUID
    name: str
    email: str
    phone: str | None = None
    subject: str
    message: str
    status: ContactStatus
    priority: ContactPriority
    source: ContactSource
    ip_address: str | None = None
    user_agent: str | None = None
    email_sent: bool = False
    email_sent_at: datetime | None = None
    response_time: datetime | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "frozen": True}

    @field_validator("email_sent_at", "response_time", "created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        # SQLite drops tzinfo; everything is stored as UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @computed_field
    @property
    def ticket_id(self) -> str:
        return f"CNT-{self.id.hex[:8].upper()}"

    @computed_field
    @property
    def response_time_hours(self) -> float | None:
        if self.response_time is None:
            return None
        delta = self.response_time - self.created_at
        return round(delta.total_seconds() / 3600, 2)


class Pagination(BaseModel):
    current: int
    pages: int
    total: int
    limit: int


class ContactPage(BaseModel):
    records: list[ContactRecord]
    pagination: Pagination


class ContactStats(BaseModel):
    total: int = 0
    today: int = 0
    by_status: dict[str, int] = {}


class ContactSubmission(BaseModel):
    """Intake payload. Values are trimmed; blank or null values count as missing."""

    name: str = Field(min_length=NAME_LENGTH[0], max_length=NAME_LENGTH[1])
    email: str = Field(max_length=EMAIL_MAX_LENGTH, pattern=EMAIL_PATTERN)
    phone: str | None = Field(None, pattern=PHONE_PATTERN)
    subject: str = Field(min_length=SUBJECT_LENGTH[0], max_length=SUBJECT_LENGTH[1])
    message: str = Field(min_length=MESSAGE_LENGTH[0], max_length=MESSAGE_LENGTH[1])
    source: ContactSource = ContactSource.WEBSITE
    ip_address: str | None = None
    user_agent: str | None = None

    model_config = {"str_strip_whitespace": True}

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: object) -> object:
        if not isinstance(data, Mapping):
            return data
        cleaned = {}
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip()
            if value is None or value == "":
                continue
            cleaned[key] = value
        return cleaned

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("source", mode="before")
    @classmethod
    def normalize_source(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v

    @field_validator("ip_address", "user_agent", mode="before")
    @classmethod
    def passthrough_metadata(cls, v: object) -> str | None:
        # Request metadata is kept or dropped, never rejected
        return v if isinstance(v, str) else None

    @field_validator("ip_address")
    @classmethod
    def fit_ip_column(cls, v: str | None) -> str | None:
        return v[:IP_ADDRESS_MAX_LENGTH] if v else v


class NoteUpdate(BaseModel):
    notes: str | None = Field(None, max_length=NOTES_MAX_LENGTH)


class TransitionRequest(BaseModel):
    priority: str | None = None
    notes: str | None = None
