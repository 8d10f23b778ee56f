"""Contact errors raised by the store and lifecycle operations."""

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    field: str
    reason: str


class ContactError(Exception):
    """Base class for every error the contact core raises."""


class ValidationError(ContactError):
    """Caller input violates one or more field rules."""

    def __init__(self, errors: list[FieldError]):
        if not errors:
            raise ValueError("ValidationError needs at least one FieldError")
        self.errors = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.reason}" for e in self.errors))

    @classmethod
    def single(cls, field: str, reason: str) -> "ValidationError":
        return cls([FieldError(field, reason)])

    @property
    def field(self) -> str:
        return self.errors[0].field

    @property
    def reason(self) -> str:
        return self.errors[0].reason

    @property
    def fields(self) -> list[str]:
        return [e.field for e in self.errors]


class NotFound(ContactError):
    def __init__(self, contact_id):
        self.contact_id = contact_id
        super().__init__(f"Contact {contact_id} not found")


class InvalidPriority(ContactError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid priority level: {value!r}")


class StoreError(ContactError):
    """Backing-store failure; never retried by the core."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Store failure: {cause.__class__.__name__}")
