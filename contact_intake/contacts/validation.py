"""Field rules for contact submissions.

The rules themselves live on the ContactSubmission and NoteUpdate
models. This module runs them and turns pydantic's error list into
FieldErrors with readable reasons. Every rule runs; a submission with
several bad fields gets one ValidationError listing all of them.
"""

from collections.abc import Mapping, Sequence

from pydantic import ValidationError as PydanticValidationError

from .exceptions import FieldError, ValidationError
from .models import ContactSource
from .schemas import ContactSubmission, NoteUpdate

_PATTERN_REASONS = {
    "email": "Please provide a valid email address",
    "phone": "Please provide a valid phone number",
}

# FastAPI prefixes request errors with where the value came from
_REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def _field_name(loc: Sequence) -> str:
    parts = [str(p) for p in loc]
    if len(parts) > 1 and parts[0] in _REQUEST_LOCATIONS:
        parts = parts[1:]
    return ".".join(parts) or "body"


def _reason(field: str, error: Mapping) -> str:
    label = field.replace("_", " ").capitalize()
    ctx = error.get("ctx") or {}
    kind = error["type"]
    if kind == "missing":
        return f"{label} is required"
    if kind == "string_type":
        return f"{label} must be a string"
    if kind == "string_too_short":
        return f"{label} must be at least {ctx['min_length']} characters long"
    if kind == "string_too_long":
        return f"{label} cannot exceed {ctx['max_length']} characters"
    if kind == "string_pattern_mismatch" and field in _PATTERN_REASONS:
        return _PATTERN_REASONS[field]
    if kind == "enum" and field == "source":
        return "Source must be one of: " + ", ".join(s.value for s in ContactSource)
    return error["msg"]


def to_field_errors(errors: Sequence[Mapping]) -> list[FieldError]:
    """Map pydantic (or FastAPI request) errors to FieldErrors, keeping their order."""
    result = []
    for error in errors:
        field = _field_name(error["loc"])
        result.append(FieldError(field, _reason(field, error)))
    return result


def validate_submission(raw: Mapping) -> dict:
    """Normalize a raw submission or raise ValidationError with every violation.

    Returns a dict with keys name, email, phone, subject, message, source,
    ip_address and user_agent, ready to construct a Contact row.
    """
    try:
        submission = ContactSubmission.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError(to_field_errors(exc.errors())) from None
    return submission.model_dump()


def validate_notes(text: str | None) -> str | None:
    """Operator notes: optional, at most 1000 characters. Empty clears them."""
    try:
        update = NoteUpdate.model_validate({"notes": text})
    except PydanticValidationError as exc:
        raise ValidationError(to_field_errors(exc.errors())) from None
    return update.notes or None
