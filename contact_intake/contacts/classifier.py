"""Keyword-based priority for new submissions."""

from .models import ContactPriority

URGENT_KEYWORDS = ("urgent", "emergency", "asap", "immediately")
HIGH_KEYWORDS = ("important", "priority", "soon")


def classify(subject: str, message: str, default: ContactPriority = ContactPriority.MEDIUM) -> ContactPriority:
    """Derive the initial priority from subject and message text.

    Plain substring match on the lower-cased text, so "soon" also hits
    "sooner". Only called when a contact is created.
    """
    text = f"{subject} {message}".lower()
    if any(keyword in text for keyword in URGENT_KEYWORDS):
        return ContactPriority.URGENT
    if any(keyword in text for keyword in HIGH_KEYWORDS):
        return ContactPriority.HIGH
    return default
