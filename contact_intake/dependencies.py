"""Shared FastAPI dependencies."""

import hmac
import ipaddress
import logging

from fastapi import Request

from .config import settings
from .contacts.service import Notifier

logger = logging.getLogger(__name__)


class AdminAuthRequired(Exception):
    """Raised when an admin route is called without a valid token. Handled in main.py."""

    pass


def require_admin(request: Request) -> None:
    """Check the X-Admin-Token header. An empty admin_api_token leaves admin routes open."""
    expected = settings.admin_api_token
    if not expected:
        return
    supplied = request.headers.get("X-Admin-Token", "")
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise AdminAuthRequired()


def get_notifier(request: Request) -> Notifier | None:
    """Get the notifier from app state."""
    return getattr(request.app.state, "notifier", None)


def get_client_ip(request: Request) -> str:
    """Extract client IP, supporting X-Forwarded-For behind a proxy.

    A forwarded value that is not an IP address falls back to the socket peer.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        candidate = forwarded.split(",")[0].strip()
        try:
            return str(ipaddress.ip_address(candidate))
        except ValueError:
            logger.debug("Ignoring malformed X-Forwarded-For value")
    return request.client.host if request.client else ""
