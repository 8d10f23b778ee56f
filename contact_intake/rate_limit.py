"""Rate limiting singleton using slowapi."""

from fastapi import Request
from slowapi import Limiter

from .dependencies import get_client_ip


def _get_real_ip(request: Request) -> str:
    return get_client_ip(request) or "unknown"


limiter = Limiter(key_func=_get_real_ip)
