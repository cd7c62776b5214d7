"""Rate limiting for the referral endpoints."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from telemed.settings import settings


def actor_or_address(request: Request) -> str:
    """Limit identified callers per actor, anonymous ones per client IP."""
    actor_id = request.headers.get("X-Actor-Id", "").strip()
    if actor_id:
        return f"actor:{actor_id}"
    return get_remote_address(request)


# Shared by every router; only enforced in production
limiter = Limiter(
    key_func=actor_or_address,
    default_limits=["200/minute"],
    storage_uri="memory://",
    enabled=settings.env == "production",
)
