"""Actor dependencies for FastAPI."""

from fastapi import Depends, Header, HTTPException, status

from telemed.auth.actor import Actor, Role
from telemed.logging_config import bind_request_context, get_logger

logger = get_logger(__name__)


async def get_current_actor(
    x_actor_id: str | None = Header(default=None, alias="X-Actor-Id"),
    x_actor_role: str | None = Header(default=None, alias="X-Actor-Role"),
) -> Actor | None:
    """Resolve the actor forwarded by the upstream auth layer.

    Args:
        x_actor_id: Authenticated user id
        x_actor_role: Authenticated user role

    Returns:
        Actor or None if the headers are missing or malformed
    """
    if not x_actor_id or not x_actor_role:
        return None

    try:
        role = Role(x_actor_role.strip().lower())
    except ValueError:
        logger.warning("actor_role_unknown", role=x_actor_role)
        return None

    actor = Actor(user_id=x_actor_id.strip(), role=role)
    bind_request_context(actor_id=actor.user_id, actor_role=role.value)
    return actor


def require_actor(actor: Actor | None = Depends(get_current_actor)) -> Actor:
    """Require an identified caller - raises 401 otherwise."""
    if not actor:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return actor


def require_admin(actor: Actor = Depends(require_actor)) -> Actor:
    """Require admin privileges.

    Raises:
        HTTPException: 403 if not admin
    """
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor


def require_agent(actor: Actor = Depends(require_actor)) -> Actor:
    """Require an agent caller."""
    if actor.role != Role.AGENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agent access required",
        )
    return actor
