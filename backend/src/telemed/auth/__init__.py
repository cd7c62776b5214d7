"""Actor identity passed explicitly into every service call."""

from telemed.auth.actor import Actor, Role

__all__ = ["Actor", "Role"]
