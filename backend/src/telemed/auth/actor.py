"""Caller identity."""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Platform roles."""

    ADMIN = "admin"
    AGENT = "agent"
    DOCTOR = "doctor"
    PATIENT = "patient"


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation.

    Built by the API layer from the authenticated request (or by the CLI)
    and handed to the services; services never look identity up themselves.
    """

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
