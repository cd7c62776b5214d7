"""Referral code administration: assign, edit, deactivate and list codes."""

import secrets
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError

from telemed.auth.actor import Actor, Role
from telemed.logging_config import get_logger
from telemed.referral.errors import (
    DuplicateCodeError,
    InvalidInputError,
    PermissionDeniedError,
    ReferralCodeMissingError,
)
from telemed.referral.models import CodeStatus, DiscountType, ReferralCode
from telemed.referral.repository import ReferralCodeRepository, page_count
from telemed.settings import settings
from telemed.storage.db import Database, db
from telemed.storage.models import to_naive_utc, utcnow

logger = get_logger(__name__)

# Fields an admin may change after creation
UPDATABLE_FIELDS = {
    "discount_type",
    "discount_value",
    "max_discount_amount",
    "min_order_amount",
    "commission_rate",
    "max_usage",
    "max_usage_per_user",
    "target_roles",
    "start_date",
    "expiration_date",
    "is_active",
    "description",
}

# Updatable fields that may be cleared with None
CLEARABLE_FIELDS = {
    "max_discount_amount",
    "max_usage_per_user",
    "start_date",
    "expiration_date",
    "description",
}


def _generate_unique_code(length: int = 8) -> str:
    """Generate a readable referral code.

    Uses uppercase letters and digits, avoiding confusing characters.
    """
    # Exclude confusing characters: 0, O, I, l, 1
    alphabet = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise PermissionDeniedError("Admin access required")


def _validate_terms(
    discount_type: str,
    discount_value: float,
    commission_rate: float,
    max_usage: int,
    max_usage_per_user: int | None,
    min_order_amount: float,
    max_discount_amount: float | None,
    target_roles: list[str],
    start_date: datetime | None,
    expiration_date: datetime | None,
) -> None:
    """Reject inconsistent code terms with InvalidInputError."""
    if discount_type not in {t.value for t in DiscountType}:
        raise InvalidInputError("Invalid discount type. Must be percentage or fixed")

    if discount_type == DiscountType.PERCENTAGE.value:
        if not 1 <= discount_value <= 100:
            raise InvalidInputError("Percentage discount must be between 1 and 100")
    elif discount_value <= 0:
        raise InvalidInputError("Fixed discount must be positive")

    if not 0 <= commission_rate <= 100:
        raise InvalidInputError("Commission rate must be between 0 and 100")
    if max_usage < 1:
        raise InvalidInputError("Max usage must be at least 1")
    if max_usage_per_user is not None and max_usage_per_user < 1:
        raise InvalidInputError("Max usage per user must be at least 1")
    if min_order_amount < 0:
        raise InvalidInputError("Minimum order amount cannot be negative")
    if max_discount_amount is not None and max_discount_amount <= 0:
        raise InvalidInputError("Max discount amount must be positive")

    known_roles = {r.value for r in Role}
    unknown = [role for role in target_roles if role not in known_roles]
    if unknown:
        raise InvalidInputError(f"Unknown target roles: {', '.join(unknown)}")

    if start_date and expiration_date and expiration_date < start_date:
        raise InvalidInputError("Expiration date must be after start date")


class ReferralCodeService:
    """Service for admins assigning codes to agents, and agents viewing theirs."""

    def __init__(self, database: Database | None = None):
        self.db = database or db
        self.logger = get_logger(__name__)

    def create_code(
        self,
        actor: Actor,
        agent_id: str,
        discount_type: str,
        discount_value: float,
        code: str | None = None,
        max_usage: int | None = None,
        commission_rate: float | None = None,
        expiration_date: datetime | None = None,
        start_date: datetime | None = None,
        max_discount_amount: float | None = None,
        min_order_amount: float = 0.0,
        max_usage_per_user: int | None = None,
        target_roles: list[str] | None = None,
        description: str | None = None,
    ) -> ReferralCode:
        """Assign a new referral code to an agent.

        Args:
            actor: Admin performing the assignment
            agent_id: Owning agent
            discount_type: ``percentage`` or ``fixed``
            discount_value: Percent (1-100) or currency amount
            code: Code string; generated when omitted
            max_usage: Usage cap (defaults to ``settings.default_max_usage``)
            commission_rate: Percent of the discount paid to the agent

        Returns:
            Created code

        Raises:
            PermissionDeniedError: Actor is not an admin
            InvalidInputError: Inconsistent terms
            DuplicateCodeError: Code string already taken
        """
        _require_admin(actor)

        if not agent_id or not agent_id.strip():
            raise InvalidInputError("Agent id is required")

        max_usage = settings.default_max_usage if max_usage is None else max_usage
        if commission_rate is None:
            commission_rate = settings.default_commission_rate
        target_roles = list(target_roles or [])
        start_date = to_naive_utc(start_date)
        expiration_date = to_naive_utc(expiration_date)

        _validate_terms(
            discount_type,
            discount_value,
            commission_rate,
            max_usage,
            max_usage_per_user,
            min_order_amount,
            max_discount_amount,
            target_roles,
            start_date,
            expiration_date,
        )

        try:
            with self.db.session() as session:
                codes = ReferralCodeRepository(session)

                if code and code.strip():
                    final_code = code.strip().upper()
                    if codes.find_by_code(final_code):
                        raise DuplicateCodeError("Referral code already exists", code=final_code)
                else:
                    final_code = _generate_unique_code(settings.referral_code_length)
                    attempts = 0
                    while codes.find_by_code(final_code) and attempts < 10:
                        final_code = _generate_unique_code(settings.referral_code_length)
                        attempts += 1

                referral_code = codes.add(
                    ReferralCode(
                        code=final_code,
                        agent_id=agent_id.strip(),
                        discount_type=discount_type,
                        discount_value=discount_value,
                        max_discount_amount=max_discount_amount,
                        min_order_amount=min_order_amount,
                        commission_rate=commission_rate,
                        usage_count=0,
                        max_usage=max_usage,
                        max_usage_per_user=max_usage_per_user,
                        target_roles=target_roles,
                        is_active=True,
                        start_date=start_date,
                        expiration_date=expiration_date,
                        description=description,
                        assigned_by=actor.user_id,
                    )
                )
        except IntegrityError as exc:
            raise DuplicateCodeError("Referral code already exists") from exc

        self.logger.info(
            "referral_code_created",
            code=referral_code.code,
            agent_id=referral_code.agent_id,
            assigned_by=actor.user_id,
        )
        return referral_code

    def update_code(self, actor: Actor, code_id: int, **changes: Any) -> ReferralCode:
        """Update code settings.

        Raises:
            ReferralCodeMissingError: Unknown id
            InvalidInputError: Unknown or null field, inconsistent terms,
                ``is_active=False`` (deactivation records a reason), or
                ``max_usage`` below the current usage count
        """
        _require_admin(actor)

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        cleared = sorted(f for f, v in changes.items() if v is None and f not in CLEARABLE_FIELDS)
        if cleared:
            raise InvalidInputError(f"Fields cannot be null: {', '.join(cleared)}")
        if changes.get("is_active") is False:
            raise InvalidInputError("Use deactivation to withdraw a code")

        with self.db.session() as session:
            referral_code = ReferralCodeRepository(session).get_by_id(code_id)
            if referral_code is None:
                raise ReferralCodeMissingError(f"Referral code {code_id} not found")

            merged = {field: getattr(referral_code, field) for field in UPDATABLE_FIELDS}
            merged.update(changes)
            merged["target_roles"] = list(merged["target_roles"] or [])
            merged["start_date"] = to_naive_utc(merged["start_date"])
            merged["expiration_date"] = to_naive_utc(merged["expiration_date"])

            _validate_terms(
                merged["discount_type"],
                merged["discount_value"],
                merged["commission_rate"],
                merged["max_usage"],
                merged["max_usage_per_user"],
                merged["min_order_amount"],
                merged["max_discount_amount"],
                merged["target_roles"],
                merged["start_date"],
                merged["expiration_date"],
            )
            if merged["max_usage"] < referral_code.usage_count:
                raise InvalidInputError("Max usage cannot be less than current usage count")

            for field, value in changes.items():
                setattr(referral_code, field, merged[field])

            if changes.get("is_active") is True:
                referral_code.deactivated_at = None
                referral_code.deactivated_by = None
                referral_code.deactivation_reason = None

            referral_code.updated_at = utcnow()
            session.flush()

        self.logger.info(
            "referral_code_updated",
            code_id=code_id,
            fields=sorted(changes),
            updated_by=actor.user_id,
        )
        return referral_code

    def deactivate_code(self, actor: Actor, code_id: int, reason: str) -> ReferralCode:
        """Deactivate a code; codes are never deleted."""
        _require_admin(actor)

        if not reason or not reason.strip():
            raise InvalidInputError("Deactivation reason is required")

        with self.db.session() as session:
            referral_code = ReferralCodeRepository(session).get_by_id(code_id)
            if referral_code is None:
                raise ReferralCodeMissingError(f"Referral code {code_id} not found")

            now = utcnow()
            referral_code.is_active = False
            referral_code.deactivated_at = now
            referral_code.deactivated_by = actor.user_id
            referral_code.deactivation_reason = reason.strip()
            referral_code.updated_at = now

        self.logger.info(
            "referral_code_deactivated",
            code=referral_code.code,
            deactivated_by=actor.user_id,
            reason=reason,
        )
        return referral_code

    def get_code(self, actor: Actor, code_id: int) -> ReferralCode:
        _require_admin(actor)
        with self.db.session() as session:
            referral_code = ReferralCodeRepository(session).get_by_id(code_id)
            if referral_code is None:
                raise ReferralCodeMissingError(f"Referral code {code_id} not found")
            return referral_code

    def list_codes(
        self,
        actor: Actor,
        agent_id: str | None = None,
        status: str = "all",
        page: int = 1,
        limit: int = 10,
    ) -> dict[str, Any]:
        """List codes with pagination.

        Returns:
            Dict with ``codes`` and ``pagination`` ({current, pages, total})
        """
        _require_admin(actor)

        if status != "all" and status not in {s.value for s in CodeStatus}:
            raise InvalidInputError(f"Unknown status filter: {status}")
        if page < 1 or limit < 1:
            raise InvalidInputError("Page and limit must be positive")

        with self.db.session() as session:
            codes, total = ReferralCodeRepository(session).list_codes(
                utcnow(), agent_id=agent_id, status=status, page=page, limit=limit
            )
            return {
                "codes": [c.to_dict() for c in codes],
                "pagination": {
                    "current": page,
                    "pages": page_count(total, limit),
                    "total": total,
                },
            }

    def list_agent_codes(self, actor: Actor, page: int = 1, limit: int = 50) -> dict[str, Any]:
        """Codes owned by the calling agent, active or not, newest first.

        Returns:
            Dict with ``codes`` and ``pagination``, as ``list_codes``
        """
        if actor.role != Role.AGENT:
            raise PermissionDeniedError("Agent access required")
        if page < 1 or limit < 1:
            raise InvalidInputError("Page and limit must be positive")

        with self.db.session() as session:
            codes, total = ReferralCodeRepository(session).list_codes(
                utcnow(), agent_id=actor.user_id, page=page, limit=limit
            )
            return {
                "codes": [c.to_dict() for c in codes],
                "pagination": {
                    "current": page,
                    "pages": page_count(total, limit),
                    "total": total,
                },
            }
