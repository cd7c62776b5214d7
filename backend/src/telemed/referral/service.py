"""Referral pricing engine: validate and redeem codes against an order."""

import math
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError

from telemed.auth.actor import Actor, Role
from telemed.logging_config import get_logger
from telemed.payments.models import CommissionStatus, Payment
from telemed.referral.errors import (
    CodeNotFoundError,
    ExpiredCodeError,
    InactiveCodeError,
    InvalidInputError,
    MinimumOrderNotMetError,
    RoleNotEligibleError,
    UsageLimitExceededError,
    UserUsageLimitExceededError,
)
from telemed.referral.models import CodeStatus, ReferralCode
from telemed.referral.pricing import PricingResult, calculate_commission, price_order
from telemed.referral.repository import PaymentRepository, ReferralCodeRepository
from telemed.settings import settings
from telemed.storage.db import Database, db
from telemed.storage.models import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class Commission:
    """Agent earnings attached to a payment."""

    agent_commission: float
    commission_rate: float
    commission_status: CommissionStatus

    def to_wire(self) -> dict[str, Any]:
        return {
            "agentCommission": self.agent_commission,
            "commissionRate": self.commission_rate,
            "commissionStatus": self.commission_status.value,
        }


@dataclass(frozen=True)
class ReferralQuote:
    """Outcome of a successful validation."""

    code: str
    referral_code_id: int
    agent_id: str
    commission_rate: float
    pricing: PricingResult
    usage_count: int
    max_usage: int
    referral_code: dict[str, Any]

    @property
    def remaining_usage(self) -> int:
        return max(self.max_usage - self.usage_count, 0)


@dataclass(frozen=True)
class RedemptionResult:
    """Outcome of a redemption, or of replaying an earlier one."""

    payment_id: str
    pricing: PricingResult
    commission: Commission
    replayed: bool = False


def _check_input(code: Any, order_amount: Any) -> tuple[str, float]:
    """Normalise request input or raise InvalidInputError."""
    if not isinstance(code, str) or not code.strip():
        raise InvalidInputError("Referral code is required")

    if isinstance(order_amount, bool) or not isinstance(order_amount, (int, float)):
        raise InvalidInputError("Valid order amount is required")
    if not math.isfinite(order_amount) or order_amount <= 0:
        raise InvalidInputError("Valid order amount is required")

    return code.strip(), float(order_amount)


def _raise_if_unavailable(referral_code: ReferralCode, now: datetime) -> None:
    """Raise the error matching a non-active code status."""
    status = referral_code.status_at(now)

    if status == CodeStatus.INACTIVE:
        if referral_code.is_active:
            raise InactiveCodeError("Referral code is not active yet")
        raise InactiveCodeError("Referral code is no longer active")
    if status == CodeStatus.EXPIRED:
        raise ExpiredCodeError("Referral code has expired")
    if status == CodeStatus.EXHAUSTED:
        raise UsageLimitExceededError(referral_code.code, referral_code.max_usage)


def _payment_to_result(payment: Payment, replayed: bool) -> RedemptionResult:
    return RedemptionResult(
        payment_id=payment.payment_id,
        pricing=PricingResult(
            original_amount=payment.original_amount,
            discount=payment.discount,
            final_amount=payment.final_amount,
            savings_percentage=payment.savings_percentage,
        ),
        commission=Commission(
            agent_commission=payment.agent_commission,
            commission_rate=payment.commission_rate,
            commission_status=CommissionStatus(payment.commission_status),
        ),
        replayed=replayed,
    )


def _generate_payment_id() -> str:
    return f"PAY{secrets.token_hex(8).upper()}"


class ReferralPricingEngine:
    """Validates referral codes, prices orders and consumes code usage."""

    def __init__(self, database: Database | None = None):
        """Initialize the engine.

        Args:
            database: Database to use (defaults to the global instance)
        """
        self.db = database or db
        self.logger = get_logger(__name__)

    def validate(
        self,
        code: str,
        order_amount: float,
        actor: Actor,
        now: datetime | None = None,
    ) -> ReferralQuote:
        """Check that ``code`` applies to an order and price it.

        Read-only: usage is consumed by ``redeem`` only.

        Args:
            code: Code as entered by the user (exact match)
            order_amount: Consultation fee, must be positive
            actor: Caller, checked against role and per-user limits
            now: Reference time (defaults to current UTC time)

        Returns:
            Quote with pricing, owning agent and commission rate

        Raises:
            InvalidInputError: Empty code or non-positive amount
            CodeNotFoundError: Unknown code
            InactiveCodeError: Deactivated or not yet started
            ExpiredCodeError: Past its expiration date
            UsageLimitExceededError: ``usage_count >= max_usage``
            MinimumOrderNotMetError: Order below ``min_order_amount``
            RoleNotEligibleError: Actor role not targeted by the code
            UserUsageLimitExceededError: Actor's own uses exhausted
        """
        code, order_amount = _check_input(code, order_amount)
        now = now or utcnow()

        with self.db.session() as session:
            referral_code = ReferralCodeRepository(session).find_by_code(code)
            if referral_code is None:
                raise CodeNotFoundError(code)

            _raise_if_unavailable(referral_code, now)

            if order_amount < referral_code.min_order_amount:
                raise MinimumOrderNotMetError(referral_code.min_order_amount)

            target_roles = referral_code.target_roles or []
            if target_roles and actor.role.value not in target_roles:
                raise RoleNotEligibleError(
                    "This referral code is not applicable for your user type"
                )

            # Per-user caps bind patients only
            if actor.role == Role.PATIENT and referral_code.max_usage_per_user is not None:
                used = PaymentRepository(session).count_for_user(
                    referral_code.id, actor.user_id
                )
                if used >= referral_code.max_usage_per_user:
                    raise UserUsageLimitExceededError(
                        f"You have already used this referral code "
                        f"{referral_code.max_usage_per_user} time(s)"
                    )

            pricing = price_order(
                referral_code.discount_type,
                referral_code.discount_value,
                order_amount,
                referral_code.max_discount_amount,
            )
            quote = ReferralQuote(
                code=referral_code.code,
                referral_code_id=referral_code.id,
                agent_id=referral_code.agent_id,
                commission_rate=referral_code.commission_rate,
                pricing=pricing,
                usage_count=referral_code.usage_count,
                max_usage=referral_code.max_usage,
                referral_code=referral_code.to_dict(),
            )

        self.logger.info(
            "referral_validated",
            code=code,
            actor_id=actor.user_id,
            order_amount=order_amount,
            discount=pricing.discount,
        )
        return quote

    def redeem(
        self,
        code: str,
        order_amount: float,
        actor: Actor,
        booking_ref: str,
        now: datetime | None = None,
    ) -> RedemptionResult:
        """Apply ``code`` to a booking and record the agent commission.

        All validation is re-run at redemption time. The usage increment
        and the payment row are written in one transaction, so a failed
        payment write never leaves a consumed use behind. A booking that
        was already redeemed is returned as a replay without touching
        usage again.

        Args:
            code: Code as entered by the user
            order_amount: Consultation fee
            actor: Paying user
            booking_ref: Caller's id for the logical booking
            now: Reference time (defaults to current UTC time)

        Returns:
            Redemption result with pricing, commission and payment id

        Raises:
            ReferralError: Same kinds as ``validate``; the caller must then
                charge the full ``order_amount``
        """
        if not isinstance(booking_ref, str) or not booking_ref.strip():
            raise InvalidInputError("Booking reference is required")
        booking_ref = booking_ref.strip()

        code, order_amount = _check_input(code, order_amount)
        replay = self._find_redemption(booking_ref, code, order_amount, actor)
        if replay is not None:
            return replay

        quote = self.validate(code, order_amount, actor, now=now)
        now = now or utcnow()

        agent_commission = calculate_commission(quote.pricing.discount, quote.commission_rate)
        commission = Commission(
            agent_commission=agent_commission,
            commission_rate=quote.commission_rate,
            commission_status=CommissionStatus.CALCULATED,
        )

        try:
            with self.db.session() as session:
                codes = ReferralCodeRepository(session)
                applied = codes.atomic_increment_usage(
                    quote.code,
                    now,
                    discount=quote.pricing.discount,
                    commission=agent_commission,
                )
                if not applied:
                    self._raise_rejection(codes, quote.code, now, actor)

                payment = PaymentRepository(session).add(
                    Payment(
                        payment_id=_generate_payment_id(),
                        booking_ref=booking_ref,
                        patient_id=actor.user_id,
                        referral_code_id=quote.referral_code_id,
                        agent_id=quote.agent_id,
                        original_amount=quote.pricing.original_amount,
                        discount=quote.pricing.discount,
                        final_amount=quote.pricing.final_amount,
                        savings_percentage=quote.pricing.savings_percentage,
                        currency=settings.currency,
                        commission_rate=commission.commission_rate,
                        agent_commission=commission.agent_commission,
                        commission_status=commission.commission_status.value,
                    )
                )
                payment_id = payment.payment_id
        except IntegrityError:
            # Concurrent retry of the same booking won the insert
            replay = self._find_redemption(booking_ref, code, order_amount, actor)
            if replay is None:
                raise
            return replay

        self.logger.info(
            "referral_redeemed",
            code=quote.code,
            actor_id=actor.user_id,
            booking_ref=booking_ref,
            payment_id=payment_id,
            discount=quote.pricing.discount,
            agent_commission=agent_commission,
        )
        return RedemptionResult(
            payment_id=payment_id,
            pricing=quote.pricing,
            commission=commission,
        )

    def quick_check(self, code: str, order_amount: float = 0.0) -> dict[str, Any]:
        """Anonymous availability check without user-specific rules.

        Args:
            code: Code to look up
            order_amount: Optional amount checked against the minimum

        Returns:
            Dict with ``valid``, ``exists`` and public code details
        """
        if not isinstance(code, str) or not code.strip():
            raise InvalidInputError("Referral code is required")

        with self.db.session() as session:
            referral_code = ReferralCodeRepository(session).find_by_code(code.strip())
            if referral_code is None or referral_code.status != CodeStatus.ACTIVE:
                return {
                    "success": False,
                    "valid": False,
                    "exists": referral_code is not None,
                }

            return {
                "success": True,
                "valid": order_amount >= referral_code.min_order_amount,
                "exists": True,
                "basicInfo": {
                    "code": referral_code.code,
                    "discountType": referral_code.discount_type,
                    "discountValue": referral_code.discount_value,
                    "minOrderAmount": referral_code.min_order_amount,
                    "expirationDate": (
                        referral_code.expiration_date.isoformat()
                        if referral_code.expiration_date
                        else None
                    ),
                },
            }

    def _find_redemption(
        self,
        booking_ref: str,
        code: str,
        order_amount: float,
        actor: Actor,
    ) -> RedemptionResult | None:
        """Stored redemption for ``booking_ref``, if the request repeats it.

        Raises:
            InvalidInputError: The booking was redeemed by another actor,
                with another code, or at another amount
        """
        with self.db.session() as session:
            payment = PaymentRepository(session).get_by_booking_ref(booking_ref)
            if payment is None:
                return None

            referral_code = ReferralCodeRepository(session).get_by_id(payment.referral_code_id)
            if (
                payment.patient_id != actor.user_id
                or referral_code is None
                or referral_code.code != code
                or payment.original_amount != order_amount
            ):
                self.logger.warning(
                    "referral_booking_ref_conflict",
                    booking_ref=booking_ref,
                    actor_id=actor.user_id,
                    payment_id=payment.payment_id,
                )
                raise InvalidInputError("Booking reference already used with different terms")

            self.logger.info(
                "referral_redemption_replayed",
                booking_ref=booking_ref,
                payment_id=payment.payment_id,
            )
            return _payment_to_result(payment, replayed=True)

    def _raise_rejection(
        self,
        codes: ReferralCodeRepository,
        code: str,
        now: datetime,
        actor: Actor,
    ) -> None:
        """Explain why the conditional increment matched no row."""
        referral_code = codes.find_by_code(code)
        self.logger.info("referral_redeem_rejected", code=code, actor_id=actor.user_id)

        if referral_code is None:
            raise CodeNotFoundError(code)
        _raise_if_unavailable(referral_code, now)
        raise UsageLimitExceededError(referral_code.code, referral_code.max_usage)
