"""Commission bookkeeping on referral payments."""

from typing import Any

from telemed.auth.actor import Actor, Role
from telemed.logging_config import get_logger
from telemed.payments.models import CommissionStatus, Payment
from telemed.referral.errors import (
    CommissionStateError,
    InvalidInputError,
    PaymentNotFoundError,
    PermissionDeniedError,
)
from telemed.referral.repository import PaymentRepository
from telemed.storage.db import Database, db
from telemed.storage.models import utcnow

logger = get_logger(__name__)

# pending -> calculated -> paid, with calculated <-> on_hold
ALLOWED_TRANSITIONS = {
    CommissionStatus.PENDING: {CommissionStatus.CALCULATED},
    CommissionStatus.CALCULATED: {CommissionStatus.PAID, CommissionStatus.ON_HOLD},
    CommissionStatus.ON_HOLD: {CommissionStatus.CALCULATED},
    CommissionStatus.PAID: set(),
}


class CommissionService:
    """Service for recording and settling agent commissions."""

    def __init__(self, database: Database | None = None):
        self.db = database or db
        self.logger = get_logger(__name__)

    def update_commission(
        self,
        payment_id: str,
        agent_commission: float,
        status: CommissionStatus = CommissionStatus.CALCULATED,
    ) -> Payment:
        """Write a commission amount onto a payment.

        Args:
            payment_id: Public payment id
            agent_commission: Commission amount (non-negative)
            status: Target status; must be reachable from the current one
                unless it is unchanged

        Returns:
            Updated payment

        Raises:
            PaymentNotFoundError: Unknown payment id
            CommissionStateError: Commission already paid or illegal move
        """
        if agent_commission < 0:
            raise InvalidInputError("Commission cannot be negative")

        with self.db.session() as session:
            payment = self._load(session, payment_id)
            current = CommissionStatus(payment.commission_status)

            if current == CommissionStatus.PAID:
                raise CommissionStateError("Commission has already been paid")
            if status != current:
                self._check_transition(current, status)

            payment.agent_commission = agent_commission
            payment.commission_status = status.value
            payment.updated_at = utcnow()

        self.logger.info(
            "commission_updated",
            payment_id=payment_id,
            agent_commission=agent_commission,
            status=status.value,
        )
        return payment

    def mark_paid(self, actor: Actor, payment_id: str) -> Payment:
        """Settle a calculated commission."""
        return self._transition(actor, payment_id, CommissionStatus.PAID)

    def hold(self, actor: Actor, payment_id: str) -> Payment:
        """Put a calculated commission on hold."""
        return self._transition(actor, payment_id, CommissionStatus.ON_HOLD)

    def release(self, actor: Actor, payment_id: str) -> Payment:
        """Return a held commission to calculated."""
        return self._transition(actor, payment_id, CommissionStatus.CALCULATED)

    def agent_summary(self, actor: Actor, agent_id: str | None = None) -> dict[str, Any]:
        """Commission totals for an agent.

        Agents always see their own figures; admins pass ``agent_id``.
        """
        if actor.role == Role.AGENT:
            agent_id = actor.user_id
        elif not actor.is_admin:
            raise PermissionDeniedError("Agent or admin access required")
        elif not agent_id:
            raise InvalidInputError("Agent id is required")

        with self.db.session() as session:
            payments = PaymentRepository(session).list_for_agent(agent_id)

            by_status = {status.value: 0.0 for status in CommissionStatus}
            for payment in payments:
                by_status[payment.commission_status] += payment.agent_commission

            return {
                "agentId": agent_id,
                "totalPayments": len(payments),
                "totalDiscountGiven": sum(p.discount for p in payments),
                "totalCommission": sum(p.agent_commission for p in payments),
                "commissionByStatus": by_status,
                "transactions": [
                    {
                        "paymentId": p.payment_id,
                        "bookingRef": p.booking_ref,
                        "originalAmount": p.original_amount,
                        "discount": p.discount,
                        "finalAmount": p.final_amount,
                        "agentCommission": p.agent_commission,
                        "commissionStatus": p.commission_status,
                        "createdAt": p.created_at.isoformat() if p.created_at else None,
                    }
                    for p in payments
                ],
            }

    def _transition(self, actor: Actor, payment_id: str, target: CommissionStatus) -> Payment:
        if not actor.is_admin:
            raise PermissionDeniedError("Admin access required")

        with self.db.session() as session:
            payment = self._load(session, payment_id)
            current = CommissionStatus(payment.commission_status)
            self._check_transition(current, target)

            now = utcnow()
            payment.commission_status = target.value
            if target == CommissionStatus.PAID:
                payment.commission_paid_at = now
            payment.updated_at = now

        self.logger.info(
            "commission_status_changed",
            payment_id=payment_id,
            from_status=current.value,
            to_status=target.value,
            changed_by=actor.user_id,
        )
        return payment

    @staticmethod
    def _check_transition(current: CommissionStatus, target: CommissionStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[current]:
            raise CommissionStateError(
                f"Cannot move commission from {current.value} to {target.value}"
            )

    @staticmethod
    def _load(session, payment_id: str) -> Payment:
        payment = PaymentRepository(session).get_by_payment_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")
        return payment
