"""Repository layer for referral codes and payments."""

import math
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from telemed.logging_config import get_logger
from telemed.payments.models import CommissionStatus, Payment
from telemed.referral.models import CodeStatus, ReferralCode

logger = get_logger(__name__)


class ReferralCodeRepository:
    """Repository for ReferralCode entities."""

    def __init__(self, session: Session):
        self.session = session

    def find_by_code(self, code: str) -> ReferralCode | None:
        """Get a code by exact string match."""
        return self.session.scalars(
            select(ReferralCode).where(ReferralCode.code == code)
        ).first()

    def get_by_id(self, code_id: int) -> ReferralCode | None:
        """Get a code by primary key."""
        return self.session.get(ReferralCode, code_id)

    def add(self, referral_code: ReferralCode) -> ReferralCode:
        """Persist a new code and assign its id."""
        self.session.add(referral_code)
        self.session.flush()
        return referral_code

    def list_codes(
        self,
        now: datetime,
        agent_id: str | None = None,
        status: str = "all",
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[ReferralCode], int]:
        """List codes newest first.

        Args:
            now: Reference time for ``status`` filtering
            agent_id: Only codes owned by this agent
            status: ``all`` or a CodeStatus value
            page: 1-based page number
            limit: Page size

        Returns:
            (codes on the page, total matching)
        """
        query = select(ReferralCode)
        if agent_id:
            query = query.where(ReferralCode.agent_id == agent_id)
        if status != "all":
            query = query.where(_status_clause(CodeStatus(status), now))

        total = self.session.scalar(
            select(func.count()).select_from(query.subquery())
        )
        codes = self.session.scalars(
            query.order_by(ReferralCode.created_at.desc(), ReferralCode.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(codes), total or 0

    def atomic_increment_usage(
        self,
        code: str,
        now: datetime,
        discount: float = 0.0,
        commission: float = 0.0,
    ) -> bool:
        """Consume one use of ``code`` if it is still applicable.

        A single conditional UPDATE: the availability checks and the
        increment happen in one statement, so concurrent redemptions from
        any number of processes can never push ``usage_count`` past
        ``max_usage``.

        Returns:
            True if the increment was applied
        """
        result = self.session.execute(
            update(ReferralCode)
            .where(
                ReferralCode.code == code,
                _status_clause(CodeStatus.ACTIVE, now),
            )
            .values(
                usage_count=ReferralCode.usage_count + 1,
                total_discount_given=ReferralCode.total_discount_given + discount,
                total_commission_earned=ReferralCode.total_commission_earned + commission,
                last_used_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        applied = result.rowcount == 1
        logger.debug("usage_increment_attempted", code=code, applied=applied)
        return applied


class PaymentRepository:
    """Repository for Payment entities."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_payment_id(self, payment_id: str) -> Payment | None:
        return self.session.scalars(
            select(Payment).where(Payment.payment_id == payment_id)
        ).first()

    def get_by_booking_ref(self, booking_ref: str) -> Payment | None:
        return self.session.scalars(
            select(Payment).where(Payment.booking_ref == booking_ref)
        ).first()

    def count_for_user(self, referral_code_id: int, patient_id: str) -> int:
        """How many times a user has redeemed a code."""
        return self.session.scalar(
            select(func.count(Payment.id)).where(
                Payment.referral_code_id == referral_code_id,
                Payment.patient_id == patient_id,
            )
        ) or 0

    def add(self, payment: Payment) -> Payment:
        self.session.add(payment)
        self.session.flush()
        return payment

    def list_for_agent(
        self,
        agent_id: str,
        status: CommissionStatus | None = None,
    ) -> list[Payment]:
        query = select(Payment).where(Payment.agent_id == agent_id)
        if status is not None:
            query = query.where(Payment.commission_status == status.value)
        return list(self.session.scalars(query.order_by(Payment.created_at.desc())))


def _status_clause(status: CodeStatus, now: datetime):
    """SQL predicate matching ``ReferralCode.status_at(now) == status``."""
    started = or_(ReferralCode.start_date.is_(None), ReferralCode.start_date <= now)
    unexpired = or_(
        ReferralCode.expiration_date.is_(None), ReferralCode.expiration_date >= now
    )
    under_cap = ReferralCode.usage_count < ReferralCode.max_usage

    if status == CodeStatus.INACTIVE:
        return or_(ReferralCode.is_active.is_(False), ~started)
    if status == CodeStatus.EXPIRED:
        return ReferralCode.is_active.is_(True) & started & ~unexpired
    if status == CodeStatus.EXHAUSTED:
        return ReferralCode.is_active.is_(True) & started & unexpired & ~under_cap
    return ReferralCode.is_active.is_(True) & started & unexpired & under_cap


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
