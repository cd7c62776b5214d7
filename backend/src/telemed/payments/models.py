"""Payment database model."""

from enum import Enum

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String

from telemed.storage.models import Base, utcnow


class CommissionStatus(str, Enum):
    """Agent commission lifecycle."""
    PENDING = "pending"
    CALCULATED = "calculated"
    PAID = "paid"
    ON_HOLD = "on_hold"


class Payment(Base):
    """Consultation payment priced with a referral code."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    payment_id = Column(String(40), unique=True, nullable=False, index=True)
    booking_ref = Column(String(64), unique=True, nullable=False)  # One redemption per booking
    patient_id = Column(String(64), nullable=False, index=True)

    referral_code_id = Column(Integer, ForeignKey("referral_codes.id"), nullable=False, index=True)
    agent_id = Column(String(64), nullable=False, index=True)

    # Pricing snapshot
    original_amount = Column(Float, nullable=False)
    discount = Column(Float, nullable=False, default=0.0)
    final_amount = Column(Float, nullable=False)
    savings_percentage = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=False, default="INR")

    # Commission
    commission_rate = Column(Float, nullable=False, default=0.0)
    agent_commission = Column(Float, nullable=False, default=0.0)
    commission_status = Column(String(20), nullable=False, default=CommissionStatus.PENDING.value)
    commission_paid_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Payment(payment_id={self.payment_id}, final={self.final_amount})>"
