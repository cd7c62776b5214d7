"""Referral code database models."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String, Text

from telemed.storage.models import Base, utcnow


class DiscountType(str, Enum):
    """How ``discount_value`` is interpreted."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CodeStatus(str, Enum):
    """Applicability of a code at a point in time."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


class ReferralCode(Base):
    """Discount code owned by an agent.

    Patients apply it to a consultation fee; every successful redemption
    consumes one unit of ``max_usage`` and earns the agent
    ``commission_rate`` percent of the discount.
    """
    __tablename__ = "referral_codes"

    id = Column(Integer, primary_key=True)
    code = Column(String(32), unique=True, nullable=False, index=True)
    agent_id = Column(String(64), nullable=False, index=True)

    # Pricing
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Float, nullable=False)
    max_discount_amount = Column(Float, nullable=True)  # Caps percentage discounts
    min_order_amount = Column(Float, nullable=False, default=0.0)
    commission_rate = Column(Float, nullable=False)  # Percent of the discount

    # Limits
    usage_count = Column(Integer, nullable=False, default=0)
    max_usage = Column(Integer, nullable=False)
    max_usage_per_user = Column(Integer, nullable=True)  # None = unlimited
    target_roles = Column(JSON, nullable=False, default=list)  # Empty = any role

    # Validity
    is_active = Column(Boolean, nullable=False, default=True)
    start_date = Column(DateTime, nullable=True)
    expiration_date = Column(DateTime, nullable=True)

    # Lifetime statistics
    total_discount_given = Column(Float, nullable=False, default=0.0)
    total_commission_earned = Column(Float, nullable=False, default=0.0)
    last_used_at = Column(DateTime, nullable=True)

    # Administration
    description = Column(Text, nullable=True)
    assigned_by = Column(String(64), nullable=True)
    deactivated_at = Column(DateTime, nullable=True)
    deactivated_by = Column(String(64), nullable=True)
    deactivation_reason = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<ReferralCode(code={self.code}, usage={self.usage_count}/{self.max_usage})>"

    def status_at(self, now: datetime) -> CodeStatus:
        """Applicability at ``now``; deactivation wins over expiry over exhaustion."""
        if not self.is_active or (self.start_date is not None and self.start_date > now):
            return CodeStatus.INACTIVE
        if self.expiration_date is not None and self.expiration_date < now:
            return CodeStatus.EXPIRED
        if self.usage_count >= self.max_usage:
            return CodeStatus.EXHAUSTED
        return CodeStatus.ACTIVE

    @property
    def status(self) -> CodeStatus:
        return self.status_at(utcnow())

    @property
    def remaining_usage(self) -> int:
        return max(self.max_usage - self.usage_count, 0)

    def to_dict(self) -> dict:
        """Convert to the camelCase shape the dashboards consume."""
        return {
            "id": self.id,
            "code": self.code,
            "agentId": self.agent_id,
            "discountType": self.discount_type,
            "discountValue": self.discount_value,
            "maxDiscountAmount": self.max_discount_amount,
            "minOrderAmount": self.min_order_amount,
            "commissionRate": self.commission_rate,
            "usageCount": self.usage_count,
            "maxUsage": self.max_usage,
            "maxUsagePerUser": self.max_usage_per_user,
            "targetRoles": list(self.target_roles or []),
            "isActive": self.is_active,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "expirationDate": self.expiration_date.isoformat() if self.expiration_date else None,
            "status": self.status.value,
            "totalDiscountGiven": self.total_discount_given,
            "totalCommissionEarned": self.total_commission_earned,
            "lastUsedAt": self.last_used_at.isoformat() if self.last_used_at else None,
            "description": self.description,
            "assignedBy": self.assigned_by,
            "deactivatedAt": self.deactivated_at.isoformat() if self.deactivated_at else None,
            "deactivationReason": self.deactivation_reason,
        }
