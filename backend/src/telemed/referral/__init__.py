"""Referral codes for agent-distributed consultation discounts.

- Patients apply an agent's code to a consultation fee
- The agent earns a percentage of the discount as commission
- Each redemption consumes one unit of the code's usage cap
"""

from telemed.referral.models import CodeStatus, DiscountType, ReferralCode
from telemed.referral.service import ReferralPricingEngine

__all__ = [
    "CodeStatus",
    "DiscountType",
    "ReferralCode",
    "ReferralPricingEngine",
]
