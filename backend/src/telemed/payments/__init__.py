"""Payments carrying referral pricing and agent commission."""

from telemed.payments.models import CommissionStatus, Payment
from telemed.payments.service import CommissionService

__all__ = ["CommissionStatus", "Payment", "CommissionService"]
