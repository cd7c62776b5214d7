"""Service dependencies bound to the request's database."""

from fastapi import Depends

from telemed.payments.service import CommissionService
from telemed.referral.admin import ReferralCodeService
from telemed.referral.service import ReferralPricingEngine
from telemed.storage.db import Database, get_database


def get_engine(database: Database = Depends(get_database)) -> ReferralPricingEngine:
    return ReferralPricingEngine(database)


def get_code_service(database: Database = Depends(get_database)) -> ReferralCodeService:
    return ReferralCodeService(database)


def get_commission_service(database: Database = Depends(get_database)) -> CommissionService:
    return CommissionService(database)
