"""Admin API v1 endpoints for referral codes and commissions."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from telemed.api.deps import get_code_service, get_commission_service
from telemed.auth.actor import Actor
from telemed.auth.middleware import require_admin
from telemed.payments.service import CommissionService
from telemed.referral.admin import ReferralCodeService
from telemed.referral.errors import InvalidInputError

router = APIRouter(prefix="/admin", tags=["admin"])


# ==================== MODELS ====================


class CreateCodeRequest(BaseModel):
    """Assign a referral code to an agent."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    agent_id: str
    discount_type: str
    discount_value: float
    code: str | None = None
    max_usage: int | None = None
    commission_rate: float | None = None
    expiration_date: datetime | None = None
    start_date: datetime | None = None
    max_discount_amount: float | None = None
    min_order_amount: float = 0.0
    max_usage_per_user: int | None = None
    target_roles: list[str] = Field(default_factory=list)
    description: str | None = None


class UpdateCodeRequest(BaseModel):
    """Partial update of code settings; omitted fields stay unchanged."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    discount_type: str | None = None
    discount_value: float | None = None
    max_discount_amount: float | None = None
    min_order_amount: float | None = None
    commission_rate: float | None = None
    max_usage: int | None = None
    max_usage_per_user: int | None = None
    target_roles: list[str] | None = None
    start_date: datetime | None = None
    expiration_date: datetime | None = None
    is_active: bool | None = None
    description: str | None = None


class DeactivateCodeRequest(BaseModel):
    """Reason recorded with a deactivation."""
    reason: str


# ==================== REFERRAL CODES ====================


@router.get("/referral-codes")
async def list_referral_codes(
    page: int = Query(default=1),
    limit: int = Query(default=10),
    agent_id: str | None = Query(default=None, alias="agentId"),
    status: str = Query(default="all"),
    actor: Actor = Depends(require_admin),
    service: ReferralCodeService = Depends(get_code_service),
):
    """List referral codes, newest first."""
    data = service.list_codes(actor, agent_id=agent_id, status=status, page=page, limit=limit)
    return {"success": True, "data": data}


@router.post("/referral-codes", status_code=201)
async def create_referral_code(
    body: CreateCodeRequest,
    actor: Actor = Depends(require_admin),
    service: ReferralCodeService = Depends(get_code_service),
):
    """Assign a new referral code to an agent."""
    referral_code = service.create_code(actor, **body.model_dump())
    return {
        "success": True,
        "data": {"referralCode": referral_code.to_dict()},
        "message": f"Referral code {referral_code.code} assigned successfully",
    }


@router.get("/referral-codes/{code_id}")
async def get_referral_code(
    code_id: int,
    actor: Actor = Depends(require_admin),
    service: ReferralCodeService = Depends(get_code_service),
):
    """Get a single referral code."""
    referral_code = service.get_code(actor, code_id)
    return {"success": True, "data": {"referralCode": referral_code.to_dict()}}


@router.put("/referral-codes/{code_id}")
async def update_referral_code(
    code_id: int,
    body: UpdateCodeRequest,
    actor: Actor = Depends(require_admin),
    service: ReferralCodeService = Depends(get_code_service),
):
    """Update referral code settings."""
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise InvalidInputError("No fields to update")

    referral_code = service.update_code(actor, code_id, **changes)
    return {
        "success": True,
        "data": {"referralCode": referral_code.to_dict()},
        "message": "Referral code updated successfully",
    }


@router.post("/referral-codes/{code_id}/deactivate")
async def deactivate_referral_code(
    code_id: int,
    body: DeactivateCodeRequest,
    actor: Actor = Depends(require_admin),
    service: ReferralCodeService = Depends(get_code_service),
):
    """Deactivate a referral code; it can no longer be redeemed."""
    referral_code = service.deactivate_code(actor, code_id, body.reason)
    return {
        "success": True,
        "data": {"referralCode": referral_code.to_dict()},
        "message": f"Referral code {referral_code.code} deactivated",
    }


# ==================== COMMISSIONS ====================


@router.post("/payments/{payment_id}/commission/{action}")
async def change_commission_status(
    payment_id: str,
    action: str,
    actor: Actor = Depends(require_admin),
    service: CommissionService = Depends(get_commission_service),
):
    """Settle (``pay``), ``hold`` or ``release`` an agent commission."""
    transitions = {
        "pay": service.mark_paid,
        "hold": service.hold,
        "release": service.release,
    }
    if action not in transitions:
        raise InvalidInputError(f"Unknown commission action: {action}")

    payment = transitions[action](actor, payment_id)
    return {
        "success": True,
        "paymentId": payment.payment_id,
        "commissionStatus": payment.commission_status,
        "agentCommission": payment.agent_commission,
    }


@router.get("/agents/{agent_id}/commissions")
async def get_agent_commissions(
    agent_id: str,
    actor: Actor = Depends(require_admin),
    service: CommissionService = Depends(get_commission_service),
):
    """Commission summary for any agent."""
    return {"success": True, "data": service.agent_summary(actor, agent_id=agent_id)}
