"""Agent API v1 endpoints."""

from fastapi import APIRouter, Depends, Query

from telemed.api.deps import get_code_service, get_commission_service
from telemed.auth.actor import Actor
from telemed.auth.middleware import require_agent
from telemed.payments.service import CommissionService
from telemed.referral.admin import ReferralCodeService

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("/me/codes")
async def get_my_codes(
    page: int = Query(default=1),
    limit: int = Query(default=50),
    actor: Actor = Depends(require_agent),
    service: ReferralCodeService = Depends(get_code_service),
):
    """Referral codes assigned to the calling agent, with usage stats."""
    return {"success": True, "data": service.list_agent_codes(actor, page=page, limit=limit)}


@router.get("/me/commissions")
async def get_my_commissions(
    actor: Actor = Depends(require_agent),
    service: CommissionService = Depends(get_commission_service),
):
    """Commission earned by the calling agent."""
    return {"success": True, "data": service.agent_summary(actor)}
