"""Referral API v1 endpoints used by the booking flow."""

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from telemed.api.deps import get_engine
from telemed.api.rate_limit import limiter
from telemed.auth.actor import Actor
from telemed.auth.middleware import require_actor
from telemed.logging_config import get_logger
from telemed.referral.errors import InvalidInputError, ReferralError
from telemed.referral.pricing import full_price
from telemed.referral.service import ReferralPricingEngine
from telemed.settings import settings

logger = get_logger(__name__)

router = APIRouter(prefix="/referrals", tags=["referrals"])


# ==================== MODELS ====================


class ValidateCodeRequest(BaseModel):
    """Request to validate a referral code against an order."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: str | None = None
    order_amount: float | None = None


class RedeemCodeRequest(BaseModel):
    """Request to apply a referral code to a booking."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    code: str | None = None
    order_amount: float | None = None
    booking_ref: str | None = None


# ==================== ENDPOINTS ====================


@router.post("/validate")
@limiter.limit(settings.validate_rate_limit)
async def validate_referral_code(
    request: Request,
    body: ValidateCodeRequest,
    actor: Actor = Depends(require_actor),
    engine: ReferralPricingEngine = Depends(get_engine),
):
    """Validate a code and preview the discounted price.

    Does not consume usage; the booking confirmation calls /redeem.
    """
    quote = engine.validate(body.code, body.order_amount, actor)

    return {
        "success": True,
        "valid": True,
        "referralCode": {
            "code": quote.code,
            "description": quote.referral_code["description"],
            "discountType": quote.referral_code["discountType"],
            "discountValue": quote.referral_code["discountValue"],
            "maxDiscountAmount": quote.referral_code["maxDiscountAmount"],
            "minOrderAmount": quote.referral_code["minOrderAmount"],
            "expirationDate": quote.referral_code["expirationDate"],
            "agentId": quote.agent_id,
        },
        "pricing": quote.pricing.to_wire(),
        "usageInfo": {
            "currentUsage": quote.usage_count,
            "maxUsage": quote.max_usage,
            "remainingUsage": quote.remaining_usage,
            "userCanUse": True,
        },
    }


@router.get("/validate")
@limiter.limit(settings.validate_rate_limit)
async def quick_validate_referral_code(
    request: Request,
    code: str = Query(default=""),
    amount: float = Query(default=0.0),
    engine: ReferralPricingEngine = Depends(get_engine),
):
    """Quick anonymous check used while the user is typing a code."""
    return engine.quick_check(code, amount)


@router.post("/redeem")
@limiter.limit(settings.redeem_rate_limit)
async def redeem_referral_code(
    request: Request,
    body: RedeemCodeRequest,
    actor: Actor = Depends(require_actor),
    engine: ReferralPricingEngine = Depends(get_engine),
):
    """Apply a code to a confirmed booking.

    On rejection the error body carries ``fallbackPricing``: the full,
    undiscounted price the caller must charge instead.
    """
    try:
        result = engine.redeem(body.code, body.order_amount, actor, body.booking_ref)
    except InvalidInputError:
        raise
    except ReferralError as exc:
        exc.details["fallbackPricing"] = full_price(body.order_amount).to_wire()
        raise

    return {
        "success": True,
        "paymentId": result.payment_id,
        "replayed": result.replayed,
        "pricing": result.pricing.to_wire(),
        "commission": result.commission.to_wire(),
    }
