"""Discount and commission arithmetic.

Pure functions with no database access, shared by the validation and
redemption paths so both always price an order the same way.
"""

from dataclasses import dataclass

from telemed.referral.models import DiscountType


@dataclass(frozen=True)
class PricingResult:
    """Price of one order after applying a referral code."""

    original_amount: float
    discount: float
    final_amount: float
    savings_percentage: float

    def to_wire(self) -> dict[str, float]:
        return {
            "originalAmount": self.original_amount,
            "discount": self.discount,
            "finalAmount": self.final_amount,
            "savingsPercentage": self.savings_percentage,
        }


def calculate_discount(
    discount_type: str,
    discount_value: float,
    order_amount: float,
    max_discount_amount: float | None = None,
) -> float:
    """Absolute discount for an order.

    Args:
        discount_type: ``percentage`` or ``fixed``
        discount_value: Percent (0-100) or currency amount
        order_amount: Order amount before discount
        max_discount_amount: Optional ceiling for percentage discounts

    Returns:
        Discount, never more than ``order_amount``
    """
    if DiscountType(discount_type) == DiscountType.PERCENTAGE:
        discount = order_amount * discount_value / 100
        if max_discount_amount is not None and discount > max_discount_amount:
            discount = max_discount_amount
    else:
        discount = discount_value

    return min(discount, order_amount)


def price_order(
    discount_type: str,
    discount_value: float,
    order_amount: float,
    max_discount_amount: float | None = None,
) -> PricingResult:
    """Price an order (``order_amount`` must be positive)."""
    discount = calculate_discount(
        discount_type, discount_value, order_amount, max_discount_amount
    )
    final_amount = max(order_amount - discount, 0.0)

    return PricingResult(
        original_amount=order_amount,
        discount=discount,
        final_amount=final_amount,
        savings_percentage=round(discount / order_amount * 100, 2),
    )


def calculate_commission(discount: float, commission_rate: float) -> float:
    """Agent commission: ``commission_rate`` percent of the discount."""
    return discount * commission_rate / 100


def full_price(order_amount: float) -> PricingResult:
    """Undiscounted price, charged when a code is rejected."""
    return PricingResult(
        original_amount=order_amount,
        discount=0.0,
        final_amount=order_amount,
        savings_percentage=0.0,
    )
