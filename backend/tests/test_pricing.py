"""
Unit tests for discount and commission arithmetic.
"""

import pytest

from telemed.referral.pricing import (
    PricingResult,
    calculate_commission,
    calculate_discount,
    full_price,
    price_order,
)


class TestPercentageDiscount:
    """Percentage codes take a share of the order amount."""

    def test_agent15_example(self):
        """15% off a 500 consultation."""
        result = price_order("percentage", 15, 500)

        assert result.discount == pytest.approx(75)
        assert result.final_amount == pytest.approx(425)
        assert result.savings_percentage == 15

    @pytest.mark.parametrize("value", [1, 10, 33.3, 50, 99, 100])
    @pytest.mark.parametrize("amount", [1, 149.99, 500, 1200])
    def test_final_amount_is_order_times_remaining_share(self, value, amount):
        result = price_order("percentage", value, amount)

        assert result.final_amount == pytest.approx(amount * (1 - value / 100))
        assert result.final_amount >= 0

    def test_hundred_percent_is_free(self):
        result = price_order("percentage", 100, 800)

        assert result.discount == pytest.approx(800)
        assert result.final_amount == 0
        assert result.savings_percentage == 100

    def test_max_discount_amount_caps_percentage(self):
        assert calculate_discount("percentage", 50, 1000, max_discount_amount=200) == 200

    def test_max_discount_amount_above_discount_is_ignored(self):
        assert calculate_discount("percentage", 10, 1000, max_discount_amount=200) == pytest.approx(100)


class TestFixedDiscount:
    """Fixed codes subtract an amount, never more than the order."""

    def test_flat100_capped_at_order_amount(self):
        result = price_order("fixed", 100, 50)

        assert result.discount == 50
        assert result.final_amount == 0
        assert result.savings_percentage == 100

    def test_fixed_below_order_amount(self):
        result = price_order("fixed", 100, 400)

        assert result.discount == 100
        assert result.final_amount == 300
        assert result.savings_percentage == 25

    @pytest.mark.parametrize("value,amount", [(1, 1), (99, 100), (250, 100), (1000, 0.5)])
    def test_discount_is_min_of_value_and_amount(self, value, amount):
        result = price_order("fixed", value, amount)

        assert result.discount == min(value, amount)
        assert result.final_amount >= 0


class TestSavingsPercentage:
    def test_rounded_to_two_decimals(self):
        result = price_order("fixed", 100, 300)

        assert result.savings_percentage == 33.33


class TestCommission:
    """Commission is a share of the discount, not of the order."""

    def test_sixty_percent_of_discount(self):
        assert calculate_commission(75, 60) == pytest.approx(45)

    def test_zero_discount_earns_nothing(self):
        assert calculate_commission(0, 60) == 0

    def test_zero_rate_earns_nothing(self):
        assert calculate_commission(75, 0) == 0


class TestWireShape:
    def test_to_wire_uses_camel_case(self):
        wire = PricingResult(500, 75, 425, 15).to_wire()

        assert wire == {
            "originalAmount": 500,
            "discount": 75,
            "finalAmount": 425,
            "savingsPercentage": 15,
        }

    def test_full_price_has_no_discount(self):
        result = full_price(500)

        assert result.discount == 0
        assert result.final_amount == 500
        assert result.savings_percentage == 0


def test_unknown_discount_type_rejected():
    with pytest.raises(ValueError):
        calculate_discount("bogus", 10, 100)
