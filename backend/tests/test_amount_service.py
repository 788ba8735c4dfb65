# Overview: Pytest coverage for derived subtotal, discount, tax, total and due.

import pytest

from retailflow.services.amount_service import (
    DISCOUNT_PERCENTAGE,
    TAX_BASE_SUBTOTAL,
    WARNING_DISCOUNT_CLAMPED,
    WARNING_OVERPAID,
    Discount,
    LineItem,
    calculate_subtotal,
    derive_amounts,
)
from retailflow.validation import InvalidDiscount, InvalidLineItem, ValidationError


ITEMS = [{"quantity": 2, "unit_price": 50}, {"quantity": 1, "unit_price": 100}]


@pytest.mark.smoke
class TestDeriveAmounts:
    def test_checkout_scenario(self):
        """2 x 50 + 1 x 100, 20 off, 10% tax."""
        amounts = derive_amounts(ITEMS, {"type": "fixed", "value": 20}, 10)

        assert amounts.subtotal == 200
        assert amounts.discount == 20
        assert amounts.tax == 18
        assert amounts.total == 198
        assert amounts.due == 198
        assert amounts.warnings == ()

    def test_total_identity(self):
        amounts = derive_amounts(ITEMS, {"type": "percentage", "value": 12.5}, 7.5, 50)
        assert amounts.total == pytest.approx(amounts.subtotal - amounts.discount + amounts.tax)
        assert amounts.total >= 0

    def test_recomputing_gives_identical_result(self):
        first = derive_amounts(ITEMS, {"type": "fixed", "value": 20}, 10, 100)
        second = derive_amounts(ITEMS, {"type": "fixed", "value": 20}, 10, 100)
        assert first == second

    def test_percentage_discount(self):
        amounts = derive_amounts(ITEMS, Discount(DISCOUNT_PERCENTAGE, 10))
        assert amounts.discount == 20
        assert amounts.total == 180

    def test_tax_on_subtotal_base(self):
        amounts = derive_amounts(ITEMS, {"type": "fixed", "value": 20}, 10, tax_base=TAX_BASE_SUBTOTAL)
        assert amounts.tax == 20
        assert amounts.total == 200

    def test_tax_bases_differ_on_discounted_cart(self):
        discount = {"type": "fixed", "value": 20}
        default = derive_amounts(ITEMS, discount, 10)
        pos = derive_amounts(ITEMS, discount, 10, tax_base=TAX_BASE_SUBTOTAL)
        assert (default.tax, default.total) == (18, 198)
        assert (pos.tax, pos.total) == (20, 200)

    def test_money_strings_are_normalized(self):
        amounts = derive_amounts(
            [{"quantity": "3", "price": "1,200.50"}],
            {"type": "fixed", "value": "0.50"},
            "0",
            "1000",
        )
        assert amounts.subtotal == 3601.5
        assert amounts.total == 3601
        assert amounts.due == 2601

    def test_empty_items(self):
        amounts = derive_amounts([])
        assert amounts.subtotal == 0
        assert amounts.total == 0
        assert amounts.is_fully_paid

    def test_float_drift_is_absorbed(self):
        amounts = derive_amounts([{"quantity": 3, "unit_price": 0.1}], paid_amount=0.3)
        assert amounts.total == 0.3
        assert amounts.due == 0
        assert amounts.is_fully_paid


class TestDiscountClamp:
    def test_fixed_discount_above_subtotal_is_clamped(self):
        amounts = derive_amounts(ITEMS, {"type": "fixed", "value": 250}, 10)
        assert amounts.discount == 200
        assert amounts.tax == 0
        assert amounts.total == 0
        assert WARNING_DISCOUNT_CLAMPED in amounts.warnings

    def test_percentage_above_hundred_is_clamped(self):
        amounts = derive_amounts(ITEMS, {"type": "percentage", "value": 150})
        assert amounts.discount == 200
        assert amounts.total == 0


class TestOverpayment:
    def test_negative_due_is_flagged_not_clamped(self):
        amounts = derive_amounts(ITEMS, paid_amount=250)
        assert amounts.due == -50
        assert amounts.is_overpaid
        assert WARNING_OVERPAID in amounts.warnings

    def test_to_dict_carries_warnings(self):
        data = derive_amounts(ITEMS, paid_amount=250).to_dict()
        assert data["warnings"] == [WARNING_OVERPAID]
        assert data["due"] == -50


class TestInvalidInputs:
    def test_negative_quantity(self):
        with pytest.raises(InvalidLineItem):
            derive_amounts([{"quantity": -1, "unit_price": 10}])

    def test_negative_price(self):
        with pytest.raises(InvalidLineItem):
            LineItem(quantity=1, unit_price=-0.01)

    def test_missing_price(self):
        with pytest.raises(InvalidLineItem):
            calculate_subtotal([{"quantity": 1}])

    def test_unknown_discount_type(self):
        with pytest.raises(InvalidDiscount):
            derive_amounts(ITEMS, {"type": "bogus", "value": 1})

    def test_negative_discount(self):
        with pytest.raises(InvalidDiscount):
            derive_amounts(ITEMS, {"type": "fixed", "value": -5})

    def test_negative_tax(self):
        with pytest.raises(ValidationError) as exc:
            derive_amounts(ITEMS, tax_percentage=-1)
        assert exc.value.field == "tax_percentage"

    def test_negative_paid_amount(self):
        with pytest.raises(ValidationError):
            derive_amounts(ITEMS, paid_amount=-1)

    @pytest.mark.parametrize("quantity", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_quantity(self, quantity):
        with pytest.raises(InvalidLineItem) as exc:
            derive_amounts([{"quantity": quantity, "unit_price": 10}])
        assert exc.value.field == "quantity"

    def test_non_finite_price(self):
        with pytest.raises(InvalidLineItem):
            derive_amounts([{"quantity": 1, "unit_price": float("inf")}])

    def test_non_finite_line_item(self):
        with pytest.raises(InvalidLineItem):
            LineItem(quantity=float("nan"), unit_price=10)

    def test_non_finite_tax(self):
        with pytest.raises(ValidationError) as exc:
            derive_amounts(ITEMS, tax_percentage=float("nan"))
        assert exc.value.field == "tax_percentage"
