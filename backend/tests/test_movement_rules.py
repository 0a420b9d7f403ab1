"""Tests for the stock movement validator (pure, no database)."""

import pytest

from app.errors import InsufficientStockError, ValidationError
from app.services.movement_rules import validate_movement


class TestSignConvention:
    @pytest.mark.parametrize("movement_type,change", [
        ("Purchase", 5),
        ("Return", 1),
        ("Sale", -3),
        ("Adjustment", -2),
    ])
    def test_accepts_expected_sign(self, movement_type, change):
        assert validate_movement(10, movement_type, change) == change

    @pytest.mark.parametrize("movement_type,change", [
        ("Purchase", -5),
        ("Return", -1),
        ("Sale", 3),
        ("Adjustment", 2),
    ])
    def test_rejects_wrong_sign(self, movement_type, change):
        with pytest.raises(ValidationError):
            validate_movement(10, movement_type, change)


class TestRejections:
    def test_zero_change(self):
        with pytest.raises(ValidationError):
            validate_movement(10, "Purchase", 0)

    @pytest.mark.parametrize("change", [1.5, "3", None, True])
    def test_non_integer_change(self, change):
        with pytest.raises(ValidationError):
            validate_movement(10, "Purchase", change)

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            validate_movement(10, "Theft", -1)

    def test_sale_larger_than_stock(self):
        with pytest.raises(InsufficientStockError) as exc_info:
            validate_movement(3, "Sale", -4)
        assert exc_info.value.details["available"] == 3
        assert exc_info.value.details["requested"] == 4

    def test_sale_of_entire_stock_allowed(self):
        assert validate_movement(3, "Sale", -3) == -3

    def test_adjustment_larger_than_stock(self):
        with pytest.raises(InsufficientStockError):
            validate_movement(1, "Adjustment", -2)
