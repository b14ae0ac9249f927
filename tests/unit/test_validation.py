"""Unit tests for boundary validation"""

import pytest
from decimal import Decimal
from cashpoint_gateway.domain.exceptions import InvalidAmountError, InvalidLocationError, MissingFieldError
from cashpoint_gateway.domain.validation import (
    is_valid_phone,
    is_valid_pin,
    parse_amount,
    parse_coordinates,
    parse_decimal,
    parse_radius,
    require_fields,
)


def test_require_fields_names_every_blank_field():
    with pytest.raises(MissingFieldError) as exc:
        require_fields({"agentCode": "AGT001", "amount": None, "pin": "  "})

    assert exc.value.fields == ["amount", "pin"]
    assert "amount, pin" in str(exc.value)


def test_require_fields_accepts_zero():
    require_fields({"amount": 0})


@pytest.mark.parametrize("raw", ["abc", "", None, True, "NaN", "Infinity"])
def test_parse_decimal_rejects(raw):
    assert parse_decimal(raw) is None


def test_parse_amount():
    assert parse_amount("100.50", Decimal("10")) == Decimal("100.50")
    assert parse_amount(10, Decimal("10")) == Decimal("10")

    with pytest.raises(InvalidAmountError):
        parse_amount("9.99", Decimal("10"))
    with pytest.raises(InvalidAmountError):
        parse_amount("ten", Decimal("10"))


def test_parse_coordinates():
    assert parse_coordinates("5.6037", "-0.1870") == (5.6037, -0.187)

    for lat, lon in [(None, "1"), ("", "1"), ("abc", "1"), ("91", "0"), ("0", "-181")]:
        with pytest.raises(InvalidLocationError):
            parse_coordinates(lat, lon)


def test_parse_radius():
    assert parse_radius(None, 5.0) == 5.0
    assert parse_radius("12.5", 5.0) == 12.5

    for raw in ["0", "-1", "far"]:
        with pytest.raises(InvalidLocationError):
            parse_radius(raw, 5.0)


@pytest.mark.parametrize(
    "phone,expected",
    [("0551234567", True), ("+233241234567", True), ("12345", False), ("055-123-4567", False)],
)
def test_phone_format(phone, expected):
    assert is_valid_phone(phone) is expected


@pytest.mark.parametrize("pin,expected", [("1234", True), ("123", False), ("12345", False), ("12a4", False)])
def test_pin_format(pin, expected):
    assert is_valid_pin(pin) is expected
