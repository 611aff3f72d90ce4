# 金额与校验工具测试

from decimal import Decimal

import pytest

from utils.money import to_cents, format_cents, format_currency, format_date
from utils.validators import validate_positive_integer, validate_date


class TestMoney:
    """金额转换测试"""

    @pytest.mark.parametrize("value,cents", [
        ("65.00", 6500),
        (Decimal("10.005"), 1001),
        (10.1, 1010),
        (25, 2500),
        (None, 0),
        ("0", 0),
    ])
    def test_to_cents(self, value, cents):
        assert to_cents(value) == cents

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", ""])
    def test_to_cents_invalid(self, value):
        with pytest.raises(ValueError):
            to_cents(value)

    def test_format(self):
        assert format_cents(6500) == "65.00"
        assert format_cents(None) == "0.00"
        assert format_currency(123456) == "$1,234.56"
        assert format_currency(-250) == "-$2.50"

    def test_format_date(self):
        assert format_date("2026-11-20") == "November 20, 2026"
        assert format_date("soon") == "soon"


class TestValidators:
    """通用校验测试"""

    @pytest.mark.parametrize("value,expected", [
        (1, True), (3, True), ("3", False), (0, False), (-2, False), (1.5, False), (True, False), (None, False),
    ])
    def test_positive_integer(self, value, expected):
        assert validate_positive_integer(value) is expected

    def test_date(self):
        assert validate_date("2026-02-28")
        assert not validate_date("2026-02-30")
        assert not validate_date(None)