"""
금액/수량 유틸리티 테스트
"""

from decimal import Decimal

import pytest

from core.errors import InvalidAmountError, ValidationError
from core.utils.money import (
    ZERO,
    dec_or_zero,
    money_eq,
    money_gt,
    money_gte,
    require_positive,
    to_decimal,
)


class TestToDecimal:
    """to_decimal 테스트"""

    def test_int_and_str(self) -> None:
        assert to_decimal(1000) == Decimal("1000")
        assert to_decimal("250.50") == Decimal("250.50")

    def test_float_goes_through_str(self) -> None:
        """float 이진 오차 없이 변환"""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_decimal_passthrough(self) -> None:
        value = Decimal("3.14")
        assert to_decimal(value) is value

    def test_none_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            to_decimal(None, "jumlah")
        assert exc_info.value.details == {"field": "jumlah"}

    def test_bool_rejected(self) -> None:
        """True가 1로 바뀌지 않도록"""
        with pytest.raises(ValidationError):
            to_decimal(True)

    def test_not_a_number(self) -> None:
        with pytest.raises(ValidationError):
            to_decimal("seribu")

    def test_infinity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            to_decimal("Infinity")


class TestRequirePositive:
    """require_positive 테스트"""

    def test_positive(self) -> None:
        assert require_positive("5") == Decimal("5")

    @pytest.mark.parametrize("value", ["0", "-1", 0])
    def test_zero_or_negative(self, value: object) -> None:
        with pytest.raises(InvalidAmountError):
            require_positive(value, "jumlah")


class TestDecOrZero:
    """DB 값 변환"""

    def test_null(self) -> None:
        assert dec_or_zero(None) == ZERO
        assert dec_or_zero("") == ZERO

    def test_text(self) -> None:
        assert dec_or_zero("12.5") == Decimal("12.5")


class TestTolerance:
    """0.01 허용 오차 비교"""

    def test_money_gt(self) -> None:
        """허용 오차 안쪽 초과는 초과로 보지 않음"""
        assert money_gt(Decimal("100.01"), Decimal("100")) is False
        assert money_gt(Decimal("100.02"), Decimal("100")) is True

    def test_money_gte(self) -> None:
        assert money_gte(Decimal("99.99"), Decimal("100")) is True
        assert money_gte(Decimal("99.98"), Decimal("100")) is False

    def test_money_eq(self) -> None:
        assert money_eq(Decimal("100.005"), Decimal("100")) is True
        assert money_eq(Decimal("100.02"), Decimal("100")) is False
