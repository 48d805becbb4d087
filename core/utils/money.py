"""
금액/수량 유틸리티

DB에는 str(Decimal)로 저장하고 계산은 항상 Decimal로 수행.
float는 입력 단계에서 str을 거쳐 변환한다.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from core.constants import Tolerances
from core.errors import InvalidAmountError, ValidationError

ZERO = Decimal("0")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """입력값을 Decimal로 변환

    Args:
        value: int, float, str, Decimal
        field: 오류 메시지용 필드명

    Raises:
        ValidationError: 숫자가 아닌 경우
    """
    if isinstance(value, Decimal):
        result = value
    elif value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required", {"field": field})
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(
                f"{field} is not a number: {value!r}",
                {"field": field, "value": str(value)},
            ) from e
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite", {"field": field})
    return result


def require_positive(value: Any, field: str = "amount") -> Decimal:
    """0보다 큰 Decimal 반환

    Raises:
        InvalidAmountError: 0 이하인 경우
    """
    amount = to_decimal(value, field)
    if amount <= ZERO:
        raise InvalidAmountError(amount, field)
    return amount


def dec_or_zero(value: Any) -> Decimal:
    """DB 값 → Decimal (NULL이면 0)"""
    if value is None or value == "":
        return ZERO
    return Decimal(str(value))


def money_gt(a: Decimal, b: Decimal) -> bool:
    """a > b + 허용오차"""
    return a > b + Tolerances.MONEY


def money_gte(a: Decimal, b: Decimal) -> bool:
    """a ≥ b - 허용오차"""
    return a >= b - Tolerances.MONEY


def money_eq(a: Decimal, b: Decimal) -> bool:
    """|a - b| ≤ 허용오차"""
    return abs(a - b) <= Tolerances.MONEY
