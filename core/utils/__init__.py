"""
유틸리티 패키지

타임존 처리, 금액 변환, 키 잠금, ID 생성 등 공통 유틸리티
"""

from core.utils.ids import new_id
from core.utils.locks import KeyedLock
from core.utils.money import (
    ZERO,
    dec_or_zero,
    money_eq,
    money_gt,
    money_gte,
    require_positive,
    to_decimal,
)
from core.utils.timezone import (
    WIB,
    format_ts,
    next_ts,
    now_utc,
    parse_business_date,
    parse_ts,
    to_wib,
    today_wib,
)

__all__ = [
    "new_id",
    "KeyedLock",
    "ZERO",
    "dec_or_zero",
    "money_eq",
    "money_gt",
    "money_gte",
    "require_positive",
    "to_decimal",
    "WIB",
    "format_ts",
    "next_ts",
    "now_utc",
    "parse_business_date",
    "parse_ts",
    "to_wib",
    "today_wib",
]
