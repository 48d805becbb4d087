"""
타임존 유틸리티

내부 저장: UTC | 외부 표시/영업일: WIB(UTC+7) 원칙 준수를 위한 헬퍼 함수

kas_harian.created_at은 UTC ISO 문자열(마이크로초 포함)로 저장하며
문자열 정렬 순서 = 시간 순서가 되도록 항상 같은 포맷을 사용한다.
"""

from datetime import date, datetime, timedelta, timezone

from core.errors import ValidationError

# WIB 타임존 (UTC+7)
WIB = timezone(timedelta(hours=7))


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형.

    Returns:
        현재 UTC 시간 (tzinfo=timezone.utc)
    """
    return datetime.now(timezone.utc)


def to_wib(dt: datetime) -> datetime:
    """UTC datetime을 WIB로 변환

    Args:
        dt: datetime 객체 (UTC 권장, naive면 UTC로 간주)

    Returns:
        WIB 타임존의 datetime

    Example:
        >>> utc_dt = datetime(2026, 2, 20, 18, 0, 0, tzinfo=timezone.utc)
        >>> to_wib(utc_dt).hour
        1  # 다음날 01:00
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(WIB)


def today_wib() -> date:
    """WIB 기준 오늘 날짜 (영업일 기본값)"""
    return datetime.now(WIB).date()


def format_ts(dt: datetime) -> str:
    """created_at 저장 포맷

    항상 UTC + 마이크로초 6자리로 고정해 문자열 비교가 시간 비교와 같도록 한다.

    Example:
        >>> format_ts(datetime(2026, 2, 20, 16, 0, 0, tzinfo=timezone.utc))
        '2026-02-20T16:00:00.000000+00:00'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_ts(value: str) -> datetime:
    """created_at 문자열을 UTC datetime으로 변환"""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_business_date(value: date | datetime | str | None) -> date:
    """영업일(tanggal) 정규화

    Args:
        value: date, datetime, "YYYY-MM-DD" 문자열 또는 None(오늘, WIB)

    Returns:
        date

    Raises:
        ValidationError: 형식이 잘못된 경우
    """
    if value is None:
        return today_wib()
    if isinstance(value, datetime):
        return to_wib(value).date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as e:
        raise ValidationError(
            f"tanggal must be YYYY-MM-DD (got {value!r})",
            {"field": "tanggal", "value": str(value)},
        ) from e


def next_ts(last: datetime | None, tick: timedelta, not_before: datetime | None = None) -> datetime:
    """단조 증가 created_at 생성

    기본값은 현재 시각, not_before가 주어지면 그 시각을 사용한다 (Transfer 입금 leg).
    같은 계좌 내 두 엔트리가 같은 created_at을 갖지 않도록 last + tick 이상으로 올린다.
    """
    candidate = not_before if not_before is not None else now_utc()
    if last is not None and candidate <= last:
        candidate = last + tick
    return candidate
