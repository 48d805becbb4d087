"""
채무 상태 분류 / 지불 검증 테스트 (DB 없음)
"""

from decimal import Decimal

import pytest

from core.debt import DebtRecord, DebtTracker, classify
from core.errors import InvalidAmountError, OverpaymentError
from core.types import DebtKind, DebtStatus


def _debt(total: str, paid: str) -> DebtRecord:
    return DebtRecord(
        id="pt-1",
        kind=DebtKind.RECEIVABLE,
        transaction_id="pj-1",
        total=Decimal(total),
        paid=Decimal(paid),
        remaining=Decimal(total) - Decimal(paid),
        status=classify(Decimal(total), Decimal(paid)),
        version=1,
    )


class TestClassify:
    """classify 테스트"""

    def test_unpaid(self) -> None:
        assert classify(Decimal("1000"), Decimal("0")) == DebtStatus.UNPAID

    def test_partial(self) -> None:
        assert classify(Decimal("1000"), Decimal("400")) == DebtStatus.PARTIAL

    def test_paid(self) -> None:
        assert classify(Decimal("1000"), Decimal("1000")) == DebtStatus.PAID

    def test_paid_within_tolerance(self) -> None:
        """0.01 이내 부족분은 lunas"""
        assert classify(Decimal("1000"), Decimal("999.99")) == DebtStatus.PAID

    def test_zero_total_is_unpaid(self) -> None:
        """지불이 없으면 total이 0이어도 lunas가 아님"""
        assert classify(Decimal("0"), Decimal("0")) == DebtStatus.UNPAID


class TestCheckPayment:
    """DebtTracker.check_payment (쓰기 없음)"""

    @pytest.fixture
    def tracker(self) -> DebtTracker:
        # check_payment는 DB를 사용하지 않음
        return DebtTracker(db=None)  # type: ignore[arg-type]

    def test_partial_payment(self, tracker: DebtTracker) -> None:
        assert tracker.check_payment(_debt("1000000", "600000"), Decimal("250000")) == DebtStatus.PARTIAL

    def test_exact_payment(self, tracker: DebtTracker) -> None:
        assert tracker.check_payment(_debt("1000000", "850000"), Decimal("150000")) == DebtStatus.PAID

    def test_rounding_tolerance(self, tracker: DebtTracker) -> None:
        """0.01 초과분까지는 허용"""
        assert tracker.check_payment(_debt("100", "0"), Decimal("100.01")) == DebtStatus.PAID

    def test_overpayment(self, tracker: DebtTracker) -> None:
        with pytest.raises(OverpaymentError) as exc_info:
            tracker.check_payment(_debt("1000000", "850000"), Decimal("150001"))
        assert exc_info.value.to_detail()["outstanding"] == "150000"

    def test_non_positive(self, tracker: DebtTracker) -> None:
        with pytest.raises(InvalidAmountError):
            tracker.check_payment(_debt("1000", "0"), Decimal("0"))
