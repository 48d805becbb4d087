"""
Debt Tracker

piutang (판매 채권) / hutang (구매 채무) 잔액과 상태 관리.

규칙:
- total은 저장된 값이 아니라 상세 항목(jumlah x harga)에서 계산
- dibayar는 항상 cicilan 합계에서 재계산 (누적 갱신하지 않음)
- 지불 후 dibayar > total + 0.01 이면 OverpaymentError
- dibayar ≥ total - 0.01 이면 lunas, 0보다 크면 cicil, 아니면 belum_lunas

잠금: 같은 채무에 대한 변경은 호출자(Coordinator)가 ("debt", kind, id) 키로 직렬화한다.
프로세스 간 충돌은 version 컬럼이 잡는다.
"""

import logging
from datetime import date
from decimal import Decimal

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.debt.types import DEBT_TABLES, DebtRecord, DebtTables, Payment
from core.errors import (
    ConcurrencyConflictError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from core.transactions.repository import TradeRepository, trade_tables
from core.types import DebtKind, DebtStatus
from core.utils.ids import new_id
from core.utils.money import ZERO, dec_or_zero, money_gt, money_gte, require_positive
from core.utils.timezone import format_ts, now_utc, parse_business_date

logger = logging.getLogger(__name__)


def classify(total: Decimal, paid: Decimal) -> DebtStatus:
    """지불 합계 → 상태

    Args:
        total: 총액
        paid: 지불 합계

    Returns:
        lunas (paid ≥ total - 0.01) / cicil (paid > 0) / belum_lunas
    """
    if paid > ZERO and money_gte(paid, total):
        return DebtStatus.PAID
    if paid > ZERO:
        return DebtStatus.PARTIAL
    return DebtStatus.UNPAID


def _tables(kind: DebtKind | str) -> DebtTables:
    try:
        return DEBT_TABLES[DebtKind(kind)]
    except ValueError as e:
        raise ValidationError(f"Unsupported debt kind: {kind}", {"kind": str(kind)}) from e


class DebtTracker:
    """Debt Tracker

    Args:
        db: SQLite 어댑터
        trades: 원천 거래 저장소 (dibayar / status_pembayaran 동기화)
    """

    def __init__(self, db: SQLiteAdapter, trades: TradeRepository | None = None):
        self.db = db
        self.trades = trades or TradeRepository(db)

    # =========================================================================
    # 계산
    # =========================================================================

    async def compute_total(self, kind: DebtKind | str, transaction_id: str) -> Decimal:
        """상세 항목 합계 (jumlah x harga)

        저장된 subtotal / total 값은 사용하지 않는다.
        """
        tables = trade_tables(_tables(kind).transaction_kind)
        rows = await self.db.fetchall(
            f"SELECT jumlah, harga FROM {tables.detail} WHERE {tables.parent_column} = ?",
            (transaction_id,),
        )
        return sum((dec_or_zero(q) * dec_or_zero(p) for q, p in rows), ZERO)

    async def paid_amount(self, kind: DebtKind | str, debt_id: str) -> Decimal:
        """Σ cicilan"""
        tables = _tables(kind)
        rows = await self.db.fetchall(
            f"SELECT jumlah_cicilan FROM {tables.payment} WHERE {tables.debt_column} = ?",
            (debt_id,),
        )
        return sum((dec_or_zero(r[0]) for r in rows), ZERO)

    async def outstanding(self, kind: DebtKind | str, debt_id: str) -> Decimal:
        """Σ 상세 항목 - Σ cicilan"""
        debt = await self.load_current(kind, debt_id)
        return debt.total - debt.paid

    async def load_current(self, kind: DebtKind | str, debt_id: str) -> DebtRecord:
        """total / paid를 원천 상세 항목과 cicilan 합계로 다시 계산한 DebtRecord

        저장된 total / dibayar는 비정규화 값이라 지불 검증에는 쓰지 않는다.
        """
        debt = await self.get_debt(kind, debt_id)
        debt.total = await self.compute_total(kind, debt.transaction_id)
        debt.paid = await self.paid_amount(kind, debt_id)
        return debt

    def check_payment(self, debt: DebtRecord, amount: Decimal) -> DebtStatus:
        """지불 가능 여부 확인 (쓰기 없음)

        Args:
            debt: load_current로 읽은 DebtRecord
            amount: 지불액

        Returns:
            지불 후 상태

        Raises:
            InvalidAmountError: amount ≤ 0
            OverpaymentError: paid + amount > total + 0.01
        """
        amount = require_positive(amount, "jumlah_cicilan")
        new_paid = debt.paid + amount
        if money_gt(new_paid, debt.total):
            raise OverpaymentError(debt.id, debt.total, debt.paid, amount)
        return classify(debt.total, new_paid)

    # =========================================================================
    # 채무 레코드
    # =========================================================================

    async def create_debt(
        self,
        kind: DebtKind | str,
        transaction_id: str,
        due_date: date | str | None = None,
    ) -> DebtRecord:
        """신용 거래의 채권/채무 생성

        Raises:
            ValidationError: 이미 존재하는 경우
        """
        kind = DebtKind(kind)
        tables = _tables(kind)
        if await self.get_debt_for_transaction(kind, transaction_id) is not None:
            raise ValidationError(
                f"{tables.debt} for {transaction_id} already exists",
                {"transaction_id": transaction_id},
            )

        total = await self.compute_total(kind, transaction_id)
        debt_id = new_id("pt" if kind == DebtKind.RECEIVABLE else "ht")
        now = format_ts(now_utc())
        async with self.db.transaction():
            await self.db.execute(
                f"""
                INSERT INTO {tables.debt} (
                    id, {tables.transaction_column}, total, dibayar, sisa, status,
                    jatuh_tempo, version, created_at, updated_at
                ) VALUES (?, ?, ?, '0', ?, ?, ?, 1, ?, ?)
                """,
                (
                    debt_id,
                    transaction_id,
                    str(total),
                    str(total),
                    DebtStatus.UNPAID.value,
                    parse_business_date(due_date).isoformat() if due_date else None,
                    now,
                    now,
                ),
            )
        logger.info(f"{tables.debt} created: {debt_id} total={total}")
        return await self.get_debt(kind, debt_id)

    async def get_debt(self, kind: DebtKind | str, debt_id: str) -> DebtRecord:
        """채무 조회

        Raises:
            NotFoundError: 없는 경우
        """
        kind = DebtKind(kind)
        tables = _tables(kind)
        row = await self.db.fetchone_dict(f"SELECT * FROM {tables.debt} WHERE id = ?", (debt_id,))
        if row is None:
            raise NotFoundError(tables.debt, debt_id)
        return DebtRecord.from_row(row, kind)

    async def get_debt_for_transaction(
        self,
        kind: DebtKind | str,
        transaction_id: str,
    ) -> DebtRecord | None:
        kind = DebtKind(kind)
        tables = _tables(kind)
        row = await self.db.fetchone_dict(
            f"SELECT * FROM {tables.debt} WHERE {tables.transaction_column} = ?",
            (transaction_id,),
        )
        return DebtRecord.from_row(row, kind) if row else None

    async def list_debts(
        self,
        kind: DebtKind | str,
        status: DebtStatus | None = None,
    ) -> list[DebtRecord]:
        kind = DebtKind(kind)
        tables = _tables(kind)
        if status is None:
            rows = await self.db.fetchall_dict(
                f"SELECT * FROM {tables.debt} ORDER BY created_at DESC"
            )
        else:
            rows = await self.db.fetchall_dict(
                f"SELECT * FROM {tables.debt} WHERE status = ? ORDER BY created_at DESC",
                (status.value,),
            )
        return [DebtRecord.from_row(r, kind) for r in rows]

    async def delete_debt(self, kind: DebtKind | str, debt_id: str) -> None:
        """채무 삭제 (cicilan이 없을 때만)

        Raises:
            ValidationError: cicilan이 남아 있는 경우
        """
        tables = _tables(kind)
        payments = await self.list_payments(kind, debt_id)
        if payments:
            raise ValidationError(
                f"{tables.debt} {debt_id} still has {len(payments)} payment(s)",
                {"debt_id": debt_id, "payments": len(payments)},
            )
        async with self.db.transaction():
            await self.db.execute(f"DELETE FROM {tables.debt} WHERE id = ?", (debt_id,))
        logger.info(f"{tables.debt} deleted: {debt_id}")

    # =========================================================================
    # 지불
    # =========================================================================

    async def list_payments(self, kind: DebtKind | str, debt_id: str) -> list[Payment]:
        """cicilan 목록 (오래된 순)"""
        kind = DebtKind(kind)
        tables = _tables(kind)
        rows = await self.db.fetchall_dict(
            f"""
            SELECT * FROM {tables.payment} WHERE {tables.debt_column} = ?
            ORDER BY created_at ASC, id ASC
            """,
            (debt_id,),
        )
        return [Payment.from_row(r, kind) for r in rows]

    async def get_payment(self, kind: DebtKind | str, payment_id: str) -> Payment:
        """cicilan 조회

        Raises:
            NotFoundError: 없는 경우
        """
        kind = DebtKind(kind)
        tables = _tables(kind)
        row = await self.db.fetchone_dict(
            f"SELECT * FROM {tables.payment} WHERE id = ?",
            (payment_id,),
        )
        if row is None:
            raise NotFoundError(tables.payment, payment_id)
        return Payment.from_row(row, kind)

    async def add_payment_row(
        self,
        kind: DebtKind | str,
        debt_id: str,
        amount: Decimal,
        account_id: str,
        business_date: date | str | None = None,
        entry_id: str | None = None,
        note: str | None = None,
        payment_id: str | None = None,
    ) -> Payment:
        """cicilan 행 추가 (상태 재계산은 하지 않음)"""
        tables = _tables(kind)
        amount = require_positive(amount, "jumlah_cicilan")
        payment_id = payment_id or new_id("cc")
        async with self.db.transaction():
            await self.db.execute(
                f"""
                INSERT INTO {tables.payment} (
                    id, {tables.debt_column}, jumlah_cicilan, tanggal_cicilan,
                    kas_id, kas_harian_id, keterangan, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    payment_id,
                    debt_id,
                    str(amount),
                    parse_business_date(business_date).isoformat(),
                    account_id,
                    entry_id,
                    note,
                    format_ts(now_utc()),
                ),
            )
        return await self.get_payment(kind, payment_id)

    async def restore_payment_row(self, payment: Payment) -> Payment:
        """삭제된 cicilan 재삽입 (같은 ID)"""
        return await self.add_payment_row(
            payment.kind,
            payment.debt_id,
            payment.amount,
            payment.account_id,
            payment.business_date,
            payment.entry_id,
            payment.note,
            payment_id=payment.id,
        )

    async def delete_payment_row(self, kind: DebtKind | str, payment_id: str) -> Payment:
        """cicilan 행 삭제 (상태 재계산은 하지 않음)

        Returns:
            삭제된 Payment
        """
        payment = await self.get_payment(kind, payment_id)
        tables = _tables(kind)
        async with self.db.transaction():
            await self.db.execute(f"DELETE FROM {tables.payment} WHERE id = ?", (payment_id,))
        return payment

    async def apply_payment(
        self,
        kind: DebtKind | str,
        debt_id: str,
        amount: Decimal | int | str,
        account_id: str,
        business_date: date | str | None = None,
        entry_id: str | None = None,
        note: str | None = None,
    ) -> DebtRecord:
        """지불 검증 + cicilan 추가 + 상태 재계산 (로컬 트랜잭션 1개)

        Raises:
            InvalidAmountError: amount ≤ 0
            OverpaymentError: Σ cicilan + amount > total + 0.01
        """
        async with self.db.transaction():
            debt = await self.load_current(kind, debt_id)
            self.check_payment(debt, amount)
            await self.add_payment_row(kind, debt_id, amount, account_id, business_date, entry_id, note)
            return await self.recompute_status(kind, debt_id)

    # =========================================================================
    # 상태 재계산
    # =========================================================================

    async def recompute_status(self, kind: DebtKind | str, debt_id: str) -> DebtRecord:
        """total / dibayar / sisa / status를 상세 항목과 cicilan 합계에서 재계산

        원천 거래의 total / dibayar / status_pembayaran도 함께 맞춘다.

        Raises:
            NotFoundError: 채무 없음
            ConcurrencyConflictError: 다른 writer가 먼저 변경한 경우
        """
        kind = DebtKind(kind)
        tables = _tables(kind)

        async with self.db.transaction():
            debt = await self.get_debt(kind, debt_id)
            total = await self.compute_total(kind, debt.transaction_id)
            paid = await self.paid_amount(kind, debt_id)
            remaining = max(ZERO, total - paid)
            status = classify(total, paid)

            cursor = await self.db.execute(
                f"""
                UPDATE {tables.debt}
                SET total = ?, dibayar = ?, sisa = ?, status = ?,
                    version = version + 1, updated_at = ?
                WHERE id = ? AND version = ?
                """,
                (
                    str(total),
                    str(paid),
                    str(remaining),
                    status.value,
                    format_ts(now_utc()),
                    debt_id,
                    debt.version,
                ),
            )
            if cursor.rowcount == 0:
                raise ConcurrencyConflictError(tables.debt, debt_id, debt.version)

            await self.trades.set_payment(
                tables.transaction_kind, debt.transaction_id, paid, status, total
            )

        if status != debt.status:
            logger.info(
                f"{tables.debt} {debt_id}: {debt.status.value} → {status.value} (dibayar={paid})",
                extra={"debt_id": debt_id},
            )
        return await self.get_debt(kind, debt_id)
