"""
채권/채무 타입 정의
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from core.types import DebtKind, DebtStatus, TransactionKind
from core.utils.money import dec_or_zero
from core.utils.timezone import parse_ts


@dataclass(frozen=True)
class DebtTables:
    """종류별 테이블/컬럼 이름"""

    debt: str
    payment: str
    debt_column: str
    transaction_column: str
    transaction_kind: TransactionKind


DEBT_TABLES: dict[DebtKind, DebtTables] = {
    DebtKind.RECEIVABLE: DebtTables(
        debt="piutang_penjualan",
        payment="cicilan_penjualan",
        debt_column="piutang_id",
        transaction_column="penjualan_id",
        transaction_kind=TransactionKind.SALE,
    ),
    DebtKind.PAYABLE: DebtTables(
        debt="hutang_pembelian",
        payment="cicilan_pembelian",
        debt_column="hutang_id",
        transaction_column="pembelian_id",
        transaction_kind=TransactionKind.PURCHASE,
    ),
}


@dataclass
class DebtRecord:
    """piutang_penjualan / hutang_pembelian

    Attributes:
        kind: piutang (판매) / hutang (구매)
        transaction_id: 원천 거래 ID
        total: 상세 항목에서 마지막으로 계산한 총액
        paid: Σ cicilan (항상 재계산 값)
        remaining: max(0, total - paid)
        status: belum_lunas / cicil / lunas
    """

    id: str
    kind: DebtKind
    transaction_id: str
    total: Decimal
    paid: Decimal
    remaining: Decimal
    status: DebtStatus
    version: int
    due_date: date | None = None
    created_at: datetime | None = None

    @property
    def outstanding(self) -> Decimal:
        return self.total - self.paid

    @classmethod
    def from_row(cls, row: dict[str, Any], kind: DebtKind) -> "DebtRecord":
        """DB 행에서 생성"""
        tables = DEBT_TABLES[kind]
        return cls(
            id=row["id"],
            kind=kind,
            transaction_id=row[tables.transaction_column],
            total=dec_or_zero(row["total"]),
            paid=dec_or_zero(row["dibayar"]),
            remaining=dec_or_zero(row["sisa"]),
            status=DebtStatus(row["status"]),
            version=int(row["version"]),
            due_date=date.fromisoformat(row["jatuh_tempo"]) if row.get("jatuh_tempo") else None,
            created_at=parse_ts(row["created_at"]) if row.get("created_at") else None,
        )


@dataclass
class Payment:
    """cicilan_penjualan / cicilan_pembelian

    entry_id는 같은 금액의 kas_harian 엔트리
    """

    id: str
    kind: DebtKind
    debt_id: str
    amount: Decimal
    business_date: date
    account_id: str
    entry_id: str | None
    note: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any], kind: DebtKind) -> "Payment":
        """DB 행에서 생성"""
        tables = DEBT_TABLES[kind]
        return cls(
            id=row["id"],
            kind=kind,
            debt_id=row[tables.debt_column],
            amount=dec_or_zero(row["jumlah_cicilan"]),
            business_date=date.fromisoformat(row["tanggal_cicilan"]),
            account_id=row["kas_id"],
            entry_id=row.get("kas_harian_id"),
            note=row.get("keterangan"),
            created_at=parse_ts(row["created_at"]) if row.get("created_at") else None,
        )
