"""
Kas 타입 정의

Account(kas), LedgerEntry(kas_harian) 등 Ledger Engine에서 사용하는 데이터 구조
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from core.types import EntryDirection, Ref
from core.utils.money import dec_or_zero
from core.utils.timezone import parse_ts


@dataclass
class Account:
    """kas 계좌

    Attributes:
        id: 계좌 ID
        name: 표시 이름 (nama_kas)
        opening_balance: 원장 이전 잔액 (saldo_awal, seed)
        balance: 현재 잔액 (saldo, 마지막 엔트리의 running balance)
        version: 낙관적 잠금 버전
    """

    id: str
    name: str
    opening_balance: Decimal
    balance: Decimal
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Account":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            name=row["nama_kas"],
            opening_balance=dec_or_zero(row["saldo_awal"]),
            balance=dec_or_zero(row["saldo"]),
            version=int(row["version"]),
            created_at=parse_ts(row["created_at"]) if row.get("created_at") else None,
            updated_at=parse_ts(row["updated_at"]) if row.get("updated_at") else None,
        )


@dataclass
class LedgerEntry:
    """kas_harian 엔트리

    Attributes:
        id: 엔트리 ID
        account_id: 계좌 ID
        business_date: 영업일 (tanggal, 사용자 입력)
        created_at: 생성 시각 (전체 순서 키)
        direction: masuk / keluar
        category: 카테고리
        amount: 금액 (> 0)
        running_balance: 이 엔트리 직후 잔액 (saldo_setelah)
        note: 메모
        ref: 원천 업무 레코드
    """

    id: str
    account_id: str
    business_date: date
    created_at: datetime
    direction: EntryDirection
    category: str
    amount: Decimal
    running_balance: Decimal
    note: str | None = None
    ref: Ref | None = None

    @property
    def signed_amount(self) -> Decimal:
        """부호 포함 금액"""
        return self.amount * self.direction.sign

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "LedgerEntry":
        """DB 행에서 생성"""
        ref = None
        if row.get("ref_type") and row.get("ref_id"):
            ref = Ref(ref_type=row["ref_type"], ref_id=row["ref_id"])
        return cls(
            id=row["id"],
            account_id=row["kas_id"],
            business_date=date.fromisoformat(row["tanggal"]),
            created_at=parse_ts(row["created_at"]),
            direction=EntryDirection(row["jenis_transaksi"]),
            category=row["kategori"],
            amount=dec_or_zero(row["jumlah"]),
            running_balance=dec_or_zero(row["saldo_setelah"]),
            note=row.get("keterangan"),
            ref=ref,
        )


@dataclass
class TransferResult:
    """계좌 이체 결과 (저장 엔티티 아님, 두 엔트리의 묶음)"""

    out_entry: LedgerEntry
    in_entry: LedgerEntry

    @property
    def amount(self) -> Decimal:
        return self.out_entry.amount


@dataclass
class DailySummary:
    """kas 일일 요약 (영업일 기준)

    closing = opening + total_in - total_out
    """

    account_id: str
    business_date: date
    opening_balance: Decimal
    total_in: Decimal
    total_out: Decimal
    closing_balance: Decimal
    entry_count: int


@dataclass
class ChainBreak:
    """running balance chain 불일치 지점

    entry_id가 None이면 kas.saldo(계좌 잔액) 불일치
    """

    account_id: str
    entry_id: str | None
    expected: Decimal
    actual: Decimal
