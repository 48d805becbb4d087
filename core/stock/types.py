"""
Stok 타입 정의
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from core.types import EntryDirection, Ref
from core.utils.money import ZERO, dec_or_zero
from core.utils.timezone import parse_ts


@dataclass
class Product:
    """produk (마스터)"""

    id: str
    code: str
    name: str
    unit: str
    density: Decimal | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Product":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            code=row["kode_produk"],
            name=row["nama_produk"],
            unit=row["satuan"],
            density=(
                Decimal(str(row["density_kg_per_liter"]))
                if row.get("density_kg_per_liter")
                else None
            ),
        )


@dataclass
class Branch:
    """cabang (마스터)"""

    id: str
    name: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Branch":
        """DB 행에서 생성"""
        return cls(id=row["id"], name=row["nama_cabang"])


@dataclass
class StockPosition:
    """stok_cabang (produk x cabang 현재 수량)

    version 0 = 아직 행이 없음
    """

    product_id: str
    branch_id: str
    quantity: Decimal = ZERO
    version: int = 0

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "StockPosition":
        """DB 행에서 생성"""
        return cls(
            product_id=row["produk_id"],
            branch_id=row["cabang_id"],
            quantity=dec_or_zero(row["jumlah"]),
            version=int(row["version"]),
        )


@dataclass
class StockMovement:
    """stock_barang (append-only 이동 기록)

    Attributes:
        direction: masuk / keluar
        quantity: 수량 (> 0)
        unit_cost: 단가 (hpp)
        reverses_id: 이 행이 되돌리는 원래 이동 ID
    """

    id: str
    product_id: str
    branch_id: str
    business_date: date
    direction: EntryDirection
    quantity: Decimal
    unit_cost: Decimal
    note: str | None
    ref: Ref | None
    reverses_id: str | None
    created_at: datetime

    @property
    def signed_quantity(self) -> Decimal:
        return self.quantity * self.direction.sign

    @property
    def is_reversal(self) -> bool:
        return self.reverses_id is not None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "StockMovement":
        """DB 행에서 생성"""
        ref = None
        if row.get("ref_type") and row.get("ref_id"):
            ref = Ref(ref_type=row["ref_type"], ref_id=row["ref_id"])
        return cls(
            id=row["id"],
            product_id=row["produk_id"],
            branch_id=row["cabang_id"],
            business_date=date.fromisoformat(row["tanggal"]),
            direction=EntryDirection(row["tipe"]),
            quantity=dec_or_zero(row["jumlah"]),
            unit_cost=dec_or_zero(row["hpp"]),
            note=row.get("keterangan"),
            ref=ref,
            reverses_id=row.get("reverses_id"),
            created_at=parse_ts(row["created_at"]),
        )


@dataclass
class StockDrift:
    """stok_cabang vs Σ stock_barang 불일치"""

    product_id: str
    branch_id: str
    position_quantity: Decimal
    movement_quantity: Decimal

    @property
    def difference(self) -> Decimal:
        return self.position_quantity - self.movement_quantity
