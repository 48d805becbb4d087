"""
Stock Ledger

produk x cabang 현재 수량(stok_cabang)과 append-only 이동 기록(stock_barang) 관리.

불변식:
- stok_cabang.jumlah ≥ 0 (감소 시 부족하면 쓰기 전에 실패)
- stok_cabang.jumlah = Σ signed(stock_barang.jumlah) (같은 produk, cabang)
- stock_barang은 삭제하지 않는다. 되돌리기는 reverses_id를 가진 역방향 행 추가

stok_cabang.jumlah는 이 모듈만 쓴다.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable

from core.constants import Tolerances
from core.errors import (
    ConcurrencyConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from core.stock.types import StockDrift, StockMovement, StockPosition
from core.types import EntryDirection, Ref
from core.utils.ids import new_id
from core.utils.locks import KeyedLock
from core.utils.money import ZERO, dec_or_zero, require_positive, to_decimal
from core.utils.timezone import format_ts, now_utc, parse_business_date

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


class StockLedger:
    """Stock Ledger

    Args:
        db: SQLite 어댑터
        locks: 키 잠금 레지스트리 (프로세스 내 공유)
    """

    def __init__(self, db: SQLiteAdapter, locks: KeyedLock | None = None):
        self.db = db
        self.locks = locks or KeyedLock()

    # =========================================================================
    # 조회
    # =========================================================================

    async def get_position(self, product_id: str, branch_id: str) -> StockPosition:
        """현재 수량 조회 (행이 없으면 0)"""
        row = await self.db.fetchone_dict(
            "SELECT * FROM stok_cabang WHERE produk_id = ? AND cabang_id = ?",
            (product_id, branch_id),
        )
        if row is None:
            return StockPosition(product_id=product_id, branch_id=branch_id)
        return StockPosition.from_row(row)

    async def get_movement(self, movement_id: str) -> StockMovement:
        """이동 기록 조회

        Raises:
            NotFoundError: 없는 경우
        """
        row = await self.db.fetchone_dict("SELECT * FROM stock_barang WHERE id = ?", (movement_id,))
        if row is None:
            raise NotFoundError("stock_barang", movement_id)
        return StockMovement.from_row(row)

    async def list_movements(
        self,
        product_id: str | None = None,
        branch_id: str | None = None,
        ref: Ref | None = None,
    ) -> list[StockMovement]:
        """이동 기록 목록 (오래된 순)"""
        conditions: list[str] = []
        params: list[str] = []
        if product_id is not None:
            conditions.append("produk_id = ?")
            params.append(product_id)
        if branch_id is not None:
            conditions.append("cabang_id = ?")
            params.append(branch_id)
        if ref is not None:
            conditions.append("ref_type = ? AND ref_id = ?")
            params.extend([ref.ref_type, ref.ref_id])

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await self.db.fetchall_dict(
            f"SELECT * FROM stock_barang {where} ORDER BY created_at ASC, id ASC",
            tuple(params),
        )
        return [StockMovement.from_row(r) for r in rows]

    async def open_movements(self, ref: Ref) -> list[StockMovement]:
        """ref로 적용된 이동 중 아직 되돌려지지 않은 원본 이동"""
        rows = await self.db.fetchall_dict(
            """
            SELECT m.* FROM stock_barang m
            WHERE m.ref_type = ? AND m.ref_id = ?
              AND m.reverses_id IS NULL
              AND NOT EXISTS (SELECT 1 FROM stock_barang r WHERE r.reverses_id = m.id)
            ORDER BY m.created_at ASC, m.id ASC
            """,
            (ref.ref_type, ref.ref_id),
        )
        return [StockMovement.from_row(r) for r in rows]

    # =========================================================================
    # 변경
    # =========================================================================

    async def decrement(
        self,
        product_id: str,
        branch_id: str,
        quantity: Decimal | int | str,
        business_date: date | str | None = None,
        ref: Ref | None = None,
        note: str | None = None,
        unit_cost: Decimal | int | str = ZERO,
    ) -> StockMovement:
        """수량 감소 + keluar 이동 기록

        Raises:
            InvalidAmountError: quantity ≤ 0
            InsufficientStockError: 현재 수량 < quantity (수량/이동 기록 변경 없음)
        """
        quantity = require_positive(quantity, "jumlah")
        return await self._move(
            product_id,
            branch_id,
            EntryDirection.OUT,
            quantity,
            to_decimal(unit_cost, "hpp"),
            business_date,
            ref,
            note,
        )

    async def increment(
        self,
        product_id: str,
        branch_id: str,
        quantity: Decimal | int | str,
        unit_cost: Decimal | int | str = ZERO,
        business_date: date | str | None = None,
        ref: Ref | None = None,
        note: str | None = None,
    ) -> StockMovement:
        """수량 증가 + masuk 이동 기록 (양수 수량이면 항상 성공)"""
        quantity = require_positive(quantity, "jumlah")
        return await self._move(
            product_id,
            branch_id,
            EntryDirection.IN,
            quantity,
            to_decimal(unit_cost, "hpp"),
            business_date,
            ref,
            note,
        )

    async def reverse_movement(self, movement_id: str, note: str | None = None) -> StockMovement:
        """이동 되돌리기 (역방향 이동 추가)

        Raises:
            NotFoundError: 원본 이동이 없는 경우
            ValidationError: 이미 되돌린 이동 / 되돌림 이동을 다시 되돌리려는 경우
            InsufficientStockError: masuk 되돌리기로 수량이 음수가 되는 경우
        """
        original = await self.get_movement(movement_id)
        if original.is_reversal:
            raise ValidationError(
                f"Movement {movement_id} is itself a reversal",
                {"movement_id": movement_id},
            )
        existing = await self.db.fetchone(
            "SELECT id FROM stock_barang WHERE reverses_id = ?",
            (movement_id,),
        )
        if existing:
            raise ValidationError(
                f"Movement {movement_id} was already reversed by {existing[0]}",
                {"movement_id": movement_id, "reversal_id": existing[0]},
            )

        return await self._move(
            original.product_id,
            original.branch_id,
            original.direction.opposite,
            original.quantity,
            original.unit_cost,
            original.business_date,
            original.ref,
            note or f"Reversal of {movement_id}",
            reverses_id=movement_id,
        )

    async def adjust(
        self,
        product_id: str,
        branch_id: str,
        counted: Decimal | int | str,
        business_date: date | str | None = None,
        note: str | None = None,
        ref: Ref | None = None,
        unit_cost: Decimal | int | str = ZERO,
    ) -> StockMovement | None:
        """실사 수량으로 맞추기 (차이만큼 signed 이동 1건)

        현재 수량 조회와 이동 기록이 같은 잠금/트랜잭션 안에서 일어나므로
        이동 기록 실패 시 수량도 바뀌지 않는다.

        Args:
            counted: 실사 수량 (≥ 0)

        Returns:
            기록된 이동. 차이가 수량 허용 오차 이하면 None

        Raises:
            ValidationError: counted < 0
            NotFoundError: produk / cabang 없음
        """
        counted = to_decimal(counted, "jumlah_baru")
        if counted < ZERO:
            raise ValidationError(
                "Counted quantity cannot be negative",
                {"field": "jumlah_baru", "value": counted},
            )
        tanggal = parse_business_date(business_date)

        async with self.locks.hold(("stok", product_id, branch_id)):
            async with self.db.transaction():
                await self._require_master(product_id, branch_id)
                position = await self.get_position(product_id, branch_id)
                difference = counted - position.quantity
                if abs(difference) <= Tolerances.QTY:
                    logger.info(
                        f"Stock adjust: {product_id}@{branch_id} already at {position.quantity}"
                    )
                    return None

                direction = EntryDirection.IN if difference > ZERO else EntryDirection.OUT
                movement_id, _ = await self._write_movement(
                    position,
                    direction,
                    abs(difference),
                    to_decimal(unit_cost, "hpp"),
                    tanggal,
                    ref,
                    note or f"Penyesuaian stok ({difference:+})",
                )

        logger.info(
            f"Stock adjust: {product_id}@{branch_id} {position.quantity} → {counted}",
            extra={"movement_id": movement_id, "selisih": str(difference)},
        )
        return await self.get_movement(movement_id)

    async def can_reverse(self, movements: Iterable[StockMovement]) -> None:
        """되돌리기 사전 검증 (쓰기 없음)

        같은 produk x cabang의 여러 이동을 합산해 최종 수량이 음수가 되는지 확인.

        Raises:
            InsufficientStockError: 되돌리면 수량이 음수가 되는 경우
        """
        net: dict[tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
        for movement in movements:
            net[(movement.product_id, movement.branch_id)] -= movement.signed_quantity

        for (product_id, branch_id), delta in net.items():
            if delta >= ZERO:
                continue
            position = await self.get_position(product_id, branch_id)
            if position.quantity + delta < ZERO:
                raise InsufficientStockError(
                    product_id,
                    branch_id,
                    position.quantity,
                    -delta,
                    f"Cannot reverse stock: available {position.quantity}, "
                    f"reversal needs {-delta}",
                )

    # =========================================================================
    # 정합성
    # =========================================================================

    async def reconcile(self, product_id: str, branch_id: str) -> StockDrift | None:
        """stok_cabang vs Σ stock_barang 비교

        Returns:
            불일치 시 StockDrift, 일치하면 None
        """
        position = await self.get_position(product_id, branch_id)
        rows = await self.db.fetchall(
            "SELECT tipe, jumlah FROM stock_barang WHERE produk_id = ? AND cabang_id = ?",
            (product_id, branch_id),
        )
        total = ZERO
        for tipe, jumlah in rows:
            total += dec_or_zero(jumlah) * EntryDirection(tipe).sign

        if abs(position.quantity - total) > Tolerances.QTY:
            return StockDrift(product_id, branch_id, position.quantity, total)
        return None

    async def all_positions(self) -> list[StockPosition]:
        """전체 stok_cabang 행"""
        rows = await self.db.fetchall_dict(
            "SELECT * FROM stok_cabang ORDER BY produk_id ASC, cabang_id ASC"
        )
        return [StockPosition.from_row(r) for r in rows]

    # =========================================================================
    # 내부
    # =========================================================================

    async def _move(
        self,
        product_id: str,
        branch_id: str,
        direction: EntryDirection,
        quantity: Decimal,
        unit_cost: Decimal,
        business_date: date | str | None,
        ref: Ref | None,
        note: str | None,
        reverses_id: str | None = None,
    ) -> StockMovement:
        """단일 read-then-write: 수량 갱신 + 이동 기록 (키 잠금 + 트랜잭션 1개)"""
        tanggal = parse_business_date(business_date)

        async with self.locks.hold(("stok", product_id, branch_id)):
            async with self.db.transaction():
                await self._require_master(product_id, branch_id)
                position = await self.get_position(product_id, branch_id)
                movement_id, new_quantity = await self._write_movement(
                    position, direction, quantity, unit_cost, tanggal, ref, note, reverses_id
                )

        logger.info(
            f"Stock {direction.value}: {product_id}@{branch_id} {quantity} → {new_quantity}",
            extra={"movement_id": movement_id, "reverses_id": reverses_id},
        )
        return await self.get_movement(movement_id)

    async def _write_movement(
        self,
        position: StockPosition,
        direction: EntryDirection,
        quantity: Decimal,
        unit_cost: Decimal,
        tanggal: date,
        ref: Ref | None,
        note: str | None,
        reverses_id: str | None = None,
    ) -> tuple[str, Decimal]:
        """수량 갱신 + stock_barang 행 추가 (호출자가 잠금/트랜잭션 보유)

        Returns:
            (movement_id, 새 수량)
        """
        new_quantity = position.quantity + quantity * direction.sign
        if new_quantity < ZERO:
            raise InsufficientStockError(
                position.product_id, position.branch_id, position.quantity, quantity
            )

        await self._write_position(position, new_quantity)

        movement_id = new_id("sb")
        await self.db.execute(
            """
            INSERT INTO stock_barang (
                id, produk_id, cabang_id, tanggal, tipe, jumlah, hpp,
                keterangan, ref_type, ref_id, reverses_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                movement_id,
                position.product_id,
                position.branch_id,
                tanggal.isoformat(),
                direction.value,
                str(quantity),
                str(unit_cost),
                note,
                ref.ref_type if ref else None,
                ref.ref_id if ref else None,
                reverses_id,
                format_ts(now_utc()),
            ),
        )
        return movement_id, new_quantity

    async def _require_master(self, product_id: str, branch_id: str) -> None:
        if await self.db.fetchone("SELECT 1 FROM produk WHERE id = ?", (product_id,)) is None:
            raise NotFoundError("produk", product_id)
        if await self.db.fetchone("SELECT 1 FROM cabang WHERE id = ?", (branch_id,)) is None:
            raise NotFoundError("cabang", branch_id)

    async def _write_position(self, position: StockPosition, quantity: Decimal) -> None:
        """stok_cabang 갱신 (version 검사 + 증가)

        Raises:
            ConcurrencyConflictError: 다른 writer가 먼저 변경한 경우
        """
        now = format_ts(now_utc())
        if position.version == 0:
            cursor = await self.db.execute(
                """
                INSERT OR IGNORE INTO stok_cabang (produk_id, cabang_id, jumlah, version, updated_at)
                VALUES (?, ?, ?, 1, ?)
                """,
                (position.product_id, position.branch_id, str(quantity), now),
            )
        else:
            cursor = await self.db.execute(
                """
                UPDATE stok_cabang SET jumlah = ?, version = version + 1, updated_at = ?
                WHERE produk_id = ? AND cabang_id = ? AND version = ?
                """,
                (str(quantity), now, position.product_id, position.branch_id, position.version),
            )
        if cursor.rowcount == 0:
            raise ConcurrencyConflictError(
                "stok_cabang",
                f"{position.product_id}@{position.branch_id}",
                position.version,
            )
