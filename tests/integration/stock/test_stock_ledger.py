"""StockLedger / Catalog 통합 테스트"""

import asyncio
from decimal import Decimal

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.errors import (
    InsufficientStockError,
    InvalidAmountError,
    NotFoundError,
    ValidationError,
)
from core.stock import Catalog, StockLedger
from core.types import EntryDirection, Ref


class TestCatalog:
    """produk / cabang 마스터"""

    @pytest.mark.asyncio
    async def test_create_and_get(self, catalog: Catalog) -> None:
        product = await catalog.create_product("MC-01", "Minyak Curah", "Kg", Decimal("0.9"))
        branch = await catalog.create_branch("Gudang")

        assert (await catalog.get_product(product.id)).density == Decimal("0.9")
        assert (await catalog.get_branch(branch.id)).name == "Gudang"

    @pytest.mark.asyncio
    async def test_duplicate_code(self, catalog: Catalog) -> None:
        await catalog.create_product("MC-01", "Minyak Curah", "Kg")
        with pytest.raises(ValidationError):
            await catalog.create_product("MC-01", "Lain", "Kg")

    @pytest.mark.asyncio
    async def test_invalid_density(self, catalog: Catalog) -> None:
        with pytest.raises(ValidationError):
            await catalog.create_product("MC-02", "Minyak", "Kg", Decimal("0"))

    @pytest.mark.asyncio
    async def test_not_found(self, catalog: Catalog) -> None:
        with pytest.raises(NotFoundError):
            await catalog.get_product("prd-missing")
        with pytest.raises(NotFoundError):
            await catalog.get_branch("cbg-missing")


class TestDecrementIncrement:
    """수량 증감"""

    @pytest.mark.asyncio
    async def test_increment_creates_position(
        self, stock: StockLedger, seeded: dict[str, str]
    ) -> None:
        """행이 없던 위치도 increment 성공"""
        movement = await stock.increment(seeded["retail"], seeded["toko"], "12", "2000")

        position = await stock.get_position(seeded["retail"], seeded["toko"])
        assert position.quantity == Decimal("12")
        assert position.version == 1
        assert movement.direction == EntryDirection.IN
        assert movement.unit_cost == Decimal("2000")

    @pytest.mark.asyncio
    async def test_missing_position_reads_zero(
        self, stock: StockLedger, seeded: dict[str, str]
    ) -> None:
        position = await stock.get_position(seeded["retail"], seeded["gudang"])
        assert position.quantity == Decimal("0")
        assert position.version == 0

    @pytest.mark.asyncio
    async def test_decrement(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        ref = Ref.of("penjualan", "pj-1")
        movement = await stock.decrement(seeded["bulk"], seeded["gudang"], "12.5", ref=ref)

        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("17.5")
        assert movement.direction == EntryDirection.OUT
        assert movement.ref == ref
        assert [m.id for m in await stock.list_movements(ref=ref)] == [movement.id]

    @pytest.mark.asyncio
    async def test_decrement_to_zero(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        await stock.decrement(seeded["bulk"], seeded["gudang"], "30")
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("0")

    @pytest.mark.asyncio
    async def test_insufficient_no_side_effect(
        self, stock: StockLedger, seeded: dict[str, str]
    ) -> None:
        """재고 부족 → 수량/이동 기록 그대로"""
        before = await stock.list_movements(seeded["bulk"], seeded["gudang"])

        with pytest.raises(InsufficientStockError) as exc_info:
            await stock.decrement(seeded["bulk"], seeded["gudang"], "50")

        detail = exc_info.value.to_detail()
        assert detail["available"] == "30"
        assert detail["requested"] == "50"
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")
        assert len(await stock.list_movements(seeded["bulk"], seeded["gudang"])) == len(before)

    @pytest.mark.asyncio
    async def test_invalid_quantity(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        with pytest.raises(InvalidAmountError):
            await stock.decrement(seeded["bulk"], seeded["gudang"], "0")
        with pytest.raises(InvalidAmountError):
            await stock.increment(seeded["bulk"], seeded["gudang"], "-1")

    @pytest.mark.asyncio
    async def test_unknown_master(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        with pytest.raises(NotFoundError):
            await stock.increment("prd-missing", seeded["gudang"], "1")
        with pytest.raises(NotFoundError):
            await stock.increment(seeded["bulk"], "cbg-missing", "1")

    @pytest.mark.asyncio
    async def test_concurrent_decrements_never_negative(
        self, stock: StockLedger, seeded: dict[str, str]
    ) -> None:
        """동시 감소 10 x 4 (재고 30) → 정확히 7건만 성공"""
        results = await asyncio.gather(
            *(stock.decrement(seeded["bulk"], seeded["gudang"], "4") for _ in range(10)),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, InsufficientStockError)]
        assert len(succeeded) == 7
        assert len(failed) == 3
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("2")
        assert await stock.reconcile(seeded["bulk"], seeded["gudang"]) is None


class TestReverseMovement:
    """이동 되돌리기"""

    @pytest.mark.asyncio
    async def test_reverse_decrement(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        movement = await stock.decrement(seeded["bulk"], seeded["gudang"], "10")

        reversal = await stock.reverse_movement(movement.id)

        assert reversal.direction == EntryDirection.IN
        assert reversal.reverses_id == movement.id
        assert reversal.quantity == Decimal("10")
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")

    @pytest.mark.asyncio
    async def test_double_reversal_rejected(
        self, stock: StockLedger, seeded: dict[str, str]
    ) -> None:
        movement = await stock.decrement(seeded["bulk"], seeded["gudang"], "10")
        reversal = await stock.reverse_movement(movement.id)

        with pytest.raises(ValidationError):
            await stock.reverse_movement(movement.id)
        with pytest.raises(ValidationError):
            await stock.reverse_movement(reversal.id)

    @pytest.mark.asyncio
    async def test_reverse_increment_needs_stock(
        self, stock: StockLedger, seeded: dict[str, str]
    ) -> None:
        """masuk 되돌리기로 음수가 되면 거부"""
        incoming = await stock.increment(seeded["retail"], seeded["toko"], "10")
        await stock.decrement(seeded["retail"], seeded["toko"], "8")

        with pytest.raises(InsufficientStockError):
            await stock.reverse_movement(incoming.id)

    @pytest.mark.asyncio
    async def test_open_movements(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        """되돌린 이동은 open 목록에서 제외"""
        ref = Ref.of("unloading", "ul-1")
        first = await stock.decrement(seeded["bulk"], seeded["gudang"], "5", ref=ref)
        second = await stock.increment(seeded["retail"], seeded["toko"], "5", ref=ref)
        await stock.reverse_movement(first.id)

        assert [m.id for m in await stock.open_movements(ref)] == [second.id]

    @pytest.mark.asyncio
    async def test_not_found(self, stock: StockLedger) -> None:
        with pytest.raises(NotFoundError):
            await stock.reverse_movement("sb-missing")


class TestAdjust:
    """실사 수량 맞추기"""

    @pytest.mark.asyncio
    async def test_count_below_position(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        """30 → 27.5: keluar 2.5 한 건"""
        movement = await stock.adjust(seeded["bulk"], seeded["gudang"], "27.5", note="Opname Maret")

        assert movement is not None
        assert movement.direction == EntryDirection.OUT
        assert movement.quantity == Decimal("2.5")
        assert movement.note == "Opname Maret"
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("27.5")
        assert await stock.reconcile(seeded["bulk"], seeded["gudang"]) is None

    @pytest.mark.asyncio
    async def test_count_above_position(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        movement = await stock.adjust(seeded["retail"], seeded["toko"], "12")

        assert movement.direction == EntryDirection.IN
        assert movement.signed_quantity == Decimal("12")
        assert movement.note == "Penyesuaian stok (+12)"
        assert (await stock.get_position(seeded["retail"], seeded["toko"])).quantity == Decimal("12")

    @pytest.mark.asyncio
    async def test_no_difference_is_noop(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        before = await stock.list_movements(seeded["bulk"], seeded["gudang"])

        assert await stock.adjust(seeded["bulk"], seeded["gudang"], "30.0005") is None
        assert await stock.list_movements(seeded["bulk"], seeded["gudang"]) == before

    @pytest.mark.asyncio
    async def test_negative_count(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        with pytest.raises(ValidationError):
            await stock.adjust(seeded["bulk"], seeded["gudang"], "-1")
        with pytest.raises(NotFoundError):
            await stock.adjust("prd-missing", seeded["gudang"], "1")

    @pytest.mark.asyncio
    async def test_failed_history_insert_keeps_position(
        self, db: SQLiteAdapter, stock: StockLedger, seeded: dict[str, str]
    ) -> None:
        """이동 기록 실패 → 수량도 그대로"""
        await db.execute(
            """
            CREATE TRIGGER block_stock_history BEFORE INSERT ON stock_barang
            BEGIN SELECT RAISE(ABORT, 'history unavailable'); END
            """
        )
        await db.commit()

        with pytest.raises(Exception, match="history unavailable"):
            await stock.adjust(seeded["bulk"], seeded["gudang"], "10")

        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")

    @pytest.mark.asyncio
    async def test_concurrent_with_decrement(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        """decrement와 같은 잠금 → 최종 수량은 둘 중 나중 쓰기 기준, chain 일치"""
        await asyncio.gather(
            stock.adjust(seeded["bulk"], seeded["gudang"], "20"),
            stock.decrement(seeded["bulk"], seeded["gudang"], "5"),
        )

        assert await stock.reconcile(seeded["bulk"], seeded["gudang"]) is None


class TestCanReverse:
    """되돌리기 사전 검증"""

    @pytest.mark.asyncio
    async def test_nets_movements_per_position(
        self, stock: StockLedger, seeded: dict[str, str]
    ) -> None:
        """같은 위치의 masuk/keluar는 합산"""
        incoming = await stock.increment(seeded["retail"], seeded["toko"], "10")
        outgoing = await stock.decrement(seeded["retail"], seeded["toko"], "8")

        await stock.can_reverse([incoming, outgoing])

        with pytest.raises(InsufficientStockError):
            await stock.can_reverse([incoming])


class TestReconcile:
    """stok_cabang vs 이동 기록"""

    @pytest.mark.asyncio
    async def test_consistent(self, stock: StockLedger, seeded: dict[str, str]) -> None:
        await stock.decrement(seeded["bulk"], seeded["gudang"], "3")
        assert await stock.reconcile(seeded["bulk"], seeded["gudang"]) is None

    @pytest.mark.asyncio
    async def test_drift_detected(
        self, stock: StockLedger, db: SQLiteAdapter, seeded: dict[str, str]
    ) -> None:
        await db.execute(
            "UPDATE stok_cabang SET jumlah = '29' WHERE produk_id = ? AND cabang_id = ?",
            (seeded["bulk"], seeded["gudang"]),
        )
        await db.commit()

        drift = await stock.reconcile(seeded["bulk"], seeded["gudang"])

        assert drift is not None
        assert drift.position_quantity == Decimal("29")
        assert drift.movement_quantity == Decimal("30")
        assert drift.difference == Decimal("-1")

    @pytest.mark.asyncio
    async def test_within_tolerance(
        self, stock: StockLedger, db: SQLiteAdapter, seeded: dict[str, str]
    ) -> None:
        await db.execute(
            "UPDATE stok_cabang SET jumlah = '30.0005' WHERE produk_id = ? AND cabang_id = ?",
            (seeded["bulk"], seeded["gudang"]),
        )
        await db.commit()
        assert await stock.reconcile(seeded["bulk"], seeded["gudang"]) is None
