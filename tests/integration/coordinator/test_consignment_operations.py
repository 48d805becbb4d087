"""consignment_sale / consignment_return / 위탁 판매 취소 통합 테스트"""

from decimal import Decimal

import pytest
import pytest_asyncio

from core.coordinator import CompensationCoordinator
from core.errors import NotFoundError
from core.ledger import LedgerEngine
from core.stock import StockLedger
from core.transactions import ConsignmentLine, ConsignmentRepository
from core.types import ErrorKind, Ref, ReturnCondition, TransactionState


@pytest_asyncio.fixture
async def line(consignments: ConsignmentRepository, seeded: dict[str, str]) -> ConsignmentLine:
    """Gudang에서 Toko Maju로 10 위탁 (harga_konsinyasi 15,000)"""
    consignment = await consignments.create(
        "KS-0001",
        "Toko Maju",
        seeded["gudang"],
        [{"produk_id": seeded["bulk"], "jumlah_titip": "10", "harga_konsinyasi": "15000"}],
        "2026-03-01",
    )
    return consignment.lines[0]


def _sell(line_id: str, quantity: str = "4") -> dict[str, str]:
    return {
        "detail_konsinyasi_id": line_id,
        "jumlah": quantity,
        "harga_jual_toko": "18000",
        "kas_id": "kas-a",
        "tanggal": "2026-03-08",
    }


class TestConsignmentSale:
    """위탁 판매"""

    @pytest.mark.asyncio
    async def test_titip_does_not_move_stock(
        self, stock: StockLedger, line: ConsignmentLine, seeded: dict[str, str]
    ) -> None:
        assert line.remaining == Decimal("10")
        assert line.branch_id == seeded["gudang"]
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")

    @pytest.mark.asyncio
    async def test_sale(
        self,
        coordinator: CompensationCoordinator,
        consignments: ConsignmentRepository,
        ledger: LedgerEngine,
        stock: StockLedger,
        line: ConsignmentLine,
        seeded: dict[str, str],
    ) -> None:
        """재고 감소, 카운터 갱신, kas에는 jumlah x harga_konsinyasi"""
        result = await coordinator.run("consignment_sale", _sell(line.id))

        assert result.ok is True, result.message
        sale = result.data
        assert sale.state == TransactionState.COMMITTED
        assert sale.total_sale == Decimal("72000")
        assert sale.our_value == Decimal("60000")
        assert sale.store_profit == Decimal("12000")
        assert sale.entry_id is not None
        assert sale.movement_id is not None

        updated = await consignments.get_line(line.id)
        assert updated.sold == Decimal("4")
        assert updated.remaining == Decimal("6")
        assert updated.store_profit == Decimal("12000")
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("26")
        assert (await ledger.get_account("kas-a")).balance == Decimal("61000")

    @pytest.mark.asyncio
    async def test_exceeds_remaining(
        self,
        coordinator: CompensationCoordinator,
        line: ConsignmentLine,
    ) -> None:
        result = await coordinator.run("consignment_sale", _sell(line.id, "11"))

        assert result.error_kind == ErrorKind.VALIDATION
        assert result.error_detail == {"available": "10", "requested": "11"}

    @pytest.mark.asyncio
    async def test_branch_stock_short(
        self,
        coordinator: CompensationCoordinator,
        stock: StockLedger,
        line: ConsignmentLine,
        seeded: dict[str, str],
    ) -> None:
        """위탁 잔량은 있어도 cabang 재고가 부족하면 거부"""
        await stock.decrement(seeded["bulk"], seeded["gudang"], "28")

        result = await coordinator.run("consignment_sale", _sell(line.id, "4"))

        assert result.error_kind == ErrorKind.INSUFFICIENT_STOCK

    @pytest.mark.asyncio
    async def test_kas_failure_compensates_everything(
        self,
        coordinator: CompensationCoordinator,
        consignments: ConsignmentRepository,
        stock: StockLedger,
        line: ConsignmentLine,
        seeded: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_append(*args, **kwargs):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(coordinator.ledger, "append", broken_append)

        result = await coordinator.run("consignment_sale", _sell(line.id))

        assert result.error_kind == ErrorKind.PARTIAL_FAILURE
        assert result.error_detail["failed_step"] == "kas"
        assert result.error_detail["compensated"] == ["stok", "detail_konsinyasi", "penjualan"]
        assert (await consignments.get_line(line.id)).remaining == Decimal("10")
        assert await consignments.list_sales(line.id) == []
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")

    @pytest.mark.asyncio
    async def test_stock_compensation_failure_leaves_marker(
        self,
        coordinator: CompensationCoordinator,
        line: ConsignmentLine,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(coordinator.ledger, "append", broken)
        monkeypatch.setattr(coordinator.stock, "reverse_movement", broken)

        result = await coordinator.run("consignment_sale", _sell(line.id))

        assert result.error_detail["uncompensated"] == ["stok"]
        markers = await coordinator.reconciliation.list_markers(entity_type="penjualan_konsinyasi")
        assert len(markers) == 1
        assert markers[0].id == result.error_detail["reconciliation_id"]
        assert markers[0].pending_steps == ["stok"]


class TestCancelConsignmentSale:
    """위탁 판매 취소"""

    @pytest.mark.asyncio
    async def test_cancel_restores_everything(
        self,
        coordinator: CompensationCoordinator,
        consignments: ConsignmentRepository,
        ledger: LedgerEngine,
        stock: StockLedger,
        line: ConsignmentLine,
        seeded: dict[str, str],
    ) -> None:
        """재고/kas/카운터 복원, 두 번째 취소는 not_found"""
        sale = (await coordinator.run("consignment_sale", _sell(line.id))).data

        result = await coordinator.run(
            "cancel_transaction", {"jenis": "penjualan_konsinyasi", "id": sale.id}
        )

        assert result.ok is True, result.message
        assert result.data["stock_reversals"] == 1
        assert result.data["kas_reversals"] == 1
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")
        assert (await ledger.get_account("kas-a")).balance == Decimal("1000")
        restored = await consignments.get_line(line.id)
        assert (restored.sold, restored.remaining, restored.store_profit) == (
            Decimal("0"),
            Decimal("10"),
            Decimal("0"),
        )
        with pytest.raises(NotFoundError):
            await consignments.get_sale(sale.id)

        again = await coordinator.run(
            "cancel_transaction", {"jenis": "penjualan_konsinyasi", "id": sale.id}
        )
        assert again.error_kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_cancel_failure_leaves_marker(
        self,
        coordinator: CompensationCoordinator,
        stock: StockLedger,
        line: ConsignmentLine,
        seeded: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """취소는 되돌리지 않음: 중간 실패 시 적용된 단계를 마커로"""
        sale = (await coordinator.run("consignment_sale", _sell(line.id))).data

        async def broken_reverse(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(coordinator.ledger, "reverse", broken_reverse)

        result = await coordinator.run(
            "cancel_transaction", {"jenis": "penjualan_konsinyasi", "id": sale.id}
        )

        assert result.error_kind == ErrorKind.PARTIAL_FAILURE
        assert result.error_detail["failed_step"] == "kas_0"
        assert result.error_detail["uncompensated"] == ["stok_0"]
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")
        marker = await coordinator.reconciliation.get(result.error_detail["reconciliation_id"])
        assert marker.operation == "cancel_transaction"
        assert marker.entity_id == sale.id


def _return(line_id: str, quantity: str, condition: str = "baik") -> dict[str, str]:
    return {
        "detail_konsinyasi_id": line_id,
        "jumlah": quantity,
        "kondisi": condition,
        "tanggal": "2026-03-15",
    }


class TestConsignmentReturn:
    """위탁 반품"""

    @pytest.mark.asyncio
    async def test_good_return_moves_counters_only(
        self,
        coordinator: CompensationCoordinator,
        consignments: ConsignmentRepository,
        stock: StockLedger,
        line: ConsignmentLine,
        seeded: dict[str, str],
    ) -> None:
        """baik: jumlah_sisa → jumlah_kembali, cabang 재고 그대로"""
        result = await coordinator.run("consignment_return", _return(line.id, "3"))

        assert result.ok is True, result.message
        assert result.data.condition == ReturnCondition.GOOD
        assert result.data.movement_id is None
        updated = await consignments.get_line(line.id)
        assert (updated.sold, updated.remaining, updated.returned) == (
            Decimal("0"),
            Decimal("7"),
            Decimal("3"),
        )
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")
        assert [r.id for r in await consignments.list_returns(line.id)] == [result.data.id]

    @pytest.mark.asyncio
    async def test_damaged_return_decrements_branch_stock(
        self,
        coordinator: CompensationCoordinator,
        stock: StockLedger,
        line: ConsignmentLine,
        seeded: dict[str, str],
    ) -> None:
        result = await coordinator.run("consignment_return", _return(line.id, "2", "rusak"))

        assert result.ok is True, result.message
        movement = await stock.get_movement(result.data.movement_id)
        assert movement.quantity == Decimal("2")
        assert movement.ref == Ref(ref_type="retur_konsinyasi", ref_id=result.data.id)
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("28")
        assert await stock.reconcile(seeded["bulk"], seeded["gudang"]) is None

    @pytest.mark.asyncio
    async def test_exceeds_remaining(
        self,
        coordinator: CompensationCoordinator,
        consignments: ConsignmentRepository,
        line: ConsignmentLine,
    ) -> None:
        """판매 4 후 남은 6보다 많이 반품 불가, 반품 후 판매도 남은 수량 기준"""
        await coordinator.run("consignment_sale", _sell(line.id, "4"))

        too_many = await coordinator.run("consignment_return", _return(line.id, "7"))
        assert too_many.error_kind == ErrorKind.VALIDATION
        assert await consignments.list_returns(line.id) == []

        assert (await coordinator.run("consignment_return", _return(line.id, "5"))).ok
        oversell = await coordinator.run("consignment_sale", _sell(line.id, "2"))
        assert oversell.error_kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_invalid_condition(
        self, coordinator: CompensationCoordinator, line: ConsignmentLine
    ) -> None:
        result = await coordinator.run("consignment_return", _return(line.id, "1", "hilang"))
        assert result.error_kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_stock_failure_compensates_counters(
        self,
        coordinator: CompensationCoordinator,
        consignments: ConsignmentRepository,
        line: ConsignmentLine,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_decrement(*args, **kwargs):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(coordinator.stock, "decrement", broken_decrement)

        result = await coordinator.run("consignment_return", _return(line.id, "2", "rusak"))

        assert result.error_kind == ErrorKind.PARTIAL_FAILURE
        assert result.error_detail["failed_step"] == "stok"
        assert result.error_detail["compensated"] == ["detail_konsinyasi", "retur"]
        restored = await consignments.get_line(line.id)
        assert (restored.remaining, restored.returned) == (Decimal("10"), Decimal("0"))
        assert await consignments.list_returns(line.id) == []

    @pytest.mark.asyncio
    async def test_cancel_sale_keeps_returned(
        self,
        coordinator: CompensationCoordinator,
        consignments: ConsignmentRepository,
        line: ConsignmentLine,
    ) -> None:
        sale = (await coordinator.run("consignment_sale", _sell(line.id, "4"))).data
        await coordinator.run("consignment_return", _return(line.id, "2"))

        result = await coordinator.run(
            "cancel_transaction", {"jenis": "penjualan_konsinyasi", "id": sale.id}
        )

        assert result.ok is True, result.message
        restored = await consignments.get_line(line.id)
        assert (restored.sold, restored.remaining, restored.returned) == (
            Decimal("0"),
            Decimal("8"),
            Decimal("2"),
        )
