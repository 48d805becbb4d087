"""kas 작업 / Coordinator 진입점 통합 테스트"""

from decimal import Decimal

import pytest

from core.coordinator import CompensationCoordinator
from core.ledger import LedgerEngine
from core.transactions import TradeRepository
from core.types import Actor, EntryDirection, ErrorKind, PaymentTerms, TransactionKind


class TestRun:
    """run() 진입점"""

    @pytest.mark.asyncio
    async def test_unknown_operation(self, coordinator: CompensationCoordinator) -> None:
        result = await coordinator.run("refund_everything", {})

        assert result.ok is False
        assert result.error_kind == ErrorKind.VALIDATION
        assert "cash_entry" in result.error_detail["valid"]

    @pytest.mark.asyncio
    async def test_missing_field(self, coordinator: CompensationCoordinator) -> None:
        result = await coordinator.run("cash_entry", {"jenis_transaksi": "masuk"})

        assert result.error_kind == ErrorKind.VALIDATION
        assert result.error_detail == {"field": "kas_id"}

    def test_operations_listed(self, coordinator: CompensationCoordinator) -> None:
        assert set(coordinator.operations) == {
            "cash_entry",
            "cash_update",
            "cash_reverse",
            "cash_transfer",
            "stock_transfer",
            "debt_payment",
            "payment_reversal",
            "consignment_sale",
            "consignment_return",
            "stock_adjust",
            "post_sale",
            "post_purchase",
            "cancel_transaction",
        }

    def test_with_actor_shares_locks(self, coordinator: CompensationCoordinator) -> None:
        other = coordinator.with_actor(Actor.user("kasir-1"))
        assert other.locks is coordinator.locks
        assert other.actor.id == "user:kasir-1"


class TestCashEntry:
    """수동 엔트리"""

    @pytest.mark.asyncio
    async def test_entry(self, coordinator: CompensationCoordinator, seeded: dict[str, str]) -> None:
        result = await coordinator.run("cash_entry", {
            "kas_id": seeded["kas_a"],
            "jenis_transaksi": "keluar",
            "jumlah": "250",
            "kategori": "Operasional",
            "tanggal": "2026-03-02",
            "keterangan": "Bensin",
        })

        assert result.ok is True, result.message
        assert result.data.running_balance == Decimal("750")
        assert result.to_dict()["data"]["running_balance"] == "750"

    @pytest.mark.asyncio
    async def test_insufficient_funds(
        self, coordinator: CompensationCoordinator, seeded: dict[str, str]
    ) -> None:
        result = await coordinator.run("cash_entry", {
            "kas_id": seeded["kas_a"],
            "jenis_transaksi": "keluar",
            "jumlah": "1500",
            "kategori": "Operasional",
        })

        assert result.error_kind == ErrorKind.INSUFFICIENT_FUNDS
        assert result.error_detail["available"] == "1000"
        assert result.error_detail["requested"] == "1500"

    @pytest.mark.asyncio
    async def test_bad_direction(
        self, coordinator: CompensationCoordinator, seeded: dict[str, str]
    ) -> None:
        result = await coordinator.run("cash_entry", {
            "kas_id": seeded["kas_a"],
            "jenis_transaksi": "sideways",
            "jumlah": "1",
            "kategori": "Operasional",
        })
        assert result.error_kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_zero_amount(
        self, coordinator: CompensationCoordinator, seeded: dict[str, str]
    ) -> None:
        result = await coordinator.run("cash_entry", {
            "kas_id": seeded["kas_a"],
            "jenis_transaksi": "masuk",
            "jumlah": "0",
            "kategori": "Modal",
        })
        assert result.error_kind == ErrorKind.INVALID_AMOUNT


class TestCashUpdate:
    """엔트리 수정"""

    @pytest.mark.asyncio
    async def test_update_records_audit(
        self,
        coordinator: CompensationCoordinator,
        ledger: LedgerEngine,
        seeded: dict[str, str],
    ) -> None:
        entry = await ledger.append(seeded["kas_a"], "keluar", "100", "Operasional")

        result = await coordinator.run("cash_update", {"entry_id": entry.id, "jumlah": "300"})

        assert result.ok is True, result.message
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("700")
        audit = await coordinator.audit.list_for("kas_harian", entry.id)
        assert audit[0].action == "UPDATE"
        assert audit[0].old_data["amount"] == "100"
        assert audit[0].new_data["amount"] == "300"

    @pytest.mark.asyncio
    async def test_linked_entry_amount_locked(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        ledger: LedgerEngine,
        seeded: dict[str, str],
    ) -> None:
        """판매에 연결된 엔트리는 금액 변경 불가, 메모는 가능"""
        record = await trades.create(
            TransactionKind.SALE,
            "NJ-0400",
            seeded["gudang"],
            [{"produk_id": seeded["bulk"], "jumlah": "1", "harga": "500"}],
            terms=PaymentTerms.CASH,
            account_id=seeded["kas_a"],
        )
        await coordinator.run("post_sale", {"transaksi_id": record.id})
        entry = (await ledger.list_entries(seeded["kas_a"]))[-1]

        locked = await coordinator.run("cash_update", {"entry_id": entry.id, "jumlah": "1"})
        assert locked.error_kind == ErrorKind.VALIDATION
        assert locked.error_detail["ref_type"] == "penjualan"

        noted = await coordinator.run("cash_update", {"entry_id": entry.id, "keterangan": "Lunas"})
        assert noted.ok is True, noted.message
        assert noted.data.note == "Lunas"


class TestCashReverse:
    """엔트리 삭제"""

    @pytest.mark.asyncio
    async def test_reverse_manual_entry(
        self,
        coordinator: CompensationCoordinator,
        ledger: LedgerEngine,
        seeded: dict[str, str],
    ) -> None:
        first = await ledger.append(seeded["kas_a"], "keluar", "100", "Operasional")
        await ledger.append(seeded["kas_a"], "masuk", "50", "Modal")

        result = await coordinator.run("cash_reverse", {"entry_id": first.id})

        assert result.ok is True, result.message
        assert [e.id for e in result.data["reversed"]] == [first.id]
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("1050")
        assert (await coordinator.audit.list_for("kas_harian", first.id))[0].action == "DELETE"

    @pytest.mark.asyncio
    async def test_reverse_deposit_would_go_negative(
        self,
        coordinator: CompensationCoordinator,
        ledger: LedgerEngine,
        seeded: dict[str, str],
    ) -> None:
        deposit = await ledger.append(seeded["kas_b"], "masuk", "500", "Modal")
        await ledger.append(seeded["kas_b"], "keluar", "400", "Operasional")

        result = await coordinator.run("cash_reverse", {"entry_id": deposit.id})
        assert result.error_kind == ErrorKind.INSUFFICIENT_FUNDS

        forced = await coordinator.run("cash_reverse", {"entry_id": deposit.id, "allow_negative": True})
        assert forced.ok is True, forced.message
        assert (await ledger.get_account(seeded["kas_b"])).balance == Decimal("-400")

    @pytest.mark.asyncio
    async def test_reverse_transfer_leg_removes_both(
        self,
        coordinator: CompensationCoordinator,
        ledger: LedgerEngine,
        seeded: dict[str, str],
    ) -> None:
        transfer = await coordinator.run("cash_transfer", {
            "dari_kas_id": seeded["kas_a"],
            "ke_kas_id": seeded["kas_b"],
            "jumlah": "300",
        })
        assert transfer.ok is True, transfer.message
        out_leg = transfer.data.out_entry

        result = await coordinator.run("cash_reverse", {"entry_id": out_leg.id})

        assert result.ok is True, result.message
        directions = [e.direction for e in result.data["reversed"]]
        assert directions == [EntryDirection.IN, EntryDirection.OUT]
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("1000")
        assert (await ledger.get_account(seeded["kas_b"])).balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_reverse_linked_entry_refused(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        ledger: LedgerEngine,
        seeded: dict[str, str],
    ) -> None:
        """원천 레코드가 있는 엔트리는 해당 거래 취소로만"""
        record = await trades.create(
            TransactionKind.SALE,
            "NJ-0401",
            seeded["gudang"],
            [{"produk_id": seeded["bulk"], "jumlah": "1", "harga": "500"}],
            terms=PaymentTerms.CASH,
            account_id=seeded["kas_a"],
        )
        await coordinator.run("post_sale", {"transaksi_id": record.id})
        entry = (await ledger.list_entries(seeded["kas_a"]))[-1]

        result = await coordinator.run("cash_reverse", {"entry_id": entry.id})

        assert result.error_kind == ErrorKind.VALIDATION
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("1500")


class TestCashTransfer:
    """계좌 이체"""

    @pytest.mark.asyncio
    async def test_transfer(
        self,
        coordinator: CompensationCoordinator,
        ledger: LedgerEngine,
        seeded: dict[str, str],
    ) -> None:
        result = await coordinator.run("cash_transfer", {
            "dari_kas_id": seeded["kas_a"],
            "ke_kas_id": seeded["kas_b"],
            "jumlah": "300",
            "keterangan": "Setor",
        })

        assert result.ok is True, result.message
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("700")
        assert (await ledger.get_account(seeded["kas_b"])).balance == Decimal("300")

    @pytest.mark.asyncio
    async def test_transfer_insufficient(
        self, coordinator: CompensationCoordinator, seeded: dict[str, str]
    ) -> None:
        result = await coordinator.run("cash_transfer", {
            "dari_kas_id": seeded["kas_b"],
            "ke_kas_id": seeded["kas_a"],
            "jumlah": "1",
        })
        assert result.error_kind == ErrorKind.INSUFFICIENT_FUNDS
