"""post_sale / post_purchase / 판매·구매 취소 통합 테스트"""

from decimal import Decimal

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.coordinator import CompensationCoordinator
from core.errors import NotFoundError
from core.ledger import LedgerEngine
from core.stock import StockLedger
from core.transactions import TradeRepository
from core.types import (
    DebtKind,
    DebtStatus,
    ErrorKind,
    PaymentTerms,
    Ref,
    TransactionKind,
    TransactionState,
)


async def _cash_sale(trades: TradeRepository, seeded: dict[str, str], quantity: str = "10") -> str:
    record = await trades.create(
        TransactionKind.SALE,
        "NJ-0100",
        seeded["gudang"],
        [{"produk_id": seeded["bulk"], "jumlah": quantity, "harga": "20000"}],
        terms=PaymentTerms.CASH,
        account_id=seeded["kas_a"],
        business_date="2026-03-10",
    )
    return record.id


async def _credit_sale(trades: TradeRepository, seeded: dict[str, str]) -> str:
    record = await trades.create(
        TransactionKind.SALE,
        "NJ-0200",
        seeded["gudang"],
        [{"produk_id": seeded["bulk"], "jumlah": "10", "harga": "100000"}],
        terms=PaymentTerms.CREDIT,
        party="Toko Sinar",
        due_date="2026-04-10",
    )
    return record.id


class TestPostSale:
    """판매 반영"""

    @pytest.mark.asyncio
    async def test_cash_sale(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        ledger: LedgerEngine,
        stock: StockLedger,
        seeded: dict[str, str],
    ) -> None:
        """재고 감소 + kas 입금 + lunas"""
        sale_id = await _cash_sale(trades, seeded)

        result = await coordinator.run("post_sale", {"transaksi_id": sale_id})

        assert result.ok is True, result.message
        assert result.data.state == TransactionState.COMMITTED
        assert result.data.paid == Decimal("200000")
        assert result.data.payment_status == DebtStatus.PAID.value
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("20")
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("201000")

    @pytest.mark.asyncio
    async def test_credit_sale_creates_receivable(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        ledger: LedgerEngine,
        seeded: dict[str, str],
    ) -> None:
        sale_id = await _credit_sale(trades, seeded)

        result = await coordinator.run("post_sale", {"transaksi_id": sale_id})

        assert result.ok is True, result.message
        debt = await coordinator.debts.get_debt_for_transaction(DebtKind.RECEIVABLE, sale_id)
        assert debt is not None
        assert debt.total == Decimal("1000000")
        assert debt.status == DebtStatus.UNPAID
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("1000")

    @pytest.mark.asyncio
    async def test_insufficient_stock(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        seeded: dict[str, str],
    ) -> None:
        sale_id = await _cash_sale(trades, seeded, quantity="40")

        result = await coordinator.run("post_sale", {"transaksi_id": sale_id})

        assert result.error_kind == ErrorKind.INSUFFICIENT_STOCK
        assert (await trades.get(TransactionKind.SALE, sale_id)).state == TransactionState.DRAFT

    @pytest.mark.asyncio
    async def test_post_twice(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        seeded: dict[str, str],
    ) -> None:
        """committed → committed 전이 불가"""
        sale_id = await _cash_sale(trades, seeded)
        await coordinator.run("post_sale", {"transaksi_id": sale_id})

        result = await coordinator.run("post_sale", {"transaksi_id": sale_id})

        assert result.error_kind == ErrorKind.INVALID_STATE

    @pytest.mark.asyncio
    async def test_missing_transaction(self, coordinator: CompensationCoordinator) -> None:
        result = await coordinator.run("post_sale", {"transaksi_id": "pj-missing"})
        assert result.error_kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_zero_total_rejected_before_any_write(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        ledger: LedgerEngine,
        stock: StockLedger,
        seeded: dict[str, str],
    ) -> None:
        """harga 0 → 합계 0, 재고/kas 변경 및 rekonsiliasi 마커 없음"""
        record = await trades.create(
            TransactionKind.SALE,
            "NJ-0110",
            seeded["gudang"],
            [{"produk_id": seeded["bulk"], "jumlah": "5", "harga": "0"}],
            terms=PaymentTerms.CASH,
            account_id=seeded["kas_a"],
        )

        result = await coordinator.run("post_sale", {"transaksi_id": record.id})

        assert result.error_kind == ErrorKind.VALIDATION
        assert result.error_detail["total"] == "0"
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("1000")
        assert await coordinator.reconciliation.list_markers() == []
        assert (await trades.get(TransactionKind.SALE, record.id)).state == TransactionState.DRAFT

    @pytest.mark.asyncio
    async def test_zero_total_credit_sale_has_no_receivable(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        seeded: dict[str, str],
    ) -> None:
        record = await trades.create(
            TransactionKind.SALE,
            "NJ-0111",
            seeded["gudang"],
            [{"produk_id": seeded["bulk"], "jumlah": "1", "harga": "0"}],
            terms=PaymentTerms.CREDIT,
            party="Toko Sinar",
        )

        result = await coordinator.run("post_sale", {"transaksi_id": record.id})

        assert result.error_kind == ErrorKind.VALIDATION
        assert await coordinator.debts.get_debt_for_transaction(DebtKind.RECEIVABLE, record.id) is None

    @pytest.mark.asyncio
    async def test_posts_line_item_total_not_stored_header(
        self,
        coordinator: CompensationCoordinator,
        db: SQLiteAdapter,
        trades: TradeRepository,
        ledger: LedgerEngine,
        seeded: dict[str, str],
    ) -> None:
        """헤더 total이 어긋나도 kas 입금 = Σ jumlah x harga"""
        sale_id = await _cash_sale(trades, seeded)
        await db.execute("UPDATE transaksi_penjualan SET total = '999' WHERE id = ?", (sale_id,))
        await db.commit()

        result = await coordinator.run("post_sale", {"transaksi_id": sale_id})

        assert result.ok is True, result.message
        assert result.data.total == Decimal("200000")
        assert result.data.paid == Decimal("200000")
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("201000")

    @pytest.mark.asyncio
    async def test_kas_failure_compensates_stock(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        stock: StockLedger,
        seeded: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """kas 단계 실패 → 재고 되돌림, draft 유지, 다시 반영 가능"""
        sale_id = await _cash_sale(trades, seeded)

        async def broken_append(*args, **kwargs):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(coordinator.ledger, "append", broken_append)
        result = await coordinator.run("post_sale", {"transaksi_id": sale_id})

        assert result.error_kind == ErrorKind.PARTIAL_FAILURE
        assert result.error_detail["failed_step"] == "kas"
        assert result.error_detail["compensated"] == ["stok_0"]
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")
        assert (await trades.get(TransactionKind.SALE, sale_id)).state == TransactionState.DRAFT

        monkeypatch.undo()
        retry = await coordinator.run("post_sale", {"transaksi_id": sale_id})
        assert retry.ok is True, retry.message


class TestPostPurchase:
    """구매 반영"""

    @pytest.mark.asyncio
    async def test_cash_purchase(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        ledger: LedgerEngine,
        stock: StockLedger,
        seeded: dict[str, str],
    ) -> None:
        """재고 증가 (hpp = harga) + kas 출금"""
        record = await trades.create(
            TransactionKind.PURCHASE,
            "PB-0100",
            seeded["gudang"],
            [{"produk_id": seeded["bulk"], "jumlah": "2", "harga": "400"}],
            terms=PaymentTerms.CASH,
            account_id=seeded["kas_a"],
        )

        result = await coordinator.run("post_purchase", {"transaksi_id": record.id})

        assert result.ok is True, result.message
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("32")
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("200")
        movements = await stock.list_movements(seeded["bulk"], seeded["gudang"])
        assert movements[-1].unit_cost == Decimal("400")

    @pytest.mark.asyncio
    async def test_cash_purchase_insufficient_funds(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        stock: StockLedger,
        seeded: dict[str, str],
    ) -> None:
        record = await trades.create(
            TransactionKind.PURCHASE,
            "PB-0101",
            seeded["gudang"],
            [{"produk_id": seeded["bulk"], "jumlah": "10", "harga": "15000"}],
            terms=PaymentTerms.CASH,
            account_id=seeded["kas_a"],
        )

        result = await coordinator.run("post_purchase", {"transaksi_id": record.id})

        assert result.error_kind == ErrorKind.INSUFFICIENT_FUNDS
        assert result.error_detail["available"] == "1000"
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")

    @pytest.mark.asyncio
    async def test_credit_purchase_creates_payable(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        seeded: dict[str, str],
    ) -> None:
        record = await trades.create(
            TransactionKind.PURCHASE,
            "PB-0102",
            seeded["gudang"],
            [{"produk_id": seeded["bulk"], "jumlah": "10", "harga": "15000"}],
            terms=PaymentTerms.CREDIT,
            party="PT Sawit",
        )

        result = await coordinator.run("post_purchase", {"transaksi_id": record.id})

        assert result.ok is True, result.message
        debt = await coordinator.debts.get_debt_for_transaction(DebtKind.PAYABLE, record.id)
        assert debt is not None
        assert debt.total == Decimal("150000")


class TestCancelTrade:
    """판매/구매 취소"""

    @pytest.mark.asyncio
    async def test_cancel_cash_sale(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        ledger: LedgerEngine,
        stock: StockLedger,
        seeded: dict[str, str],
    ) -> None:
        """재고/kas 복원, 레코드 삭제, 두 번째 취소는 not_found"""
        sale_id = await _cash_sale(trades, seeded)
        await coordinator.run("post_sale", {"transaksi_id": sale_id})

        result = await coordinator.run("cancel_transaction", {"jenis": "penjualan", "id": sale_id})

        assert result.ok is True, result.message
        assert result.data == {
            "jenis": "penjualan",
            "id": sale_id,
            "stock_reversals": 1,
            "kas_reversals": 1,
        }
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("1000")
        assert await ledger.verify_chain(seeded["kas_a"]) == []
        with pytest.raises(NotFoundError):
            await trades.get(TransactionKind.SALE, sale_id)

        again = await coordinator.run("cancel_transaction", {"jenis": "penjualan", "id": sale_id})
        assert again.error_kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_cancel_blocked_by_negative_kas(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        ledger: LedgerEngine,
        stock: StockLedger,
        seeded: dict[str, str],
    ) -> None:
        """판매 입금이 이미 지출됐으면 취소 불가"""
        sale_id = await _cash_sale(trades, seeded)
        await coordinator.run("post_sale", {"transaksi_id": sale_id})
        await ledger.append(seeded["kas_a"], "keluar", "200500", "Operasional")

        result = await coordinator.run("cancel_transaction", {"jenis": "penjualan", "id": sale_id})

        assert result.error_kind == ErrorKind.INSUFFICIENT_FUNDS
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("20")
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("500")

    @pytest.mark.asyncio
    async def test_cancel_checks_combined_inflows_per_account(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        ledger: LedgerEngine,
        stock: StockLedger,
        seeded: dict[str, str],
    ) -> None:
        """같은 계좌의 입금 엔트리 여러 개 → 합산 기준으로 검사"""
        sale_id = await _cash_sale(trades, seeded)
        await coordinator.run("post_sale", {"transaksi_id": sale_id})
        await ledger.append(
            seeded["kas_a"],
            "masuk",
            "100000",
            "Penjualan",
            ref=Ref.of(TransactionKind.SALE, sale_id),
        )
        # 각각 삭제하면 음수가 아니지만 함께 삭제하면 -99000
        await ledger.append(seeded["kas_a"], "keluar", "100000", "Operasional")

        result = await coordinator.run("cancel_transaction", {"jenis": "penjualan", "id": sale_id})

        assert result.error_kind == ErrorKind.INSUFFICIENT_FUNDS
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("20")
        assert (await ledger.get_account(seeded["kas_a"])).balance == Decimal("201000")
        assert len(await ledger.list_entries(seeded["kas_a"])) == 3
        assert (await trades.get(TransactionKind.SALE, sale_id)).state == TransactionState.COMMITTED

    @pytest.mark.asyncio
    async def test_cancel_credit_sale_with_payments(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        seeded: dict[str, str],
    ) -> None:
        """cicilan이 있으면 먼저 지불 취소 필요"""
        sale_id = await _credit_sale(trades, seeded)
        await coordinator.run("post_sale", {"transaksi_id": sale_id})
        await coordinator.run("debt_payment", {
            "jenis": "piutang",
            "transaksi_id": sale_id,
            "jumlah": "100000",
            "kas_id": seeded["kas_a"],
        })

        result = await coordinator.run("cancel_transaction", {"jenis": "penjualan", "id": sale_id})

        assert result.error_kind == ErrorKind.VALIDATION
        assert len(result.error_detail["payments"]) == 1

    @pytest.mark.asyncio
    async def test_cancel_credit_sale_removes_receivable(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        stock: StockLedger,
        seeded: dict[str, str],
    ) -> None:
        sale_id = await _credit_sale(trades, seeded)
        await coordinator.run("post_sale", {"transaksi_id": sale_id})

        result = await coordinator.run("cancel_transaction", {"jenis": "penjualan", "id": sale_id})

        assert result.ok is True, result.message
        assert result.data["kas_reversals"] == 0
        assert await coordinator.debts.get_debt_for_transaction(DebtKind.RECEIVABLE, sale_id) is None
        assert (await stock.get_position(seeded["bulk"], seeded["gudang"])).quantity == Decimal("30")

    @pytest.mark.asyncio
    async def test_cancel_draft(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        seeded: dict[str, str],
    ) -> None:
        """반영 전 draft 취소는 삭제만"""
        sale_id = await _cash_sale(trades, seeded)

        result = await coordinator.run("cancel_transaction", {"jenis": "penjualan", "id": sale_id})

        assert result.ok is True, result.message
        assert result.data["stock_reversals"] == 0

    @pytest.mark.asyncio
    async def test_cancel_records_audit(
        self,
        coordinator: CompensationCoordinator,
        trades: TradeRepository,
        seeded: dict[str, str],
    ) -> None:
        sale_id = await _cash_sale(trades, seeded)
        await coordinator.run("post_sale", {"transaksi_id": sale_id})
        await coordinator.run("cancel_transaction", {"jenis": "penjualan", "id": sale_id})

        records = await coordinator.audit.list_for("transaksi_penjualan", sale_id)

        assert [r.action for r in records] == ["CANCEL"]
        assert records[0].old_data["nota"] == "NJ-0100"

    @pytest.mark.asyncio
    async def test_invalid_kind(self, coordinator: CompensationCoordinator) -> None:
        result = await coordinator.run("cancel_transaction", {"jenis": "retur", "id": "x"})
        assert result.error_kind == ErrorKind.VALIDATION
