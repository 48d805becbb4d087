"""
거래 취소 작업

cancel_transaction: penjualan / pembelian / penjualan_konsinyasi / unloading

취소 자체가 생성 작업의 보상이므로 실패 시 되돌리지 않는다.
모든 조건을 먼저 검증하고, 중간 실패 시 적용된 단계를 rekonsiliasi_manual 마커로 남긴다.

사전 검증:
- 레코드 존재 (두 번째 취소는 NotFound)
- 이후 지불(cicilan)이 있으면 중단
- 재고 역반영으로 수량이 음수가 되지 않음
- 입금 kas 엔트리 삭제로 잔액이 음수가 되지 않음
"""

import logging
from typing import Any

from core.coordinator.base import OperationBase, parse_enum, require_field
from core.debt import DEBT_TABLES
from core.domain.state_machines import require_transition
from core.errors import InsufficientFundsError, ValidationError
from core.ledger import LedgerEntry
from core.result import to_jsonable
from core.saga import Saga, SagaContext
from core.stock import StockMovement
from core.transactions import trade_tables
from core.types import (
    DebtKind,
    EntryDirection,
    OperationName,
    Ref,
    TransactionKind,
    TransactionState,
)
from core.utils.money import ZERO

logger = logging.getLogger(__name__)


class CancelOperations(OperationBase):
    """cancel_transaction 작업"""

    async def cancel_transaction(self, payload: dict[str, Any]) -> dict[str, Any]:
        """거래 취소

        payload: jenis (penjualan / pembelian / penjualan_konsinyasi / unloading), id

        Raises:
            NotFoundError: 레코드 없음 (이미 취소됨 포함)
            ValidationError: cicilan이 남아 있음
            InsufficientStockError / InsufficientFundsError: 역반영 불가
            PartialFailureError: 중간 실패 (마커 생성)
        """
        kind = parse_enum(TransactionKind, require_field(payload, "jenis"), "jenis")
        record_id = require_field(payload, "id")

        if kind in (TransactionKind.SALE, TransactionKind.PURCHASE):
            return await self._cancel_trade(kind, record_id, payload)
        if kind == TransactionKind.CONSIGNMENT_SALE:
            return await self._cancel_consignment_sale(record_id, payload)
        return await self._cancel_stock_transfer(record_id, payload)

    # =========================================================================
    # 공통
    # =========================================================================

    async def _validate_reversal(
        self,
        ref: Ref,
    ) -> tuple[list[StockMovement], list[LedgerEntry]]:
        """ref로 반영된 재고 이동 / kas 엔트리 조회 + 역반영 가능 여부 검증"""
        movements = await self.stock.open_movements(ref)
        await self.stock.can_reverse(movements)

        entries = await self.ledger.find_entries_by_ref(ref)
        inflow_accounts = {e.account_id for e in entries if e.direction == EntryDirection.IN}
        if inflow_accounts:
            # 같은 계좌의 엔트리는 함께 삭제되므로 계좌 단위로 합산해 검사
            lowest_by_account = await self.ledger.preview_reverse_many([e.id for e in entries])
            for account_id in sorted(inflow_accounts):
                lowest = lowest_by_account[account_id]
                if lowest >= ZERO:
                    continue
                net = sum(
                    (e.signed_amount for e in entries if e.account_id == account_id), ZERO
                )
                raise InsufficientFundsError(
                    account_id,
                    lowest + net,
                    net,
                    f"Cancelling would make kas balance negative (lowest {lowest})",
                )
        return movements, entries

    def _reversal_steps(
        self,
        saga: Saga,
        movements: list[StockMovement],
        entries: list[LedgerEntry],
        label: str,
    ) -> None:
        for index, movement in enumerate(movements):
            async def _stok(ctx: SagaContext, movement: StockMovement = movement) -> StockMovement:
                return await self.stock.reverse_movement(movement.id, f"Pembatalan {label}")

            saga.step(f"stok_{index}", _stok)

        for index, entry in enumerate(entries):
            async def _kas(ctx: SagaContext, entry: LedgerEntry = entry) -> LedgerEntry:
                return await self.ledger.reverse(entry.id)

            saga.step(f"kas_{index}", _kas)

    # =========================================================================
    # penjualan / pembelian
    # =========================================================================

    async def _cancel_trade(
        self,
        kind: TransactionKind,
        record_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        debt_kind = DebtKind.RECEIVABLE if kind == TransactionKind.SALE else DebtKind.PAYABLE

        async with self.locks.hold(("trx", kind.value, record_id)):
            record = await self.trades.get(kind, record_id)
            require_transition(record.state, TransactionState.CANCELLED, f"{kind.value} {record.nota}")

            debt = await self.debts.get_debt_for_transaction(debt_kind, record.id)
            if debt is not None:
                payments = await self.debts.list_payments(debt_kind, debt.id)
                if payments:
                    raise ValidationError(
                        f"{kind.value} {record.nota} has {len(payments)} payment(s) in "
                        f"{DEBT_TABLES[debt_kind].payment}; reverse them first",
                        {"transaksi_id": record.id, "payments": [p.id for p in payments]},
                    )

            movements, entries = await self._validate_reversal(Ref.of(kind, record.id))

            saga = self._saga(
                OperationName.CANCEL_TRANSACTION.value,
                payload,
                entity_type=kind.value,
                entity_id=record.id,
                compensate=False,
            )
            self._reversal_steps(saga, movements, entries, f"{kind.value} {record.nota}")

            if debt is not None:
                async def _debt(ctx: SagaContext) -> None:
                    await self.debts.delete_debt(debt_kind, debt.id)

                saga.step(debt_kind.value, _debt)

            async def _delete(ctx: SagaContext) -> None:
                await self.trades.delete(kind, record.id)

            saga.step("hapus", _delete)
            await saga.run()

        await self._audit("CANCEL", trade_tables(kind).header, record.id, to_jsonable(record))
        return self._summary(kind, record.id, movements, entries)

    # =========================================================================
    # penjualan_konsinyasi
    # =========================================================================

    async def _cancel_consignment_sale(
        self,
        sale_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        kind = TransactionKind.CONSIGNMENT_SALE
        sale = await self.consignments.get_sale(sale_id)

        async with self.locks.hold(("trx", kind.value, sale_id), ("konsinyasi", sale.line_id)):
            sale = await self.consignments.get_sale(sale_id)
            require_transition(sale.state, TransactionState.CANCELLED, f"{kind.value} {sale.id}")

            movements, entries = await self._validate_reversal(Ref.of(kind, sale.id))

            saga = self._saga(
                OperationName.CANCEL_TRANSACTION.value,
                payload,
                entity_type=kind.value,
                entity_id=sale.id,
                compensate=False,
            )
            self._reversal_steps(saga, movements, entries, f"{kind.value} {sale.id}")

            if sale.state == TransactionState.COMMITTED:
                async def _counters(ctx: SagaContext) -> None:
                    line = await self.consignments.get_line(sale.line_id)
                    await self.consignments.write_line_counters(
                        line,
                        line.sold - sale.quantity,
                        line.remaining + sale.quantity,
                        line.store_profit - sale.store_profit,
                    )

                saga.step("detail_konsinyasi", _counters)

            async def _delete(ctx: SagaContext) -> None:
                await self.consignments.delete_sale(sale.id)

            saga.step("hapus", _delete)
            await saga.run()

        await self._audit("CANCEL", "penjualan_konsinyasi", sale.id, to_jsonable(sale))
        return self._summary(kind, sale.id, movements, entries)

    # =========================================================================
    # unloading
    # =========================================================================

    async def _cancel_stock_transfer(
        self,
        transfer_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        kind = TransactionKind.STOCK_TRANSFER

        async with self.locks.hold(("trx", kind.value, transfer_id)):
            record = await self.transfers.get(transfer_id)
            require_transition(record.state, TransactionState.CANCELLED, f"{kind.value} {record.id}")

            movements, entries = await self._validate_reversal(Ref.of(kind, record.id))

            saga = self._saga(
                OperationName.CANCEL_TRANSACTION.value,
                payload,
                entity_type=kind.value,
                entity_id=record.id,
                compensate=False,
            )
            self._reversal_steps(saga, movements, entries, f"unloading {record.id}")

            async def _delete(ctx: SagaContext) -> None:
                await self.transfers.delete(record.id)

            saga.step("hapus", _delete)
            await saga.run()

        await self._audit("CANCEL", "gudang_unloading", record.id, to_jsonable(record))
        return self._summary(kind, record.id, movements, entries)

    @staticmethod
    def _summary(
        kind: TransactionKind,
        record_id: str,
        movements: list[StockMovement],
        entries: list[LedgerEntry],
    ) -> dict[str, Any]:
        logger.info(
            f"{kind.value} {record_id} cancelled "
            f"({len(movements)} stock reversals, {len(entries)} kas reversals)",
            extra={"jenis": kind.value, "id": record_id},
        )
        return {
            "jenis": kind.value,
            "id": record_id,
            "stock_reversals": len(movements),
            "kas_reversals": len(entries),
        }
