"""
판매/구매 반영 작업

post_sale / post_purchase: draft → committed

- 판매: 항목별 재고 감소
- 구매: 항목별 재고 증가 (hpp = harga)
- tunai: kas 엔트리 (판매 입금, 구매 출금) + dibayar = 상세 항목 합계
- kredit: piutang / hutang 생성
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any

from core.constants import Categories
from core.coordinator.base import OperationBase, require_field
from core.debt import DebtRecord
from core.domain.state_machines import require_transition
from core.errors import InsufficientFundsError, InsufficientStockError, ValidationError
from core.ledger import LedgerEntry
from core.saga import SagaContext
from core.stock import StockMovement
from core.transactions import LineItem, TradeRecord
from core.types import (
    DebtKind,
    DebtStatus,
    EntryDirection,
    OperationName,
    PaymentTerms,
    Ref,
    TransactionKind,
    TransactionState,
)
from core.utils.money import ZERO

logger = logging.getLogger(__name__)


class TradeOperations(OperationBase):
    """post_sale / post_purchase 작업"""

    async def post_sale(self, payload: dict[str, Any]) -> TradeRecord:
        """판매 반영 (payload: transaksi_id)"""
        return await self._post(TransactionKind.SALE, require_field(payload, "transaksi_id"), payload)

    async def post_purchase(self, payload: dict[str, Any]) -> TradeRecord:
        """구매 반영 (payload: transaksi_id)"""
        return await self._post(
            TransactionKind.PURCHASE, require_field(payload, "transaksi_id"), payload
        )

    async def _post(
        self,
        kind: TransactionKind,
        record_id: str,
        payload: dict[str, Any],
    ) -> TradeRecord:
        is_sale = kind == TransactionKind.SALE
        operation = OperationName.POST_SALE if is_sale else OperationName.POST_PURCHASE

        async with self.locks.hold(("trx", kind.value, record_id)):
            # 1. 사전 검증
            record = await self.trades.get(kind, record_id)
            require_transition(record.state, TransactionState.COMMITTED, f"{kind.value} {record.nota}")
            await self.catalog.get_branch(record.branch_id)

            # 저장된 헤더 total이 아닌 상세 항목 합계 기준
            total = record.line_total
            if total <= ZERO:
                raise ValidationError(
                    f"{kind.value} {record.nota} has a total of {total}; nothing to post",
                    {"transaksi_id": record.id, "total": total},
                )

            if is_sale:
                needed: dict[str, Decimal] = defaultdict(lambda: ZERO)
                for item in record.items:
                    needed[item.product_id] += item.quantity
                for product_id, quantity in needed.items():
                    position = await self.stock.get_position(product_id, record.branch_id)
                    if position.quantity < quantity:
                        raise InsufficientStockError(
                            product_id, record.branch_id, position.quantity, quantity
                        )

            if record.terms == PaymentTerms.CASH:
                await self.ledger.get_account(record.account_id)
                if not is_sale:
                    balance = await self.ledger.last_balance(record.account_id)
                    if balance < total:
                        raise InsufficientFundsError(record.account_id, balance, total)

            # 2. 반영
            ref = Ref.of(kind, record.id)
            saga = self._saga(operation.value, payload, entity_type=kind.value, entity_id=record.id)

            async def _reverse_movement(ctx: SagaContext, movement: StockMovement) -> None:
                await self.stock.reverse_movement(movement.id, f"{kind.value} {record.nota} rollback")

            for index, item in enumerate(record.items):
                async def _stok(ctx: SagaContext, item: LineItem = item) -> StockMovement:
                    if is_sale:
                        return await self.stock.decrement(
                            item.product_id,
                            record.branch_id,
                            item.quantity,
                            record.business_date,
                            ref,
                            f"Penjualan {record.nota}",
                        )
                    return await self.stock.increment(
                        item.product_id,
                        record.branch_id,
                        item.quantity,
                        unit_cost=item.price,
                        business_date=record.business_date,
                        ref=ref,
                        note=f"Pembelian {record.nota}",
                    )

                saga.step(f"stok_{index}", _stok, _reverse_movement)

            if record.terms == PaymentTerms.CASH:
                async def _kas(ctx: SagaContext) -> LedgerEntry:
                    return await self.ledger.append(
                        record.account_id,
                        EntryDirection.IN if is_sale else EntryDirection.OUT,
                        total,
                        Categories.SALE if is_sale else Categories.PURCHASE,
                        record.business_date,
                        f"{'Penjualan' if is_sale else 'Pembelian'} {record.nota}",
                        ref,
                    )

                async def _undo_kas(ctx: SagaContext, entry: LedgerEntry) -> None:
                    await self.ledger.reverse(entry.id)

                async def _paid(ctx: SagaContext) -> None:
                    await self.trades.set_payment(kind, record.id, total, DebtStatus.PAID, total)

                async def _unpaid(ctx: SagaContext, result: None) -> None:
                    await self.trades.set_payment(kind, record.id, ZERO, DebtStatus.UNPAID)

                saga.step("kas", _kas, _undo_kas)
                saga.step("pembayaran", _paid, _unpaid)
            else:
                debt_kind = DebtKind.RECEIVABLE if is_sale else DebtKind.PAYABLE

                async def _debt(ctx: SagaContext) -> DebtRecord:
                    return await self.debts.create_debt(debt_kind, record.id, record.due_date)

                async def _undo_debt(ctx: SagaContext, debt: DebtRecord) -> None:
                    await self.debts.delete_debt(debt_kind, debt.id)

                saga.step(debt_kind.value, _debt, _undo_debt)

            async def _commit(ctx: SagaContext) -> None:
                await self.trades.set_state(kind, record.id, TransactionState.COMMITTED)

            saga.step("commit", _commit)
            await saga.run()

        committed = await self.trades.get(kind, record.id)
        logger.info(
            f"{kind.value} committed: {committed.id} ({committed.nota}) "
            f"{committed.terms.value} total={committed.total}",
            extra={"transaksi_id": committed.id},
        )
        return committed
