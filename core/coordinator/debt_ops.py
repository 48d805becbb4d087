"""
채권/채무 지불 작업

debt_payment (cicilan / pelunasan) / payment_reversal
"""

import logging
from typing import Any

from core.constants import Categories, Tolerances
from core.coordinator.base import OperationBase, parse_enum, require_field
from core.debt import DEBT_TABLES, DebtRecord, Payment
from core.errors import InsufficientFundsError, ValidationError
from core.ledger import LedgerEntry
from core.result import to_jsonable
from core.saga import SagaContext
from core.types import DebtKind, EntryDirection, OperationName, Ref
from core.utils.ids import new_id
from core.utils.money import ZERO, require_positive
from core.utils.timezone import parse_business_date

logger = logging.getLogger(__name__)


def _payment_direction(kind: DebtKind) -> EntryDirection:
    """piutang 지불은 kas 입금, hutang 지불은 kas 출금"""
    return EntryDirection.IN if kind == DebtKind.RECEIVABLE else EntryDirection.OUT


def _payment_category(kind: DebtKind) -> str:
    if kind == DebtKind.RECEIVABLE:
        return Categories.RECEIVABLE_PAYMENT
    return Categories.PAYABLE_PAYMENT


class DebtOperations(OperationBase):
    """debt_payment / payment_reversal 작업"""

    async def _resolve_debt(self, kind: DebtKind, payload: dict[str, Any]) -> DebtRecord:
        debt_id = payload.get("debt_id")
        if debt_id:
            return await self.debts.get_debt(kind, debt_id)
        transaction_id = require_field(payload, "transaksi_id")
        debt = await self.debts.get_debt_for_transaction(kind, transaction_id)
        if debt is None:
            tables = DEBT_TABLES[kind]
            raise ValidationError(
                f"Transaction {transaction_id} has no {tables.debt} (not a credit transaction)",
                {"transaksi_id": transaction_id},
            )
        return debt

    async def debt_payment(self, payload: dict[str, Any]) -> dict[str, Any]:
        """cicilan 지불 (lunasi=True면 잔액 전부)

        payload:
            jenis (piutang / hutang), debt_id 또는 transaksi_id,
            jumlah, kas_id, tanggal, keterangan, lunasi

        순서: kas 엔트리 → cicilan 행 → 상태 재계산.
        """
        kind = parse_enum(DebtKind, require_field(payload, "jenis"), "jenis")
        debt = await self._resolve_debt(kind, payload)
        account_id = require_field(payload, "kas_id")
        tanggal = parse_business_date(payload.get("tanggal"))
        settle = bool(payload.get("lunasi"))

        async with self.locks.hold(("debt", kind.value, debt.id)):
            # 1. 사전 검증 (잠금 안에서 상세 항목 / cicilan 합계 기준)
            debt = await self.debts.load_current(kind, debt.id)

            if settle:
                amount = debt.outstanding
                if amount <= Tolerances.MONEY:
                    raise ValidationError(
                        f"{DEBT_TABLES[kind].debt} {debt.id} is already settled",
                        {"debt_id": debt.id, "outstanding": amount},
                    )
            else:
                amount = require_positive(require_field(payload, "jumlah"), "jumlah")
            new_status = self.debts.check_payment(debt, amount)

            await self.ledger.get_account(account_id)
            direction = _payment_direction(kind)
            if direction == EntryDirection.OUT:
                balance = await self.ledger.last_balance(account_id)
                if balance < amount:
                    raise InsufficientFundsError(account_id, balance, amount)

            # 2. 반영
            payment_id = new_id("cc")
            ref = Ref(ref_type=DEBT_TABLES[kind].payment, ref_id=payment_id)
            note = payload.get("keterangan") or (
                f"{'Pelunasan' if settle else 'Cicilan'} {DEBT_TABLES[kind].debt} {debt.id}"
            )

            async def _kas(ctx: SagaContext) -> LedgerEntry:
                return await self.ledger.append(
                    account_id, direction, amount, _payment_category(kind), tanggal, note, ref
                )

            async def _undo_kas(ctx: SagaContext, entry: LedgerEntry) -> None:
                await self.ledger.reverse(entry.id)

            async def _cicilan(ctx: SagaContext) -> Payment:
                entry: LedgerEntry = ctx.results["kas"]
                return await self.debts.add_payment_row(
                    kind, debt.id, amount, account_id, tanggal, entry.id, note, payment_id
                )

            async def _undo_cicilan(ctx: SagaContext, payment: Payment) -> None:
                await self.debts.delete_payment_row(kind, payment.id)

            async def _recompute(ctx: SagaContext) -> DebtRecord:
                return await self.debts.recompute_status(kind, debt.id)

            saga = self._saga(
                OperationName.DEBT_PAYMENT.value,
                payload,
                entity_type=DEBT_TABLES[kind].debt,
                entity_id=debt.id,
            )
            saga.step("kas", _kas, _undo_kas)
            saga.step("cicilan", _cicilan, _undo_cicilan)
            saga.step("recompute", _recompute)
            ctx = await saga.run()

        updated: DebtRecord = ctx.results["recompute"]
        logger.info(
            f"Payment {payment_id}: {kind.value} {debt.id} +{amount} → "
            f"{updated.paid}/{updated.total} ({updated.status.value})",
            extra={"debt_id": debt.id, "expected_status": new_status.value},
        )
        return {
            "debt": updated,
            "payment": ctx.results["cicilan"],
            "entry": ctx.results["kas"],
        }

    async def payment_reversal(self, payload: dict[str, Any]) -> dict[str, Any]:
        """cicilan 취소

        payload: jenis, cicilan_id

        순서: cicilan 삭제 → kas 엔트리 reverse → 상태 재계산.
        """
        kind = parse_enum(DebtKind, require_field(payload, "jenis"), "jenis")
        payment = await self.debts.get_payment(kind, require_field(payload, "cicilan_id"))

        async with self.locks.hold(("debt", kind.value, payment.debt_id)):
            payment = await self.debts.get_payment(kind, payment.id)
            entry = None
            if payment.entry_id:
                entry = await self.ledger.get_entry(payment.entry_id)
                if entry.direction == EntryDirection.IN:
                    lowest = await self.ledger.preview_reverse(entry.id)
                    if lowest < ZERO:
                        raise InsufficientFundsError(
                            entry.account_id,
                            lowest + entry.amount,
                            entry.amount,
                            f"Reversing this payment would make kas balance negative "
                            f"(lowest {lowest})",
                        )

            async def _delete(ctx: SagaContext) -> Payment:
                return await self.debts.delete_payment_row(kind, payment.id)

            async def _restore(ctx: SagaContext, removed: Payment) -> None:
                removed.entry_id = ctx.state.get("restored_entry_id", removed.entry_id)
                await self.debts.restore_payment_row(removed)
                await self.debts.recompute_status(kind, removed.debt_id)

            async def _kas_reverse(ctx: SagaContext) -> LedgerEntry:
                return await self.ledger.reverse(entry.id, floor=ZERO)

            async def _kas_restore(ctx: SagaContext, removed: LedgerEntry) -> None:
                restored = await self.ledger.append(
                    removed.account_id,
                    removed.direction,
                    removed.amount,
                    removed.category,
                    removed.business_date,
                    removed.note,
                    removed.ref,
                    allow_negative=True,
                )
                ctx.state["restored_entry_id"] = restored.id

            async def _recompute(ctx: SagaContext) -> DebtRecord:
                return await self.debts.recompute_status(kind, payment.debt_id)

            saga = self._saga(
                OperationName.PAYMENT_REVERSAL.value,
                payload,
                entity_type=DEBT_TABLES[kind].payment,
                entity_id=payment.id,
            )
            saga.step("hapus_cicilan", _delete, _restore)
            if entry is not None:
                saga.step("kas_reverse", _kas_reverse, _kas_restore)
            saga.step("recompute", _recompute)
            ctx = await saga.run()

        await self._audit("DELETE", DEBT_TABLES[kind].payment, payment.id, to_jsonable(payment))
        updated: DebtRecord = ctx.results["recompute"]
        logger.info(
            f"Payment reversed: {payment.id} ({kind.value} {payment.debt_id} → {updated.status.value})",
            extra={"debt_id": payment.debt_id},
        )
        return {"debt": updated, "payment": payment}
