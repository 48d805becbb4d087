"""
Kas 작업

cash_entry / cash_update / cash_reverse / cash_transfer
"""

import logging
from typing import Any

from core.coordinator.base import OperationBase, parse_enum, require_field
from core.errors import InsufficientFundsError, ValidationError
from core.ledger import LedgerEntry, TransferResult
from core.result import to_jsonable
from core.saga import SagaContext
from core.types import EntryDirection, OperationName
from core.utils.money import ZERO

logger = logging.getLogger(__name__)

TRANSFER_REF = "transfer"


class CashOperations(OperationBase):
    """kas_harian 직접 작업"""

    async def cash_entry(self, payload: dict[str, Any]) -> LedgerEntry:
        """수동 엔트리 추가 (원천 레코드 없음)"""
        return await self.ledger.append(
            require_field(payload, "kas_id"),
            parse_enum(EntryDirection, require_field(payload, "jenis_transaksi"), "jenis_transaksi"),
            require_field(payload, "jumlah"),
            require_field(payload, "kategori"),
            payload.get("tanggal"),
            payload.get("keterangan"),
        )

    async def cash_update(self, payload: dict[str, Any]) -> LedgerEntry:
        """엔트리 수정

        원천 레코드(penjualan, cicilan 등)에 연결된 엔트리는 금액/방향을 바꿀 수 없다.
        """
        entry = await self.ledger.get_entry(require_field(payload, "entry_id"))
        direction = payload.get("jenis_transaksi")
        amount = payload.get("jumlah")

        if entry.ref is not None and (direction is not None or amount is not None):
            raise ValidationError(
                f"Entry {entry.id} belongs to {entry.ref.ref_type} {entry.ref.ref_id}; "
                f"change the source record instead",
                {"entry_id": entry.id, "ref_type": entry.ref.ref_type, "ref_id": entry.ref.ref_id},
            )

        updated = await self.ledger.update(
            entry.id,
            parse_enum(EntryDirection, direction, "jenis_transaksi") if direction is not None else None,
            amount,
            payload.get("kategori"),
            payload.get("keterangan"),
            payload.get("tanggal"),
        )
        await self._audit("UPDATE", "kas_harian", entry.id, to_jsonable(entry), to_jsonable(updated))
        return updated

    async def cash_reverse(self, payload: dict[str, Any]) -> dict[str, Any]:
        """엔트리 삭제 (이후 엔트리 cascade 재계산)

        Transfer leg를 지정하면 두 leg를 함께 되돌린다.
        다른 원천 레코드에 연결된 엔트리는 해당 레코드 취소로만 되돌린다.
        """
        entry = await self.ledger.get_entry(require_field(payload, "entry_id"))

        if entry.ref is not None and entry.ref.ref_type == TRANSFER_REF:
            return await self._reverse_transfer(entry)
        if entry.ref is not None:
            raise ValidationError(
                f"Entry {entry.id} belongs to {entry.ref.ref_type} {entry.ref.ref_id}; "
                f"cancel the source record instead",
                {"entry_id": entry.id, "ref_type": entry.ref.ref_type, "ref_id": entry.ref.ref_id},
            )

        floor = None if payload.get("allow_negative") else ZERO
        removed = await self.ledger.reverse(entry.id, floor=floor)
        await self._audit("DELETE", "kas_harian", entry.id, to_jsonable(removed))
        return {"reversed": [removed]}

    async def cash_transfer(self, payload: dict[str, Any]) -> TransferResult:
        """계좌 이체 (LedgerEngine.transfer 내부 Saga)"""
        return await self.ledger.transfer(
            require_field(payload, "dari_kas_id"),
            require_field(payload, "ke_kas_id"),
            require_field(payload, "jumlah"),
            payload.get("tanggal"),
            payload.get("keterangan"),
        )

    async def _reverse_transfer(self, entry: LedgerEntry) -> dict[str, Any]:
        """Transfer 두 leg 되돌리기 (입금 leg → 출금 leg)"""
        legs = await self.ledger.find_entries_by_ref(entry.ref)
        in_leg = next((e for e in legs if e.direction == EntryDirection.IN), None)
        out_leg = next((e for e in legs if e.direction == EntryDirection.OUT), None)

        if in_leg is not None:
            lowest = await self.ledger.preview_reverse(in_leg.id)
            if lowest < ZERO:
                raise InsufficientFundsError(
                    in_leg.account_id,
                    lowest + in_leg.amount,
                    in_leg.amount,
                    f"Reversing the transfer would make the destination balance negative "
                    f"(lowest {lowest})",
                )

        async def _undo_in(ctx: SagaContext) -> LedgerEntry:
            return await self.ledger.reverse(in_leg.id, floor=ZERO)

        async def _redo_in(ctx: SagaContext, removed: LedgerEntry) -> None:
            await self.ledger.append(
                removed.account_id,
                removed.direction,
                removed.amount,
                removed.category,
                removed.business_date,
                removed.note,
                removed.ref,
            )

        async def _undo_out(ctx: SagaContext) -> LedgerEntry:
            return await self.ledger.reverse(out_leg.id)

        saga = self._saga(
            OperationName.CASH_REVERSE.value,
            {"entry_id": entry.id, "ref_id": entry.ref.ref_id},
            entity_type=TRANSFER_REF,
            entity_id=entry.ref.ref_id,
        )
        if in_leg is not None:
            saga.step("kas_in_reverse", _undo_in, _redo_in)
        if out_leg is not None:
            saga.step("kas_out_reverse", _undo_out)
        ctx = await saga.run()

        reversed_entries = [
            ctx.results[name]
            for name in ("kas_in_reverse", "kas_out_reverse")
            if name in ctx.results
        ]
        for removed in reversed_entries:
            await self._audit("DELETE", "kas_harian", removed.id, to_jsonable(removed))
        logger.info(f"Transfer {entry.ref.ref_id} reversed ({len(reversed_entries)} legs)")
        return {"reversed": reversed_entries}
