"""
재고 이동 작업 (unloading)

벌크 produk을 다른 cabang / 소분 produk으로 옮긴다.
항목별로 출발 produk 감소 → 도착 produk 증가(단위 변환 적용) 순서로 반영.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any

from core.coordinator.base import OperationBase, require_field
from core.errors import InsufficientStockError, ValidationError
from core.saga import SagaContext
from core.stock import StockMovement, convert_quantity
from core.transactions import StockTransfer, TransferItem
from core.types import OperationName, Ref, TransactionKind, TransactionState
from core.utils.money import ZERO, require_positive
from core.utils.timezone import parse_business_date

logger = logging.getLogger(__name__)


class StockTransferOperations(OperationBase):
    """stock_transfer / stock_adjust 작업"""

    async def stock_transfer(self, payload: dict[str, Any]) -> StockTransfer:
        """재고 이동

        payload:
            cabang_asal_id, cabang_tujuan_id, tanggal, keterangan,
            items: [{produk_asal_id, produk_tujuan_id (기본: 같은 produk), jumlah}]

        Raises:
            ValidationError: 항목 없음, 변환 불가, 같은 위치로 이동
            InsufficientStockError: 출발 수량 < 요청 수량 (아무것도 바뀌지 않음)
            PartialFailureError: 반영 중 실패 (역순 보상 결과 포함)
        """
        source_branch = await self.catalog.get_branch(require_field(payload, "cabang_asal_id"))
        target_branch = await self.catalog.get_branch(require_field(payload, "cabang_tujuan_id"))
        tanggal = parse_business_date(payload.get("tanggal"))
        note = payload.get("keterangan")
        raw_items = payload.get("items") or []
        if not raw_items:
            raise ValidationError("At least one item is required", {"field": "items"})

        # 1. 사전 검증 (쓰기 없음)
        items: list[TransferItem] = []
        requested: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for raw in raw_items:
            source = await self.catalog.get_product(require_field(raw, "produk_asal_id"))
            target = await self.catalog.get_product(raw.get("produk_tujuan_id") or source.id)
            quantity = require_positive(raw.get("jumlah"), "jumlah")

            if source.id == target.id and source_branch.id == target_branch.id:
                raise ValidationError(
                    f"Transfer of {source.name} has the same source and destination",
                    {"produk_id": source.id, "cabang_id": source_branch.id},
                )

            conversion = convert_quantity(
                quantity,
                source.unit,
                target.unit,
                target.density or source.density,
                target.name,
            )
            items.append(
                TransferItem(
                    id="",
                    transfer_id="",
                    source_product_id=source.id,
                    target_product_id=target.id,
                    input_quantity=conversion.input_quantity,
                    input_unit=source.unit,
                    output_quantity=conversion.output_quantity,
                    output_unit=target.unit,
                    density=conversion.density,
                    conversion_type=conversion.conversion_type.value,
                )
            )
            requested[source.id] += quantity

        for product_id, quantity in requested.items():
            position = await self.stock.get_position(product_id, source_branch.id)
            if position.quantity < quantity:
                raise InsufficientStockError(
                    product_id, source_branch.id, position.quantity, quantity
                )

        # 2. 반영 (Saga)
        saga = self._saga(
            OperationName.STOCK_TRANSFER.value,
            payload,
            entity_type=TransactionKind.STOCK_TRANSFER.value,
        )

        async def _create(ctx: SagaContext) -> StockTransfer:
            record = await self.transfers.create(
                source_branch.id, target_branch.id, items, tanggal, note
            )
            saga.entity_id = record.id
            ctx.state["ref"] = Ref.of(TransactionKind.STOCK_TRANSFER, record.id)
            return record

        async def _delete(ctx: SagaContext, record: StockTransfer) -> None:
            await self.transfers.delete(record.id)

        async def _reverse(ctx: SagaContext, movement: StockMovement) -> None:
            await self.stock.reverse_movement(movement.id, "Unloading rollback")

        saga.step("unloading", _create, _delete)

        for index, item in enumerate(items):
            async def _out(ctx: SagaContext, item: TransferItem = item) -> StockMovement:
                return await self.stock.decrement(
                    item.source_product_id,
                    source_branch.id,
                    item.input_quantity,
                    tanggal,
                    ctx.state["ref"],
                    f"Unloading ke {target_branch.name}",
                )

            async def _in(ctx: SagaContext, item: TransferItem = item) -> StockMovement:
                return await self.stock.increment(
                    item.target_product_id,
                    target_branch.id,
                    item.output_quantity,
                    business_date=tanggal,
                    ref=ctx.state["ref"],
                    note=f"Unloading dari {source_branch.name}",
                )

            saga.step(f"keluar_{index}", _out, _reverse)
            saga.step(f"masuk_{index}", _in, _reverse)

        async def _commit(ctx: SagaContext) -> None:
            record: StockTransfer = ctx.results["unloading"]
            await self.transfers.set_state(record.id, TransactionState.COMMITTED)

        saga.step("commit", _commit)
        ctx = await saga.run()

        record = await self.transfers.get(ctx.results["unloading"].id)
        logger.info(
            f"Unloading committed: {record.id} ({len(items)} items) "
            f"{source_branch.name} → {target_branch.name}",
            extra={"unloading_id": record.id},
        )
        return record

    async def stock_adjust(self, payload: dict[str, Any]) -> dict[str, Any]:
        """실사 수량으로 재고 맞추기 (stok 잠금 안에서 차이만큼 이동 1건)

        payload: produk_id, cabang_id, jumlah_baru, tanggal, keterangan, hpp

        Returns:
            {"produk_id", "cabang_id", "jumlah_baru", "movement"} (차이가 없으면 movement None)
        """
        product = await self.catalog.get_product(require_field(payload, "produk_id"))
        branch = await self.catalog.get_branch(require_field(payload, "cabang_id"))

        movement = await self.stock.adjust(
            product.id,
            branch.id,
            require_field(payload, "jumlah_baru"),
            payload.get("tanggal"),
            payload.get("keterangan"),
            unit_cost=payload.get("hpp") or ZERO,
        )
        position = await self.stock.get_position(product.id, branch.id)
        if movement is not None:
            await self._audit(
                "ADJUST",
                "stok_cabang",
                f"{product.id}@{branch.id}",
                {"selisih": str(movement.signed_quantity)},
                {"jumlah": str(position.quantity), "stock_barang_id": movement.id},
            )
        return {
            "produk_id": product.id,
            "cabang_id": branch.id,
            "jumlah_baru": position.quantity,
            "movement": movement,
        }
