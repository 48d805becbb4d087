"""
위탁 판매 작업

toko가 위탁 상품을 판매하면:
- total_penjualan = jumlah x harga_jual_toko (toko 판매액)
- total_nilai_kita = jumlah x harga_konsinyasi (kas 입금액)
- keuntungan_toko = total_penjualan - total_nilai_kita

반품(retur): jumlah_sisa → jumlah_kembali. rusak 반품만 cabang 재고를 차감한다.
"""

import logging
from typing import Any

from core.constants import Categories
from core.coordinator.base import OperationBase, parse_enum, require_field
from core.errors import InsufficientStockError, ValidationError
from core.ledger import LedgerEntry
from core.result import to_jsonable
from core.saga import SagaContext
from core.stock import StockMovement
from core.transactions import ConsignmentLine, ConsignmentReturn, ConsignmentSale
from core.types import (
    EntryDirection,
    OperationName,
    Ref,
    ReturnCondition,
    TransactionKind,
    TransactionState,
)
from core.utils.money import ZERO, require_positive, to_decimal
from core.utils.timezone import parse_business_date

logger = logging.getLogger(__name__)


class ConsignmentOperations(OperationBase):
    """consignment_sale / consignment_return 작업"""

    async def consignment_sale(self, payload: dict[str, Any]) -> ConsignmentSale:
        """위탁 판매 기록

        payload:
            detail_konsinyasi_id, jumlah, harga_jual_toko, kas_id, tanggal, keterangan

        Raises:
            ValidationError: jumlah > jumlah_sisa
            InsufficientStockError: cabang 재고 < jumlah
            NotFoundError: detail_konsinyasi / kas 없음
            PartialFailureError: 반영 중 실패 (역순 보상 결과 포함)
        """
        line_id = require_field(payload, "detail_konsinyasi_id")
        quantity = require_positive(require_field(payload, "jumlah"), "jumlah")
        store_price = to_decimal(require_field(payload, "harga_jual_toko"), "harga_jual_toko")
        if store_price < ZERO:
            raise ValidationError("harga_jual_toko cannot be negative", {"harga_jual_toko": store_price})
        account_id = require_field(payload, "kas_id")
        tanggal = parse_business_date(payload.get("tanggal"))

        async with self.locks.hold(("konsinyasi", line_id)):
            # 1. 사전 검증
            line = await self.consignments.get_line(line_id)
            if quantity > line.remaining:
                raise ValidationError(
                    f"Quantity sold exceeds remaining consigned quantity "
                    f"(remaining {line.remaining}, requested {quantity})",
                    {"available": line.remaining, "requested": quantity},
                )
            position = await self.stock.get_position(line.product_id, line.branch_id)
            if position.quantity < quantity:
                raise InsufficientStockError(
                    line.product_id, line.branch_id, position.quantity, quantity
                )
            await self.ledger.get_account(account_id)
            product = await self.catalog.get_product(line.product_id)

            # 2. 반영
            async def _sale(ctx: SagaContext) -> ConsignmentSale:
                sale = await self.consignments.create_sale(
                    line, quantity, store_price, account_id, tanggal, payload.get("keterangan")
                )
                saga.entity_id = sale.id
                ctx.state["ref"] = Ref.of(TransactionKind.CONSIGNMENT_SALE, sale.id)
                return sale

            async def _delete_sale(ctx: SagaContext, sale: ConsignmentSale) -> None:
                await self.consignments.delete_sale(sale.id)

            async def _counters(ctx: SagaContext) -> ConsignmentLine:
                sale: ConsignmentSale = ctx.results["penjualan"]
                before = await self.consignments.get_line(line_id)
                ctx.state["line_before"] = before
                return await self.consignments.write_line_counters(
                    before,
                    before.sold + quantity,
                    before.remaining - quantity,
                    before.store_profit + sale.store_profit,
                )

            async def _restore_counters(ctx: SagaContext, updated: ConsignmentLine) -> None:
                before: ConsignmentLine = ctx.state["line_before"]
                current = await self.consignments.get_line(line_id)
                await self.consignments.write_line_counters(
                    current, before.sold, before.remaining, before.store_profit
                )

            async def _stok(ctx: SagaContext) -> StockMovement:
                return await self.stock.decrement(
                    line.product_id,
                    line.branch_id,
                    quantity,
                    tanggal,
                    ctx.state["ref"],
                    f"Penjualan konsinyasi {line.consignment_code}",
                )

            async def _undo_stok(ctx: SagaContext, movement: StockMovement) -> None:
                await self.stock.reverse_movement(movement.id, "Penjualan konsinyasi rollback")

            async def _kas(ctx: SagaContext) -> LedgerEntry:
                sale: ConsignmentSale = ctx.results["penjualan"]
                return await self.ledger.append(
                    account_id,
                    EntryDirection.IN,
                    sale.our_value,
                    Categories.CONSIGNMENT_SALE,
                    tanggal,
                    f"Penjualan konsinyasi {line.consignment_code} - {product.name} "
                    f"({quantity} {product.unit})",
                    ctx.state["ref"],
                )

            async def _undo_kas(ctx: SagaContext, entry: LedgerEntry) -> None:
                await self.ledger.reverse(entry.id)

            async def _link(ctx: SagaContext) -> ConsignmentSale:
                return await self.consignments.link_sale(
                    ctx.results["penjualan"].id,
                    ctx.results["kas"].id,
                    ctx.results["stok"].id,
                    TransactionState.COMMITTED,
                )

            saga = self._saga(
                OperationName.CONSIGNMENT_SALE.value,
                payload,
                entity_type=TransactionKind.CONSIGNMENT_SALE.value,
            )
            saga.step("penjualan", _sale, _delete_sale)
            saga.step("detail_konsinyasi", _counters, _restore_counters)
            saga.step("stok", _stok, _undo_stok)
            saga.step("kas", _kas, _undo_kas)
            saga.step("link", _link)
            ctx = await saga.run()

        sale: ConsignmentSale = ctx.results["link"]
        logger.info(
            f"Penjualan konsinyasi {sale.id}: {quantity} x {line.product_id} → kas {sale.our_value}",
            extra={"sale_id": sale.id, "detail_konsinyasi_id": line_id},
        )
        return sale

    async def consignment_return(self, payload: dict[str, Any]) -> ConsignmentReturn:
        """위탁 상품 반품 기록

        payload:
            detail_konsinyasi_id, jumlah, kondisi (baik / rusak), tanggal, keterangan

        - baik: 카운터만 변경 (titip 시 cabang 재고를 움직이지 않음)
        - rusak: cabang 재고 차감 (keluar 이동, retur_konsinyasi에 연결)

        Raises:
            ValidationError: jumlah > jumlah_sisa
            InsufficientStockError: rusak인데 cabang 재고 < jumlah
            NotFoundError: detail_konsinyasi 없음
            PartialFailureError: 반영 중 실패 (역순 보상 결과 포함)
        """
        line_id = require_field(payload, "detail_konsinyasi_id")
        quantity = require_positive(require_field(payload, "jumlah"), "jumlah")
        condition = parse_enum(ReturnCondition, payload.get("kondisi") or "baik", "kondisi")
        tanggal = parse_business_date(payload.get("tanggal"))

        async with self.locks.hold(("konsinyasi", line_id)):
            # 1. 사전 검증
            line = await self.consignments.get_line(line_id)
            if quantity > line.remaining:
                raise ValidationError(
                    f"Quantity returned exceeds remaining consigned quantity "
                    f"(remaining {line.remaining}, requested {quantity})",
                    {"available": line.remaining, "requested": quantity},
                )
            if condition == ReturnCondition.DAMAGED:
                position = await self.stock.get_position(line.product_id, line.branch_id)
                if position.quantity < quantity:
                    raise InsufficientStockError(
                        line.product_id, line.branch_id, position.quantity, quantity
                    )

            # 2. 반영
            async def _retur(ctx: SagaContext) -> ConsignmentReturn:
                record = await self.consignments.create_return(
                    line, quantity, condition, tanggal, payload.get("keterangan")
                )
                saga.entity_id = record.id
                return record

            async def _delete_retur(ctx: SagaContext, record: ConsignmentReturn) -> None:
                await self.consignments.delete_return(record.id)

            async def _counters(ctx: SagaContext) -> ConsignmentLine:
                before = await self.consignments.get_line(line_id)
                ctx.state["line_before"] = before
                return await self.consignments.write_line_counters(
                    before,
                    before.sold,
                    before.remaining - quantity,
                    before.store_profit,
                    before.returned + quantity,
                )

            async def _restore_counters(ctx: SagaContext, updated: ConsignmentLine) -> None:
                before: ConsignmentLine = ctx.state["line_before"]
                current = await self.consignments.get_line(line_id)
                await self.consignments.write_line_counters(
                    current, before.sold, before.remaining, before.store_profit, before.returned
                )

            async def _stok(ctx: SagaContext) -> StockMovement:
                record: ConsignmentReturn = ctx.results["retur"]
                return await self.stock.decrement(
                    line.product_id,
                    line.branch_id,
                    quantity,
                    tanggal,
                    Ref(ref_type="retur_konsinyasi", ref_id=record.id),
                    f"Retur konsinyasi {line.consignment_code} - rusak",
                )

            async def _undo_stok(ctx: SagaContext, movement: StockMovement) -> None:
                await self.stock.reverse_movement(movement.id, "Retur konsinyasi rollback")

            async def _link(ctx: SagaContext) -> ConsignmentReturn:
                return await self.consignments.link_return(
                    ctx.results["retur"].id, ctx.results["stok"].id
                )

            saga = self._saga(
                OperationName.CONSIGNMENT_RETURN.value,
                payload,
                entity_type="retur_konsinyasi",
            )
            saga.step("retur", _retur, _delete_retur)
            saga.step("detail_konsinyasi", _counters, _restore_counters)
            if condition == ReturnCondition.DAMAGED:
                saga.step("stok", _stok, _undo_stok)
                saga.step("link", _link)
            ctx = await saga.run()

        record: ConsignmentReturn = ctx.results.get("link") or ctx.results["retur"]
        await self._audit("INSERT", "retur_konsinyasi", record.id, None, to_jsonable(record))
        logger.info(
            f"Retur konsinyasi {record.id}: {quantity} x {line.product_id} ({condition.value})",
            extra={"retur_id": record.id, "detail_konsinyasi_id": line_id},
        )
        return record
