"""
거래 Repository

transaksi_penjualan / transaksi_pembelian, konsinyasi, gudang_unloading 테이블 CRUD.

수량/잔액은 여기서 건드리지 않는다 (StockLedger / LedgerEngine 담당).
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.errors import ConcurrencyConflictError, NotFoundError, ValidationError
from core.transactions.types import (
    Consignment,
    ConsignmentLine,
    ConsignmentReturn,
    ConsignmentSale,
    LineItem,
    StockTransfer,
    TradeRecord,
    TransferItem,
)
from core.types import (
    DebtStatus,
    PaymentTerms,
    ReturnCondition,
    TransactionKind,
    TransactionState,
)
from core.utils.ids import new_id
from core.utils.money import ZERO, require_positive, to_decimal
from core.utils.timezone import format_ts, now_utc, parse_business_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _TradeTables:
    header: str
    detail: str
    parent_column: str
    party_column: str


_TRADE_TABLES: dict[TransactionKind, _TradeTables] = {
    TransactionKind.SALE: _TradeTables(
        "transaksi_penjualan", "detail_penjualan", "penjualan_id", "customer"
    ),
    TransactionKind.PURCHASE: _TradeTables(
        "transaksi_pembelian", "detail_pembelian", "pembelian_id", "supplier"
    ),
}


def trade_tables(kind: TransactionKind | str) -> _TradeTables:
    """거래 종류별 테이블 이름

    Raises:
        ValidationError: penjualan / pembelian이 아닌 경우
    """
    try:
        return _TRADE_TABLES[TransactionKind(kind)]
    except (KeyError, ValueError) as e:
        raise ValidationError(
            f"Unsupported transaction kind: {kind}",
            {"kind": str(kind)},
        ) from e


# =============================================================================
# penjualan / pembelian
# =============================================================================


class TradeRepository:
    """penjualan / pembelian Repository

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def create(
        self,
        kind: TransactionKind | str,
        nota: str,
        branch_id: str,
        items: Iterable[dict[str, Any]],
        terms: PaymentTerms | str = PaymentTerms.CASH,
        account_id: str | None = None,
        party: str | None = None,
        business_date: date | str | None = None,
        due_date: date | str | None = None,
        note: str | None = None,
    ) -> TradeRecord:
        """draft 거래 생성

        Args:
            items: [{"produk_id", "jumlah", "harga"}, ...]

        Raises:
            ValidationError: 항목이 없거나 tunai인데 kas_id가 없는 경우
            InvalidAmountError: jumlah ≤ 0
        """
        kind = TransactionKind(kind)
        tables = trade_tables(kind)
        terms = PaymentTerms(terms)
        if not nota:
            raise ValidationError("nota is required", {"field": "nota"})
        if terms == PaymentTerms.CASH and not account_id:
            raise ValidationError("kas_id is required for cash terms", {"field": "kas_id"})

        lines: list[tuple[str, Decimal, Decimal]] = []
        for item in items:
            quantity = require_positive(item.get("jumlah"), "jumlah")
            price = to_decimal(item.get("harga"), "harga")
            if price < ZERO:
                raise ValidationError("harga cannot be negative", {"harga": price})
            lines.append((item["produk_id"], quantity, price))
        if not lines:
            raise ValidationError("At least one item is required", {"field": "items"})

        total = sum((q * p for _, q, p in lines), ZERO)
        record_id = new_id("pj" if kind == TransactionKind.SALE else "pb")
        now = format_ts(now_utc())

        async with self.db.transaction():
            await self.db.execute(
                f"""
                INSERT INTO {tables.header} (
                    id, nota, cabang_id, {tables.party_column}, tanggal, jenis_pembayaran,
                    kas_id, status, total, dibayar, status_pembayaran, jatuh_tempo,
                    keterangan, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, '0', ?, ?, ?, ?, ?)
                """,
                (
                    record_id,
                    nota,
                    branch_id,
                    party,
                    parse_business_date(business_date).isoformat(),
                    terms.value,
                    account_id,
                    TransactionState.DRAFT.value,
                    str(total),
                    DebtStatus.UNPAID.value,
                    parse_business_date(due_date).isoformat() if due_date else None,
                    note,
                    now,
                    now,
                ),
            )
            await self.db.executemany(
                f"""
                INSERT INTO {tables.detail} (id, {tables.parent_column}, produk_id, jumlah, harga, subtotal)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (new_id("dt"), record_id, product_id, str(q), str(p), str(q * p))
                    for product_id, q, p in lines
                ],
            )

        logger.info(f"{kind.value} created: {record_id} ({nota}) total={total}")
        return await self.get(kind, record_id)

    async def get(self, kind: TransactionKind | str, record_id: str) -> TradeRecord:
        """거래 + 상세 조회

        Raises:
            NotFoundError: 없는 경우
        """
        kind = TransactionKind(kind)
        tables = trade_tables(kind)
        row = await self.db.fetchone_dict(
            f"SELECT * FROM {tables.header} WHERE id = ?",
            (record_id,),
        )
        if row is None:
            raise NotFoundError(tables.header, record_id)
        record = TradeRecord.from_row(row, kind)
        record.items = await self.list_items(kind, record_id)
        return record

    async def list_items(self, kind: TransactionKind | str, record_id: str) -> list[LineItem]:
        tables = trade_tables(kind)
        rows = await self.db.fetchall_dict(
            f"SELECT * FROM {tables.detail} WHERE {tables.parent_column} = ? ORDER BY id ASC",
            (record_id,),
        )
        return [LineItem.from_row(r, tables.parent_column) for r in rows]

    async def set_state(
        self,
        kind: TransactionKind | str,
        record_id: str,
        state: TransactionState,
    ) -> None:
        tables = trade_tables(kind)
        async with self.db.transaction():
            await self.db.execute(
                f"UPDATE {tables.header} SET status = ?, updated_at = ? WHERE id = ?",
                (state.value, format_ts(now_utc()), record_id),
            )

    async def set_payment(
        self,
        kind: TransactionKind | str,
        record_id: str,
        paid: Decimal,
        payment_status: DebtStatus | str,
        total: Decimal | None = None,
    ) -> None:
        """비정규화 dibayar / status_pembayaran (+ total) 갱신"""
        tables = trade_tables(kind)
        status = DebtStatus(payment_status).value
        async with self.db.transaction():
            if total is None:
                await self.db.execute(
                    f"""
                    UPDATE {tables.header} SET dibayar = ?, status_pembayaran = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (str(paid), status, format_ts(now_utc()), record_id),
                )
            else:
                await self.db.execute(
                    f"""
                    UPDATE {tables.header}
                    SET total = ?, dibayar = ?, status_pembayaran = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (str(total), str(paid), status, format_ts(now_utc()), record_id),
                )

    async def delete(self, kind: TransactionKind | str, record_id: str) -> None:
        """상세 + 헤더 삭제"""
        tables = trade_tables(kind)
        async with self.db.transaction():
            await self.db.execute(
                f"DELETE FROM {tables.detail} WHERE {tables.parent_column} = ?",
                (record_id,),
            )
            await self.db.execute(f"DELETE FROM {tables.header} WHERE id = ?", (record_id,))
        logger.info(f"{TransactionKind(kind).value} deleted: {record_id}")


# =============================================================================
# konsinyasi
# =============================================================================


class ConsignmentRepository:
    """konsinyasi Repository

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def create(
        self,
        code: str,
        store: str,
        branch_id: str,
        lines: Iterable[dict[str, Any]],
        business_date: date | str | None = None,
    ) -> Consignment:
        """konsinyasi 생성 (titip 시점에는 재고를 움직이지 않음)

        Args:
            lines: [{"produk_id", "jumlah_titip", "harga_konsinyasi"}, ...]
        """
        if not code or not store:
            raise ValidationError("kode_konsinyasi and toko are required")
        prepared = [
            (
                line["produk_id"],
                require_positive(line.get("jumlah_titip"), "jumlah_titip"),
                require_positive(line.get("harga_konsinyasi"), "harga_konsinyasi"),
            )
            for line in lines
        ]
        if not prepared:
            raise ValidationError("At least one item is required", {"field": "items"})

        consignment_id = new_id("ksy")
        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO konsinyasi (id, kode_konsinyasi, toko, cabang_id, tanggal_titip, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    consignment_id,
                    code,
                    store,
                    branch_id,
                    parse_business_date(business_date).isoformat(),
                    format_ts(now_utc()),
                ),
            )
            await self.db.executemany(
                """
                INSERT INTO detail_konsinyasi (
                    id, konsinyasi_id, produk_id, jumlah_titip, jumlah_terjual,
                    jumlah_sisa, harga_konsinyasi, keuntungan_toko, version
                ) VALUES (?, ?, ?, ?, '0', ?, ?, '0', 1)
                """,
                [
                    (new_id("dk"), consignment_id, product_id, str(qty), str(qty), str(price))
                    for product_id, qty, price in prepared
                ],
            )

        logger.info(f"Konsinyasi created: {consignment_id} ({code}, {store})")
        return await self.get(consignment_id)

    async def get(self, consignment_id: str) -> Consignment:
        """konsinyasi + 상세 조회

        Raises:
            NotFoundError: 없는 경우
        """
        row = await self.db.fetchone_dict(
            "SELECT * FROM konsinyasi WHERE id = ?",
            (consignment_id,),
        )
        if row is None:
            raise NotFoundError("konsinyasi", consignment_id)
        consignment = Consignment.from_row(row)
        rows = await self.db.fetchall_dict(
            """
            SELECT d.*, k.cabang_id, k.kode_konsinyasi FROM detail_konsinyasi d
            JOIN konsinyasi k ON k.id = d.konsinyasi_id
            WHERE d.konsinyasi_id = ? ORDER BY d.id ASC
            """,
            (consignment_id,),
        )
        consignment.lines = [ConsignmentLine.from_row(r) for r in rows]
        return consignment

    async def get_line(self, line_id: str) -> ConsignmentLine:
        """detail_konsinyasi 조회 (cabang_id 포함)

        Raises:
            NotFoundError: 없는 경우
        """
        row = await self.db.fetchone_dict(
            """
            SELECT d.*, k.cabang_id, k.kode_konsinyasi FROM detail_konsinyasi d
            JOIN konsinyasi k ON k.id = d.konsinyasi_id
            WHERE d.id = ?
            """,
            (line_id,),
        )
        if row is None:
            raise NotFoundError("detail_konsinyasi", line_id)
        return ConsignmentLine.from_row(row)

    async def write_line_counters(
        self,
        line: ConsignmentLine,
        sold: Decimal,
        remaining: Decimal,
        store_profit: Decimal,
        returned: Decimal | None = None,
    ) -> ConsignmentLine:
        """jumlah_terjual / jumlah_sisa / keuntungan_toko / jumlah_kembali 갱신 (version 검사)

        Args:
            returned: None이면 현재 jumlah_kembali 유지

        Raises:
            ValidationError: sold + remaining + returned ≠ jumlah_titip 또는 음수
            ConcurrencyConflictError: 다른 writer가 먼저 변경한 경우
        """
        returned = line.returned if returned is None else returned
        if (
            sold < ZERO
            or remaining < ZERO
            or returned < ZERO
            or sold + remaining + returned != line.consigned
        ):
            raise ValidationError(
                "Consignment counters out of range",
                {
                    "jumlah_titip": line.consigned,
                    "jumlah_terjual": sold,
                    "jumlah_sisa": remaining,
                    "jumlah_kembali": returned,
                },
            )
        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                UPDATE detail_konsinyasi
                SET jumlah_terjual = ?, jumlah_sisa = ?, jumlah_kembali = ?, keuntungan_toko = ?,
                    version = version + 1
                WHERE id = ? AND version = ?
                """,
                (str(sold), str(remaining), str(returned), str(store_profit), line.id, line.version),
            )
            if cursor.rowcount == 0:
                raise ConcurrencyConflictError("detail_konsinyasi", line.id, line.version)
        return await self.get_line(line.id)

    async def create_sale(
        self,
        line: ConsignmentLine,
        quantity: Decimal,
        store_price: Decimal,
        account_id: str,
        business_date: date | str | None = None,
        note: str | None = None,
    ) -> ConsignmentSale:
        """penjualan_konsinyasi 생성 (draft)"""
        total_sale = quantity * store_price
        our_value = quantity * line.consignment_price
        sale_id = new_id("pk")
        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO penjualan_konsinyasi (
                    id, detail_konsinyasi_id, tanggal_jual, jumlah_terjual, harga_jual_toko,
                    total_penjualan, total_nilai_kita, keuntungan_toko, kas_id, status,
                    keterangan, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    sale_id,
                    line.id,
                    parse_business_date(business_date).isoformat(),
                    str(quantity),
                    str(store_price),
                    str(total_sale),
                    str(our_value),
                    str(total_sale - our_value),
                    account_id,
                    TransactionState.DRAFT.value,
                    note,
                    format_ts(now_utc()),
                ),
            )
        return await self.get_sale(sale_id)

    async def get_sale(self, sale_id: str) -> ConsignmentSale:
        """penjualan_konsinyasi 조회

        Raises:
            NotFoundError: 없는 경우
        """
        row = await self.db.fetchone_dict(
            "SELECT * FROM penjualan_konsinyasi WHERE id = ?",
            (sale_id,),
        )
        if row is None:
            raise NotFoundError("penjualan_konsinyasi", sale_id)
        return ConsignmentSale.from_row(row)

    async def list_sales(self, line_id: str) -> list[ConsignmentSale]:
        rows = await self.db.fetchall_dict(
            """
            SELECT * FROM penjualan_konsinyasi WHERE detail_konsinyasi_id = ?
            ORDER BY created_at ASC
            """,
            (line_id,),
        )
        return [ConsignmentSale.from_row(r) for r in rows]

    async def link_sale(
        self,
        sale_id: str,
        entry_id: str | None,
        movement_id: str | None,
        state: TransactionState,
    ) -> ConsignmentSale:
        """판매에 반영된 kas_harian / stock_barang 연결 + 상태 갱신"""
        async with self.db.transaction():
            await self.db.execute(
                """
                UPDATE penjualan_konsinyasi
                SET kas_harian_id = ?, stock_barang_id = ?, status = ?
                WHERE id = ?
                """,
                (entry_id, movement_id, state.value, sale_id),
            )
        return await self.get_sale(sale_id)

    async def delete_sale(self, sale_id: str) -> None:
        async with self.db.transaction():
            await self.db.execute("DELETE FROM penjualan_konsinyasi WHERE id = ?", (sale_id,))
        logger.info(f"Penjualan konsinyasi deleted: {sale_id}")

    # =========================================================================
    # retur_konsinyasi
    # =========================================================================

    async def create_return(
        self,
        line: ConsignmentLine,
        quantity: Decimal,
        condition: ReturnCondition,
        business_date: date | str | None = None,
        note: str | None = None,
    ) -> ConsignmentReturn:
        return_id = new_id("rk")
        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO retur_konsinyasi (
                    id, detail_konsinyasi_id, tanggal_retur, jumlah_retur, kondisi,
                    keterangan, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    return_id,
                    line.id,
                    parse_business_date(business_date).isoformat(),
                    str(quantity),
                    condition.value,
                    note,
                    format_ts(now_utc()),
                ),
            )
        return await self.get_return(return_id)

    async def get_return(self, return_id: str) -> ConsignmentReturn:
        """retur_konsinyasi 조회

        Raises:
            NotFoundError: 없는 경우
        """
        row = await self.db.fetchone_dict(
            "SELECT * FROM retur_konsinyasi WHERE id = ?",
            (return_id,),
        )
        if row is None:
            raise NotFoundError("retur_konsinyasi", return_id)
        return ConsignmentReturn.from_row(row)

    async def list_returns(self, line_id: str) -> list[ConsignmentReturn]:
        rows = await self.db.fetchall_dict(
            """
            SELECT * FROM retur_konsinyasi WHERE detail_konsinyasi_id = ?
            ORDER BY created_at ASC
            """,
            (line_id,),
        )
        return [ConsignmentReturn.from_row(r) for r in rows]

    async def link_return(self, return_id: str, movement_id: str) -> ConsignmentReturn:
        async with self.db.transaction():
            await self.db.execute(
                "UPDATE retur_konsinyasi SET stock_barang_id = ? WHERE id = ?",
                (movement_id, return_id),
            )
        return await self.get_return(return_id)

    async def delete_return(self, return_id: str) -> None:
        async with self.db.transaction():
            await self.db.execute("DELETE FROM retur_konsinyasi WHERE id = ?", (return_id,))
        logger.info(f"Retur konsinyasi deleted: {return_id}")


# =============================================================================
# gudang_unloading
# =============================================================================


class StockTransferRepository:
    """gudang_unloading Repository

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def create(
        self,
        source_branch_id: str,
        target_branch_id: str,
        items: Iterable[TransferItem],
        business_date: date | str | None = None,
        note: str | None = None,
    ) -> StockTransfer:
        """unloading 기록 + 항목 저장 (draft)"""
        transfer_id = new_id("ul")
        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO gudang_unloading (
                    id, tanggal, cabang_asal_id, cabang_tujuan_id, keterangan, status, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    transfer_id,
                    parse_business_date(business_date).isoformat(),
                    source_branch_id,
                    target_branch_id,
                    note,
                    TransactionState.DRAFT.value,
                    format_ts(now_utc()),
                ),
            )
            await self.db.executemany(
                """
                INSERT INTO gudang_unloading_item (
                    id, unloading_id, produk_asal_id, produk_tujuan_id,
                    jumlah_input, satuan_input, jumlah_output, satuan_output,
                    density, conversion_type
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        new_id("uli"),
                        transfer_id,
                        item.source_product_id,
                        item.target_product_id,
                        str(item.input_quantity),
                        item.input_unit,
                        str(item.output_quantity),
                        item.output_unit,
                        str(item.density) if item.density is not None else None,
                        item.conversion_type,
                    )
                    for item in items
                ],
            )
        logger.info(f"Unloading created: {transfer_id}")
        return await self.get(transfer_id)

    async def get(self, transfer_id: str) -> StockTransfer:
        """unloading + 항목 조회

        Raises:
            NotFoundError: 없는 경우
        """
        row = await self.db.fetchone_dict(
            "SELECT * FROM gudang_unloading WHERE id = ?",
            (transfer_id,),
        )
        if row is None:
            raise NotFoundError("gudang_unloading", transfer_id)
        record = StockTransfer.from_row(row)
        rows = await self.db.fetchall_dict(
            "SELECT * FROM gudang_unloading_item WHERE unloading_id = ? ORDER BY id ASC",
            (transfer_id,),
        )
        record.items = [TransferItem.from_row(r) for r in rows]
        return record

    async def set_state(self, transfer_id: str, state: TransactionState) -> None:
        async with self.db.transaction():
            await self.db.execute(
                "UPDATE gudang_unloading SET status = ? WHERE id = ?",
                (state.value, transfer_id),
            )

    async def delete(self, transfer_id: str) -> None:
        """unloading 삭제 (항목은 ON DELETE CASCADE)"""
        async with self.db.transaction():
            await self.db.execute("DELETE FROM gudang_unloading WHERE id = ?", (transfer_id,))
        logger.info(f"Unloading deleted: {transfer_id}")
