"""
거래 타입 정의

penjualan / pembelian, konsinyasi, unloading 레코드
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from core.types import PaymentTerms, ReturnCondition, TransactionKind, TransactionState
from core.utils.money import dec_or_zero
from core.utils.timezone import parse_ts


def _opt_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


@dataclass
class LineItem:
    """detail_penjualan / detail_pembelian 한 줄

    subtotal = quantity x price
    """

    id: str
    transaction_id: str
    product_id: str
    quantity: Decimal
    price: Decimal
    subtotal: Decimal

    @classmethod
    def from_row(cls, row: dict[str, Any], parent_column: str) -> "LineItem":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            transaction_id=row[parent_column],
            product_id=row["produk_id"],
            quantity=dec_or_zero(row["jumlah"]),
            price=dec_or_zero(row["harga"]),
            subtotal=dec_or_zero(row["subtotal"]),
        )


@dataclass
class TradeRecord:
    """transaksi_penjualan / transaksi_pembelian

    Attributes:
        kind: SALE / PURCHASE
        party: customer (판매) 또는 supplier (구매)
        terms: tunai / kredit
        account_id: 현금 거래 시 kas
        state: draft / committed / cancelled
        total / paid / payment_status: 비정규화 값 (채권/채무에서 동기화)
    """

    id: str
    kind: TransactionKind
    nota: str
    branch_id: str
    party: str | None
    business_date: date
    terms: PaymentTerms
    account_id: str | None
    state: TransactionState
    total: Decimal
    paid: Decimal
    payment_status: str
    due_date: date | None = None
    note: str | None = None
    created_at: datetime | None = None
    items: list[LineItem] = field(default_factory=list)

    @property
    def line_total(self) -> Decimal:
        """상세 항목 합계 (Σ jumlah x harga, 저장된 total과 무관)"""
        return sum((item.quantity * item.price for item in self.items), Decimal("0"))

    @classmethod
    def from_row(cls, row: dict[str, Any], kind: TransactionKind) -> "TradeRecord":
        """DB 행에서 생성 (items는 별도 조회)"""
        party = row.get("customer") if kind == TransactionKind.SALE else row.get("supplier")
        return cls(
            id=row["id"],
            kind=kind,
            nota=row["nota"],
            branch_id=row["cabang_id"],
            party=party,
            business_date=date.fromisoformat(row["tanggal"]),
            terms=PaymentTerms(row["jenis_pembayaran"]),
            account_id=row.get("kas_id"),
            state=TransactionState(row["status"]),
            total=dec_or_zero(row["total"]),
            paid=dec_or_zero(row["dibayar"]),
            payment_status=row["status_pembayaran"],
            due_date=_opt_date(row.get("jatuh_tempo")),
            note=row.get("keterangan"),
            created_at=parse_ts(row["created_at"]) if row.get("created_at") else None,
        )


@dataclass
class ConsignmentLine:
    """detail_konsinyasi

    consigned = sold + remaining + returned (항상)
    """

    id: str
    consignment_id: str
    product_id: str
    consigned: Decimal
    sold: Decimal
    remaining: Decimal
    consignment_price: Decimal
    store_profit: Decimal
    version: int
    branch_id: str | None = None
    consignment_code: str | None = None
    returned: Decimal = Decimal("0")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ConsignmentLine":
        """DB 행에서 생성 (cabang_id / kode_konsinyasi는 JOIN 시에만)"""
        return cls(
            id=row["id"],
            consignment_id=row["konsinyasi_id"],
            product_id=row["produk_id"],
            consigned=dec_or_zero(row["jumlah_titip"]),
            sold=dec_or_zero(row["jumlah_terjual"]),
            remaining=dec_or_zero(row["jumlah_sisa"]),
            consignment_price=dec_or_zero(row["harga_konsinyasi"]),
            store_profit=dec_or_zero(row["keuntungan_toko"]),
            version=int(row["version"]),
            branch_id=row.get("cabang_id"),
            consignment_code=row.get("kode_konsinyasi"),
            returned=dec_or_zero(row.get("jumlah_kembali")),
        )


@dataclass
class Consignment:
    """konsinyasi 헤더"""

    id: str
    code: str
    store: str
    branch_id: str
    business_date: date
    status: str
    lines: list[ConsignmentLine] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Consignment":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            code=row["kode_konsinyasi"],
            store=row["toko"],
            branch_id=row["cabang_id"],
            business_date=date.fromisoformat(row["tanggal_titip"]),
            status=row["status"],
        )


@dataclass
class ConsignmentSale:
    """penjualan_konsinyasi

    total_sale = quantity x store_price
    our_value = quantity x consignment_price (kas에 들어오는 금액)
    store_profit = total_sale - our_value
    """

    id: str
    line_id: str
    business_date: date
    quantity: Decimal
    store_price: Decimal
    total_sale: Decimal
    our_value: Decimal
    store_profit: Decimal
    account_id: str
    entry_id: str | None
    movement_id: str | None
    state: TransactionState
    note: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ConsignmentSale":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            line_id=row["detail_konsinyasi_id"],
            business_date=date.fromisoformat(row["tanggal_jual"]),
            quantity=dec_or_zero(row["jumlah_terjual"]),
            store_price=dec_or_zero(row["harga_jual_toko"]),
            total_sale=dec_or_zero(row["total_penjualan"]),
            our_value=dec_or_zero(row["total_nilai_kita"]),
            store_profit=dec_or_zero(row["keuntungan_toko"]),
            account_id=row["kas_id"],
            entry_id=row.get("kas_harian_id"),
            movement_id=row.get("stock_barang_id"),
            state=TransactionState(row["status"]),
            note=row.get("keterangan"),
            created_at=parse_ts(row["created_at"]) if row.get("created_at") else None,
        )


@dataclass
class ConsignmentReturn:
    """retur_konsinyasi

    movement_id: rusak 반품의 cabang 재고 감소 이동 (baik이면 None)
    """

    id: str
    line_id: str
    business_date: date
    quantity: Decimal
    condition: ReturnCondition
    movement_id: str | None
    note: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ConsignmentReturn":
        return cls(
            id=row["id"],
            line_id=row["detail_konsinyasi_id"],
            business_date=date.fromisoformat(row["tanggal_retur"]),
            quantity=dec_or_zero(row["jumlah_retur"]),
            condition=ReturnCondition(row["kondisi"]),
            movement_id=row.get("stock_barang_id"),
            note=row.get("keterangan"),
            created_at=parse_ts(row["created_at"]) if row.get("created_at") else None,
        )


@dataclass
class TransferItem:
    """gudang_unloading_item (입력/출력 수량 모두 보존)"""

    id: str
    transfer_id: str
    source_product_id: str
    target_product_id: str
    input_quantity: Decimal
    input_unit: str
    output_quantity: Decimal
    output_unit: str
    density: Decimal | None
    conversion_type: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "TransferItem":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            transfer_id=row["unloading_id"],
            source_product_id=row["produk_asal_id"],
            target_product_id=row["produk_tujuan_id"],
            input_quantity=dec_or_zero(row["jumlah_input"]),
            input_unit=row["satuan_input"],
            output_quantity=dec_or_zero(row["jumlah_output"]),
            output_unit=row["satuan_output"],
            density=dec_or_zero(row["density"]) if row.get("density") else None,
            conversion_type=row["conversion_type"],
        )


@dataclass
class StockTransfer:
    """gudang_unloading (재고 이동 기록)"""

    id: str
    business_date: date
    source_branch_id: str
    target_branch_id: str
    note: str | None
    state: TransactionState
    items: list[TransferItem] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "StockTransfer":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            business_date=date.fromisoformat(row["tanggal"]),
            source_branch_id=row["cabang_asal_id"],
            target_branch_id=row["cabang_tujuan_id"],
            note=row.get("keterangan"),
            state=TransactionState(row["status"]),
        )
