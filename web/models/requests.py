"""
요청 스키마 (Pydantic)

Web API 요청 데이터 검증.
필드명은 DB 컬럼/작업 payload 명칭을 그대로 사용한다.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class AccountCreateRequest(BaseModel):
    """kas 계좌 생성 요청"""

    nama_kas: str = Field(..., min_length=1, description="표시 이름")
    saldo_awal: Decimal = Field(default=Decimal("0"), ge=0, description="원장 이전 잔액")


class CashEntryRequest(BaseModel):
    """kas_harian 엔트리 추가 요청"""

    kas_id: str
    jenis_transaksi: str = Field(..., description="masuk / keluar")
    jumlah: Decimal
    kategori: str
    tanggal: date | None = Field(default=None, description="영업일 (None이면 오늘, WIB)")
    keterangan: str | None = None


class CashUpdateRequest(BaseModel):
    """kas_harian 엔트리 수정 요청"""

    jenis_transaksi: str | None = None
    jumlah: Decimal | None = None
    kategori: str | None = None
    tanggal: date | None = None
    keterangan: str | None = None


class CashTransferRequest(BaseModel):
    """kas 간 이체 요청"""

    dari_kas_id: str
    ke_kas_id: str
    jumlah: Decimal
    tanggal: date | None = None
    keterangan: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "dari_kas_id": "kas-besar",
                    "ke_kas_id": "kas-kecil",
                    "jumlah": "300000",
                    "tanggal": "2026-03-01",
                    "keterangan": "Modal kas kecil",
                }
            ]
        }
    }


class DebtPaymentRequest(BaseModel):
    """piutang / hutang cicilan 요청"""

    jumlah: Decimal | None = Field(default=None, description="lunasi=true면 생략 가능")
    kas_id: str
    tanggal: date | None = None
    keterangan: str | None = None
    lunasi: bool = Field(default=False, description="잔액 전액 상환")


class ProductCreateRequest(BaseModel):
    """produk 생성 요청"""

    kode_produk: str
    nama_produk: str
    satuan: str = Field(..., description="Kg, Ml, Pcs ...")
    density_kg_per_liter: Decimal | None = None


class BranchCreateRequest(BaseModel):
    """cabang 생성 요청"""

    nama_cabang: str


class TransferItemRequest(BaseModel):
    """unloading 항목"""

    produk_asal_id: str
    produk_tujuan_id: str | None = Field(default=None, description="None이면 produk_asal_id와 동일")
    jumlah: Decimal


class StockTransferRequest(BaseModel):
    """cabang 간 재고 이동 (unloading) 요청"""

    cabang_asal_id: str
    cabang_tujuan_id: str
    tanggal: date | None = None
    keterangan: str | None = None
    items: list[TransferItemRequest] = Field(..., min_length=1)


class StockAdjustRequest(BaseModel):
    """실사 수량 맞추기 요청"""

    produk_id: str
    cabang_id: str
    jumlah_baru: Decimal = Field(..., ge=0, description="실사 수량")
    hpp: Decimal | None = None
    tanggal: date | None = None
    keterangan: str | None = None


class TradeItemRequest(BaseModel):
    """판매/구매 상세 항목"""

    produk_id: str
    jumlah: Decimal
    harga: Decimal


class TradeCreateRequest(BaseModel):
    """판매/구매 draft 생성 요청"""

    nota: str
    cabang_id: str
    items: list[TradeItemRequest] = Field(..., min_length=1)
    jenis_pembayaran: str = Field(default="tunai", description="tunai / kredit")
    kas_id: str | None = Field(default=None, description="tunai인 경우 필수")
    pihak: str | None = Field(default=None, description="customer / supplier")
    tanggal: date | None = None
    jatuh_tempo: date | None = None
    keterangan: str | None = None


class ConsignmentLineRequest(BaseModel):
    """konsinyasi 상세 항목"""

    produk_id: str
    jumlah_titip: Decimal
    harga_konsinyasi: Decimal


class ConsignmentCreateRequest(BaseModel):
    """konsinyasi(위탁) 생성 요청"""

    kode_konsinyasi: str
    toko: str
    cabang_id: str
    tanggal_titip: date | None = None
    items: list[ConsignmentLineRequest] = Field(..., min_length=1)


class ConsignmentSaleRequest(BaseModel):
    """위탁 판매 기록 요청"""

    jumlah: Decimal
    harga_jual_toko: Decimal
    kas_id: str
    tanggal: date | None = None
    keterangan: str | None = None


class ConsignmentReturnRequest(BaseModel):
    """위탁 반품 기록 요청"""

    jumlah: Decimal
    kondisi: str = Field(default="baik", description="baik / rusak")
    tanggal: date | None = None
    keterangan: str | None = None


class OperationRequest(BaseModel):
    """이름 있는 Coordinator 작업 실행 요청"""

    payload: dict[str, Any] = Field(default_factory=dict, description="작업 입력값")


class ReconciliationResolveRequest(BaseModel):
    """수동 복구 완료 처리 요청"""

    catatan: str = Field(..., min_length=1, description="처리 내용")
