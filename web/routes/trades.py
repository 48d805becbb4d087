"""
판매 / 구매 라우트

draft 생성 → 반영(post) → 취소(cancel)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.coordinator import CompensationCoordinator
from core.result import OperationResult, capture
from core.transactions import TradeRepository
from core.types import ErrorKind, OperationName, TransactionKind
from web.dependencies import get_coordinator, get_db
from web.errors import respond
from web.models.requests import TradeCreateRequest
from web.models.responses import OperationResponse

router = APIRouter(prefix="/api/trades", tags=["Trades"])

# 판매/구매만 허용 (위탁 판매·unloading은 stock 라우트)
TRADE_KINDS = (TransactionKind.SALE, TransactionKind.PURCHASE)


def _post_operation(kind: TransactionKind) -> OperationName:
    if kind == TransactionKind.SALE:
        return OperationName.POST_SALE
    return OperationName.POST_PURCHASE


def _not_trade(kind: TransactionKind) -> JSONResponse:
    return respond(
        OperationResult.failure(
            ErrorKind.VALIDATION,
            f"Unsupported trade kind: {kind.value}",
            {"valid": [k.value for k in TRADE_KINDS]},
        )
    )


@router.post("/{jenis}", response_model=OperationResponse, status_code=201)
async def create_trade(
    jenis: TransactionKind,
    request: TradeCreateRequest,
    db: SQLiteAdapter = Depends(get_db),
) -> JSONResponse:
    """draft 판매/구매 생성 (재고·kas 변동 없음)"""
    if jenis not in TRADE_KINDS:
        return _not_trade(jenis)
    data = request.model_dump(mode="json", exclude_none=True)
    result = await capture(
        TradeRepository(db).create(
            jenis,
            data["nota"],
            data["cabang_id"],
            data["items"],
            terms=data["jenis_pembayaran"],
            account_id=data.get("kas_id"),
            party=data.get("pihak"),
            business_date=data.get("tanggal"),
            due_date=data.get("jatuh_tempo"),
            note=data.get("keterangan"),
        )
    )
    return respond(result, success_status=201)


@router.get("/{jenis}/{transaksi_id}", response_model=OperationResponse)
async def get_trade(
    jenis: TransactionKind,
    transaksi_id: str,
    db: SQLiteAdapter = Depends(get_db),
) -> JSONResponse:
    """판매/구매 + 상세 항목"""
    if jenis not in TRADE_KINDS:
        return _not_trade(jenis)
    return respond(await capture(TradeRepository(db).get(jenis, transaksi_id)))


@router.post("/{jenis}/{transaksi_id}/post", response_model=OperationResponse)
async def post_trade(
    jenis: TransactionKind,
    transaksi_id: str,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """draft → committed (재고 + kas / piutang·hutang 반영)"""
    if jenis not in TRADE_KINDS:
        return _not_trade(jenis)
    result = await coordinator.run(_post_operation(jenis), {"transaksi_id": transaksi_id})
    return respond(result)


@router.post("/{jenis}/{transaksi_id}/cancel", response_model=OperationResponse)
async def cancel_trade(
    jenis: TransactionKind,
    transaksi_id: str,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """거래 취소 (penjualan / pembelian / penjualan_konsinyasi / unloading)"""
    result = await coordinator.run(
        OperationName.CANCEL_TRANSACTION,
        {"jenis": jenis.value, "id": transaksi_id},
    )
    return respond(result)
