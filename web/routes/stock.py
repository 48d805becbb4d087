"""
stok 라우트

produk / cabang 마스터, 재고 현황, 이동 기록, cabang 간 이동(unloading),
실사 수량 맞추기, konsinyasi(위탁) 판매 / 반품 API
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.coordinator import CompensationCoordinator
from core.result import capture
from core.stock import Catalog, StockLedger
from core.transactions import ConsignmentRepository, StockTransferRepository
from core.types import OperationName, Ref
from web.dependencies import get_coordinator, get_db, get_locks
from web.errors import respond
from web.models.requests import (
    BranchCreateRequest,
    ConsignmentCreateRequest,
    ConsignmentReturnRequest,
    ConsignmentSaleRequest,
    ProductCreateRequest,
    StockAdjustRequest,
    StockTransferRequest,
)
from web.models.responses import OperationResponse

router = APIRouter(prefix="/api/stock", tags=["Stock"])


def _catalog(db: SQLiteAdapter = Depends(get_db)) -> Catalog:
    return Catalog(db)


def _stock(db: SQLiteAdapter = Depends(get_db)) -> StockLedger:
    return StockLedger(db, get_locks())


# =========================================================================
# 마스터
# =========================================================================

@router.get("/products", response_model=OperationResponse)
async def list_products(catalog: Catalog = Depends(_catalog)) -> JSONResponse:
    """produk 목록"""
    return respond(await capture(catalog.list_products()))


@router.post("/products", response_model=OperationResponse, status_code=201)
async def create_product(
    request: ProductCreateRequest,
    catalog: Catalog = Depends(_catalog),
) -> JSONResponse:
    """produk 생성"""
    result = await capture(
        catalog.create_product(
            request.kode_produk,
            request.nama_produk,
            request.satuan,
            str(request.density_kg_per_liter) if request.density_kg_per_liter is not None else None,
        )
    )
    return respond(result, success_status=201)


@router.get("/branches", response_model=OperationResponse)
async def list_branches(catalog: Catalog = Depends(_catalog)) -> JSONResponse:
    """cabang 목록"""
    return respond(await capture(catalog.list_branches()))


@router.post("/branches", response_model=OperationResponse, status_code=201)
async def create_branch(
    request: BranchCreateRequest,
    catalog: Catalog = Depends(_catalog),
) -> JSONResponse:
    """cabang 생성"""
    return respond(await capture(catalog.create_branch(request.nama_cabang)), success_status=201)


# =========================================================================
# 재고 현황 / 이동 기록
# =========================================================================

@router.get("/positions", response_model=OperationResponse)
async def list_positions(stock: StockLedger = Depends(_stock)) -> JSONResponse:
    """전체 stok_cabang"""
    return respond(await capture(stock.all_positions()))


@router.get("/positions/{produk_id}/{cabang_id}", response_model=OperationResponse)
async def get_position(
    produk_id: str,
    cabang_id: str,
    stock: StockLedger = Depends(_stock),
) -> JSONResponse:
    """produk x cabang 현재 수량"""
    return respond(await capture(stock.get_position(produk_id, cabang_id)))


@router.get("/movements", response_model=OperationResponse)
async def list_movements(
    produk_id: str | None = Query(default=None),
    cabang_id: str | None = Query(default=None),
    ref_type: str | None = Query(default=None),
    ref_id: str | None = Query(default=None),
    stock: StockLedger = Depends(_stock),
) -> JSONResponse:
    """stock_barang 이동 기록"""
    ref = Ref(ref_type, ref_id) if ref_type and ref_id else None
    return respond(await capture(stock.list_movements(produk_id, cabang_id, ref)))


@router.post("/adjustments", response_model=OperationResponse, status_code=201)
async def stock_adjust(
    request: StockAdjustRequest,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """실사 수량으로 맞추기 (차이가 없으면 data.movement = null)"""
    result = await coordinator.run(
        OperationName.STOCK_ADJUST, request.model_dump(mode="json", exclude_none=True)
    )
    return respond(result, success_status=201)


@router.get("/reconcile/{produk_id}/{cabang_id}", response_model=OperationResponse)
async def reconcile(
    produk_id: str,
    cabang_id: str,
    stock: StockLedger = Depends(_stock),
) -> JSONResponse:
    """stok_cabang vs Σ stock_barang (불일치 없으면 data = null)"""
    return respond(await capture(stock.reconcile(produk_id, cabang_id)))


# =========================================================================
# unloading (cabang 간 이동)
# =========================================================================

@router.post("/transfers", response_model=OperationResponse, status_code=201)
async def stock_transfer(
    request: StockTransferRequest,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """cabang 간 재고 이동 (단위 변환 포함)"""
    result = await coordinator.run(
        OperationName.STOCK_TRANSFER, request.model_dump(mode="json", exclude_none=True)
    )
    return respond(result, success_status=201)


@router.get("/transfers/{transfer_id}", response_model=OperationResponse)
async def get_transfer(
    transfer_id: str,
    db: SQLiteAdapter = Depends(get_db),
) -> JSONResponse:
    """unloading 조회"""
    return respond(await capture(StockTransferRepository(db).get(transfer_id)))


# =========================================================================
# konsinyasi
# =========================================================================

@router.post("/consignments", response_model=OperationResponse, status_code=201)
async def create_consignment(
    request: ConsignmentCreateRequest,
    db: SQLiteAdapter = Depends(get_db),
) -> JSONResponse:
    """konsinyasi 생성 (titip 시점에는 재고를 움직이지 않음)"""
    data = request.model_dump(mode="json", exclude_none=True)
    result = await capture(
        ConsignmentRepository(db).create(
            data["kode_konsinyasi"],
            data["toko"],
            data["cabang_id"],
            data["items"],
            data.get("tanggal_titip"),
        )
    )
    return respond(result, success_status=201)


@router.get("/consignments/{konsinyasi_id}", response_model=OperationResponse)
async def get_consignment(
    konsinyasi_id: str,
    db: SQLiteAdapter = Depends(get_db),
) -> JSONResponse:
    """konsinyasi + 상세 항목"""
    return respond(await capture(ConsignmentRepository(db).get(konsinyasi_id)))


@router.post(
    "/consignments/lines/{detail_konsinyasi_id}/sales",
    response_model=OperationResponse,
    status_code=201,
)
async def consignment_sale(
    detail_konsinyasi_id: str,
    request: ConsignmentSaleRequest,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """위탁 판매 기록"""
    payload = request.model_dump(mode="json", exclude_none=True)
    payload["detail_konsinyasi_id"] = detail_konsinyasi_id
    result = await coordinator.run(OperationName.CONSIGNMENT_SALE, payload)
    return respond(result, success_status=201)


@router.get("/consignments/lines/{detail_konsinyasi_id}/sales", response_model=OperationResponse)
async def list_consignment_sales(
    detail_konsinyasi_id: str,
    db: SQLiteAdapter = Depends(get_db),
) -> JSONResponse:
    """상세 항목별 위탁 판매 목록"""
    return respond(await capture(ConsignmentRepository(db).list_sales(detail_konsinyasi_id)))


@router.post(
    "/consignments/lines/{detail_konsinyasi_id}/returns",
    response_model=OperationResponse,
    status_code=201,
)
async def consignment_return(
    detail_konsinyasi_id: str,
    request: ConsignmentReturnRequest,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """위탁 반품 기록 (rusak이면 cabang 재고 차감)"""
    payload = request.model_dump(mode="json", exclude_none=True)
    payload["detail_konsinyasi_id"] = detail_konsinyasi_id
    result = await coordinator.run(OperationName.CONSIGNMENT_RETURN, payload)
    return respond(result, success_status=201)


@router.get("/consignments/lines/{detail_konsinyasi_id}/returns", response_model=OperationResponse)
async def list_consignment_returns(
    detail_konsinyasi_id: str,
    db: SQLiteAdapter = Depends(get_db),
) -> JSONResponse:
    """상세 항목별 반품 목록"""
    return respond(await capture(ConsignmentRepository(db).list_returns(detail_konsinyasi_id)))
