"""
kas 라우트

계좌 / kas_harian 엔트리 / 이체 / 일일 요약 API.
쓰기는 모두 CompensationCoordinator를 통해 수행한다.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.coordinator import CompensationCoordinator
from core.ledger import LedgerEngine
from core.result import capture
from core.types import OperationName
from web.dependencies import get_coordinator, get_db, get_locks
from web.errors import respond
from web.models.requests import (
    AccountCreateRequest,
    CashEntryRequest,
    CashTransferRequest,
    CashUpdateRequest,
)
from web.models.responses import OperationResponse

router = APIRouter(prefix="/api/kas", tags=["Kas"])


def _ledger(db: SQLiteAdapter = Depends(get_db)) -> LedgerEngine:
    return LedgerEngine(db, get_locks())


@router.get("", response_model=OperationResponse)
async def list_accounts(ledger: LedgerEngine = Depends(_ledger)) -> JSONResponse:
    """계좌 목록"""
    return respond(await capture(ledger.list_accounts()))


@router.post("", response_model=OperationResponse, status_code=201)
async def create_account(
    request: AccountCreateRequest,
    ledger: LedgerEngine = Depends(_ledger),
) -> JSONResponse:
    """계좌 생성"""
    result = await capture(ledger.create_account(request.nama_kas, request.saldo_awal))
    return respond(result, success_status=201)


@router.get("/{kas_id}", response_model=OperationResponse)
async def get_account(kas_id: str, ledger: LedgerEngine = Depends(_ledger)) -> JSONResponse:
    """계좌 조회"""
    return respond(await capture(ledger.get_account(kas_id)))


@router.get("/{kas_id}/entries", response_model=OperationResponse)
async def list_entries(
    kas_id: str,
    tanggal: date | None = Query(default=None, description="영업일 필터"),
    ledger: LedgerEngine = Depends(_ledger),
) -> JSONResponse:
    """엔트리 목록 (created_at 순)"""
    return respond(await capture(ledger.list_entries(kas_id, tanggal)))


@router.get("/{kas_id}/summary", response_model=OperationResponse)
async def daily_summary(
    kas_id: str,
    tanggal: date = Query(..., description="영업일"),
    ledger: LedgerEngine = Depends(_ledger),
) -> JSONResponse:
    """영업일 기준 일일 요약"""
    return respond(await capture(ledger.daily_summary(kas_id, tanggal)))


@router.get("/{kas_id}/verify", response_model=OperationResponse)
async def verify_chain(kas_id: str, ledger: LedgerEngine = Depends(_ledger)) -> JSONResponse:
    """running balance chain 검증"""
    return respond(await capture(ledger.verify_chain(kas_id)))


@router.post("/entries", response_model=OperationResponse, status_code=201)
async def create_entry(
    request: CashEntryRequest,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """엔트리 추가"""
    result = await coordinator.run(
        OperationName.CASH_ENTRY, request.model_dump(mode="json", exclude_none=True)
    )
    return respond(result, success_status=201)


@router.patch("/entries/{entry_id}", response_model=OperationResponse)
async def update_entry(
    entry_id: str,
    request: CashUpdateRequest,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """엔트리 수정 (이후 엔트리 cascade 재계산)"""
    payload = request.model_dump(mode="json", exclude_none=True)
    payload["entry_id"] = entry_id
    return respond(await coordinator.run(OperationName.CASH_UPDATE, payload))


@router.delete("/entries/{entry_id}", response_model=OperationResponse)
async def delete_entry(
    entry_id: str,
    allow_negative: bool = Query(default=False, description="잔액이 음수가 되어도 삭제"),
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """엔트리 삭제 (이후 엔트리 cascade 재계산)"""
    result = await coordinator.run(
        OperationName.CASH_REVERSE,
        {"entry_id": entry_id, "allow_negative": allow_negative},
    )
    return respond(result)


@router.post("/transfer", response_model=OperationResponse, status_code=201)
async def transfer(
    request: CashTransferRequest,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """kas 간 이체"""
    result = await coordinator.run(
        OperationName.CASH_TRANSFER, request.model_dump(mode="json", exclude_none=True)
    )
    return respond(result, success_status=201)
