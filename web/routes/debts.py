"""
piutang / hutang 라우트

채권·채무 조회, cicilan 지불, cicilan 취소 API
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.coordinator import CompensationCoordinator
from core.debt import DebtTracker
from core.errors import ValidationError
from core.result import capture
from core.types import DebtKind, DebtStatus, OperationName
from web.dependencies import get_coordinator, get_db
from web.errors import respond
from web.models.requests import DebtPaymentRequest
from web.models.responses import OperationResponse

router = APIRouter(prefix="/api/debts", tags=["Debts"])


def _tracker(db: SQLiteAdapter = Depends(get_db)) -> DebtTracker:
    return DebtTracker(db)


def _status(value: str | None) -> DebtStatus | None:
    if value is None:
        return None
    try:
        return DebtStatus(value)
    except ValueError as e:
        raise ValidationError(
            f"Invalid status: {value!r}. Valid: {[s.value for s in DebtStatus]}",
            {"field": "status", "value": value},
        ) from e


@router.get("/{jenis}", response_model=OperationResponse)
async def list_debts(
    jenis: DebtKind,
    status: str | None = Query(default=None, description="belum_lunas / cicil / lunas"),
    tracker: DebtTracker = Depends(_tracker),
) -> JSONResponse:
    """채권/채무 목록"""
    return respond(await capture(tracker.list_debts(jenis, _status(status))))


@router.get("/{jenis}/{debt_id}", response_model=OperationResponse)
async def get_debt(
    jenis: DebtKind,
    debt_id: str,
    tracker: DebtTracker = Depends(_tracker),
) -> JSONResponse:
    """채권/채무 + cicilan 목록"""

    async def _load() -> dict:
        debt = await tracker.get_debt(jenis, debt_id)
        payments = await tracker.list_payments(jenis, debt_id)
        return {"debt": debt, "payments": payments}

    return respond(await capture(_load()))


@router.post("/{jenis}/{debt_id}/payments", response_model=OperationResponse, status_code=201)
async def pay(
    jenis: DebtKind,
    debt_id: str,
    request: DebtPaymentRequest,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """cicilan 지불 (lunasi=true면 잔액 전액)"""
    payload = request.model_dump(mode="json", exclude_none=True)
    payload.update({"jenis": jenis.value, "debt_id": debt_id})
    result = await coordinator.run(OperationName.DEBT_PAYMENT, payload)
    return respond(result, success_status=201)


@router.delete("/{jenis}/payments/{cicilan_id}", response_model=OperationResponse)
async def reverse_payment(
    jenis: DebtKind,
    cicilan_id: str,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """cicilan 취소 (kas 엔트리 삭제 + 상태 재계산)"""
    result = await coordinator.run(
        OperationName.PAYMENT_REVERSAL,
        {"jenis": jenis.value, "cicilan_id": cicilan_id},
    )
    return respond(result)
