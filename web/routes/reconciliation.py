"""
정합성 라우트

rekonsiliasi_manual 마커 조회/해결, drift 검사, kas chain 재구성 API
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.errors import ValidationError
from core.ledger import LedgerEngine
from core.reconciler import DriftDetector
from core.result import capture
from core.storage import ReconciliationStore
from core.types import ReconciliationStatus
from web.dependencies import get_db, get_locks
from web.errors import respond
from web.models.requests import ReconciliationResolveRequest
from web.models.responses import OperationResponse

router = APIRouter(prefix="/api/reconciliation", tags=["Reconciliation"])


def _store(db: SQLiteAdapter = Depends(get_db)) -> ReconciliationStore:
    return ReconciliationStore(db)


@router.get("", response_model=OperationResponse)
async def list_markers(
    status: str | None = Query(default="open", description="open / resolved / all"),
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    store: ReconciliationStore = Depends(_store),
) -> JSONResponse:
    """수동 복구 마커 목록 (최신순)"""
    if status in (None, "all"):
        status_filter = None
    else:
        try:
            status_filter = ReconciliationStatus(status)
        except ValueError as e:
            raise ValidationError(
                f"Invalid status: {status!r}. Valid: open, resolved, all",
                {"field": "status", "value": status},
            ) from e
    return respond(await capture(store.list_markers(status_filter, entity_type, entity_id)))


@router.get("/drift", response_model=OperationResponse)
async def drift_check(db: SQLiteAdapter = Depends(get_db)) -> JSONResponse:
    """projection vs 원천 기록 비교"""
    detector = DriftDetector(db, ledger=LedgerEngine(db, get_locks()))

    async def _run() -> dict:
        report = await detector.run()
        return report.to_dict()

    return respond(await capture(_run()))


@router.post("/kas/{kas_id}/rebuild", response_model=OperationResponse)
async def rebuild_chain(kas_id: str, db: SQLiteAdapter = Depends(get_db)) -> JSONResponse:
    """seed부터 running balance 재계산 (수동 복구)"""
    ledger = LedgerEngine(db, get_locks())
    return respond(await capture(ledger.rebuild_chain(kas_id)))


@router.get("/{marker_id}", response_model=OperationResponse)
async def get_marker(marker_id: str, store: ReconciliationStore = Depends(_store)) -> JSONResponse:
    """마커 조회"""
    return respond(await capture(store.get(marker_id)))


@router.post("/{marker_id}/resolve", response_model=OperationResponse)
async def resolve_marker(
    marker_id: str,
    request: ReconciliationResolveRequest,
    store: ReconciliationStore = Depends(_store),
) -> JSONResponse:
    """마커 해결 처리"""
    return respond(await capture(store.resolve(marker_id, request.catatan)))
