"""
헬스 체크 엔드포인트

GET /api/health - 서버 상태 확인
"""

from fastapi import APIRouter, Depends

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import Settings
from core.storage import ReconciliationStore
from web.dependencies import get_app_settings, get_db
from web.models.responses import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])

API_VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: SQLiteAdapter = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> HealthResponse:
    """서버 상태 확인

    Returns:
        HealthResponse: status, mode, version, 미해결 수동 복구 건수
    """
    open_count = await ReconciliationStore(db).count_open()

    return HealthResponse(
        status="ok" if open_count == 0 else "needs_reconciliation",
        mode=settings.mode.value,
        version=API_VERSION,
        open_reconciliations=open_count,
    )
