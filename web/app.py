"""
FastAPI 애플리케이션

라우터 등록 및 앱 설정.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import get_settings
from core.logging import setup_logging
from web.dependencies import set_db
from web.errors import register_exception_handlers
from web.routes import (
    debts,
    health,
    kas,
    operations,
    reconciliation,
    stock,
    trades,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 생명주기 관리

    시작 시 DB 연결 1개를 열고 스키마를 초기화하여 요청 간 공유한다.
    """
    settings = get_settings()
    setup_logging("web", console_level=settings.log_level, file_level=settings.log_level)

    db = SQLiteAdapter(settings.db_path)
    await db.connect()
    await init_schema(db)
    set_db(db)
    logger.info(f"Web started: mode={settings.mode.value}, db={settings.db_path}")

    try:
        yield
    finally:
        set_db(None)
        await db.close()
        logger.info("Web: DB 연결 종료 완료")


def create_app(use_lifespan: bool = True) -> FastAPI:
    """앱 생성

    Args:
        use_lifespan: False면 DB 연결을 호출자가 set_db()로 직접 설정 (테스트용)
    """
    application = FastAPI(
        title="gudangkas API",
        description="kas ledger / piutang·hutang / stok cabang back-office API",
        version=health.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if use_lifespan else None,
    )

    # CORS 설정 (개발용)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(application)

    # =========================================================================
    # API 라우터 등록
    # =========================================================================

    application.include_router(health.router)
    application.include_router(kas.router)
    application.include_router(debts.router)
    application.include_router(stock.router)
    application.include_router(trades.router)
    application.include_router(operations.router)
    application.include_router(reconciliation.router)

    return application


app = create_app()
