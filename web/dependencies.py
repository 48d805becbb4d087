"""
의존성 주입

FastAPI의 Depends를 사용한 의존성 관리.

Web 프로세스는 SQLite 연결 하나와 KeyedLock 하나를 공유한다.
(트랜잭션 직렬화와 키 잠금이 모두 프로세스 단위이므로)
"""

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import Settings, get_settings
from core.coordinator import CompensationCoordinator
from core.types import Actor
from core.utils.locks import KeyedLock


def get_app_settings() -> Settings:
    """애플리케이션 설정 반환"""
    return get_settings()


# =========================================================================
# 공유 DB 연결 / 잠금 (lifespan에서 설정)
# =========================================================================

_db: SQLiteAdapter | None = None
_locks = KeyedLock()


def set_db(db: SQLiteAdapter | None) -> None:
    """공유 DB 연결 설정

    lifespan 시작 시 호출, 종료 시 None으로 해제.
    테스트에서는 임시 DB를 직접 설정한다.
    """
    global _db
    _db = db


def get_db() -> SQLiteAdapter:
    """공유 DB 연결 반환

    Raises:
        RuntimeError: lifespan 이전에 호출된 경우
    """
    if _db is None:
        raise RuntimeError("Database is not initialized")
    return _db


def get_locks() -> KeyedLock:
    """공유 KeyedLock 반환"""
    return _locks


def get_coordinator() -> CompensationCoordinator:
    """요청별 Coordinator (DB / 잠금은 공유)"""
    return CompensationCoordinator(get_db(), _locks, Actor.web("api"))
