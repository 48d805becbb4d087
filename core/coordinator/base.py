"""
Coordinator 공통 기반

컴포넌트 인스턴스(Ledger / Stock / Debt / 거래 저장소)와
payload 파싱, Saga 생성, 감사 로그 헬퍼를 제공한다.
"""

import logging
from enum import Enum
from typing import Any, TypeVar

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.debt import DebtTracker
from core.errors import ValidationError
from core.ledger import LedgerEngine
from core.saga import Saga
from core.stock import Catalog, StockLedger
from core.storage import AuditStore, ReconciliationStore
from core.transactions import ConsignmentRepository, StockTransferRepository, TradeRepository
from core.types import Actor
from core.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def require_field(payload: dict[str, Any], key: str) -> Any:
    """필수 payload 값

    Raises:
        ValidationError: 없거나 빈 값인 경우
    """
    value = payload.get(key)
    if value is None or value == "":
        raise ValidationError(f"{key} is required", {"field": key})
    return value


def parse_enum(enum_cls: type[E], value: Any, field: str) -> E:
    """문자열 → Enum

    Raises:
        ValidationError: 허용되지 않는 값
    """
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = [m.value for m in enum_cls]
        raise ValidationError(
            f"Invalid {field}: {value!r}. Valid: {allowed}",
            {"field": field, "value": value, "allowed": allowed},
        ) from e


class OperationBase:
    """Coordinator 공통 기반

    Args:
        db: SQLite 어댑터
        locks: 키 잠금 레지스트리 (Web 프로세스 전체에서 공유)
        actor: 감사 로그 기록자
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        locks: KeyedLock | None = None,
        actor: Actor | None = None,
    ):
        self.db = db
        self.locks = locks or KeyedLock()
        self.actor = actor or Actor.system("coordinator")

        self.reconciliation = ReconciliationStore(db)
        self.audit = AuditStore(db)
        self.ledger = LedgerEngine(db, self.locks, self.reconciliation)
        self.stock = StockLedger(db, self.locks)
        self.catalog = Catalog(db)
        self.trades = TradeRepository(db)
        self.debts = DebtTracker(db, self.trades)
        self.consignments = ConsignmentRepository(db)
        self.transfers = StockTransferRepository(db)

    def _saga(
        self,
        operation: str,
        payload: dict[str, Any],
        entity_type: str | None = None,
        entity_id: str | None = None,
        compensate: bool = True,
    ) -> Saga:
        return Saga(
            operation,
            reconciliation=self.reconciliation,
            payload=payload,
            entity_type=entity_type,
            entity_id=entity_id,
            compensate=compensate,
        )

    async def _audit(
        self,
        action: str,
        table_name: str,
        record_id: str,
        old_data: dict[str, Any] | None = None,
        new_data: dict[str, Any] | None = None,
    ) -> None:
        """감사 로그 기록 (실패해도 작업 결과에 영향 없음)"""
        try:
            await self.audit.record(action, table_name, record_id, self.actor, old_data, new_data)
        except Exception as e:
            logger.warning(
                f"Audit log failed for {action} {table_name}/{record_id}: {e}",
                exc_info=True,
            )
