"""
Compensation Coordinator

여러 컴포넌트(Ledger / Stock / Debt)에 걸친 이름 있는 작업을 Saga로 실행한다.

규칙:
- 부수효과 없이 확인 가능한 조건은 첫 쓰기 전에 모두 검증
- 단계는 선언 순서대로 실행, 단계 k 실패 시 1..k-1을 역순 보상 후 PartialFailureError
- 보상이 실패하면 rekonsiliasi_manual 마커를 남기고 자동 재시도하지 않음
- run()은 항상 OperationResult를 반환 (예외를 밖으로 던지지 않음)
"""

import logging
from typing import Any, Awaitable, Callable

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.coordinator.cancel_ops import CancelOperations
from core.coordinator.cash_ops import CashOperations
from core.coordinator.consignment_ops import ConsignmentOperations
from core.coordinator.debt_ops import DebtOperations
from core.coordinator.stock_ops import StockTransferOperations
from core.coordinator.trade_ops import TradeOperations
from core.errors import DomainError, PartialFailureError
from core.result import OperationResult
from core.types import Actor, ErrorKind, OperationName
from core.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[Any]]


class CompensationCoordinator(
    CashOperations,
    StockTransferOperations,
    DebtOperations,
    ConsignmentOperations,
    TradeOperations,
    CancelOperations,
):
    """Compensation Coordinator

    Args:
        db: SQLite 어댑터
        locks: 키 잠금 레지스트리 (프로세스 내 공유)
        actor: 감사 로그 기록자

    사용 예시:
    ```python
    coordinator = CompensationCoordinator(db, locks)
    result = await coordinator.run("stock_transfer", {
        "cabang_asal_id": "cbg-1",
        "cabang_tujuan_id": "cbg-2",
        "items": [{"produk_asal_id": "prd-1", "jumlah": "50"}],
    })
    if not result.ok:
        print(result.error_kind, result.error_detail)
    ```
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        locks: KeyedLock | None = None,
        actor: Actor | None = None,
    ):
        super().__init__(db, locks, actor)
        self._handlers: dict[OperationName, Handler] = {
            OperationName.CASH_ENTRY: self.cash_entry,
            OperationName.CASH_UPDATE: self.cash_update,
            OperationName.CASH_REVERSE: self.cash_reverse,
            OperationName.CASH_TRANSFER: self.cash_transfer,
            OperationName.STOCK_TRANSFER: self.stock_transfer,
            OperationName.DEBT_PAYMENT: self.debt_payment,
            OperationName.PAYMENT_REVERSAL: self.payment_reversal,
            OperationName.CONSIGNMENT_SALE: self.consignment_sale,
            OperationName.CONSIGNMENT_RETURN: self.consignment_return,
            OperationName.STOCK_ADJUST: self.stock_adjust,
            OperationName.POST_SALE: self.post_sale,
            OperationName.POST_PURCHASE: self.post_purchase,
            OperationName.CANCEL_TRANSACTION: self.cancel_transaction,
        }

    @property
    def operations(self) -> list[str]:
        """등록된 작업 이름"""
        return [name.value for name in self._handlers]

    def with_actor(self, actor: Actor) -> "CompensationCoordinator":
        """같은 DB / 잠금을 공유하는 다른 행위자용 Coordinator"""
        return CompensationCoordinator(self.db, self.locks, actor)

    async def run(self, name: OperationName | str, payload: dict[str, Any] | None = None) -> OperationResult:
        """작업 실행

        Args:
            name: 작업 이름 (OperationName)
            payload: 작업 입력값

        Returns:
            OperationResult (ok / data / error_kind / error_detail / message)
        """
        try:
            operation = OperationName(name)
        except ValueError:
            return OperationResult.failure(
                ErrorKind.VALIDATION,
                f"Unknown operation: {name}",
                {"operation": str(name), "valid": self.operations},
            )

        payload = dict(payload or {})
        handler = self._handlers[operation]
        logger.info(f"Operation start: {operation.value}", extra={"actor": self.actor.id})

        try:
            data = await handler(payload)
        except PartialFailureError as e:
            logger.error(
                f"Operation {operation.value} partially failed: {e.message}",
                extra={"reconciliation_id": e.reconciliation_id},
            )
            return OperationResult.from_exception(e)
        except DomainError as e:
            logger.info(f"Operation {operation.value} rejected: {e.kind.value}: {e.message}")
            return OperationResult.from_exception(e)
        except Exception as e:
            logger.exception(f"Operation {operation.value} failed unexpectedly: {e}")
            return OperationResult.from_exception(e)

        logger.info(f"Operation done: {operation.value}")
        return OperationResult.success(data)
