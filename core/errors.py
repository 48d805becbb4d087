"""
도메인 예외

모든 실패는 사람이 읽는 message + 기계 판독용 kind + 수치 context(details)를 가진다.

전파 규칙:
- ValidationError / 도메인 규칙 위반: 변경 전에 중단, 호출자에게 그대로 전달
- PartialFailureError: Saga가 역순 보상을 시도한 뒤에만 발생
"""

from decimal import Decimal
from typing import Any

from core.types import ErrorKind


def _jsonable(value: Any) -> Any:
    """details 값 직렬화 (Decimal → str)"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class DomainError(Exception):
    """도메인 예외 기본 클래스

    Args:
        message: 사용자 표시용 메시지
        details: 수치 context (available/requested 등)
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_detail(self) -> dict[str, Any]:
        """직렬화 가능한 details 반환"""
        return _jsonable(self.details)


class ValidationError(DomainError):
    """사전 조건 실패 (부수효과 없음)"""

    kind = ErrorKind.VALIDATION


class InvalidAmountError(ValidationError):
    """금액/수량이 0 이하"""

    kind = ErrorKind.INVALID_AMOUNT

    def __init__(self, amount: Any, field: str = "amount"):
        super().__init__(
            f"{field} must be greater than 0 (got {amount})",
            {"field": field, "value": amount},
        )


class InvalidStateError(ValidationError):
    """허용되지 않는 상태 전이"""

    kind = ErrorKind.INVALID_STATE


class NotFoundError(DomainError):
    """레코드 없음"""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} {resource_id} not found"
        super().__init__(message, {"resource": resource, "id": resource_id})
        self.resource = resource
        self.resource_id = resource_id


class InsufficientFundsError(DomainError):
    """kas 잔액 부족"""

    kind = ErrorKind.INSUFFICIENT_FUNDS

    def __init__(
        self,
        account_id: str,
        available: Decimal,
        requested: Decimal,
        message: str | None = None,
    ):
        super().__init__(
            message
            or f"Insufficient cash balance: available {available}, requested {requested}",
            {"account_id": account_id, "available": available, "requested": requested},
        )
        self.available = available
        self.requested = requested


class InsufficientStockError(DomainError):
    """재고 부족"""

    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(
        self,
        product_id: str,
        branch_id: str,
        available: Decimal,
        requested: Decimal,
        message: str | None = None,
    ):
        super().__init__(
            message
            or f"Insufficient stock: available {available}, requested {requested}",
            {
                "product_id": product_id,
                "branch_id": branch_id,
                "available": available,
                "requested": requested,
            },
        )
        self.available = available
        self.requested = requested


class OverpaymentError(DomainError):
    """지불액이 잔여 채무 초과"""

    kind = ErrorKind.OVERPAYMENT

    def __init__(self, debt_id: str, total: Decimal, paid: Decimal, amount: Decimal):
        outstanding = total - paid
        super().__init__(
            f"Payment exceeds outstanding balance: outstanding {outstanding}, requested {amount}",
            {
                "debt_id": debt_id,
                "total": total,
                "paid": paid,
                "outstanding": outstanding,
                "requested": amount,
            },
        )


class ConcurrencyConflictError(DomainError):
    """version 불일치 (다른 writer가 먼저 변경)"""

    kind = ErrorKind.CONCURRENCY_CONFLICT

    def __init__(self, entity: str, entity_id: Any, expected_version: int):
        super().__init__(
            f"{entity} {entity_id} was modified concurrently (expected version {expected_version})",
            {"entity": entity, "id": entity_id, "expected_version": expected_version},
        )


class PartialFailureError(DomainError):
    """앞선 단계가 커밋된 뒤 후속 단계 실패

    Args:
        operation: 작업 이름
        failed_step: 실패한 단계
        original_error: 실패 원인
        compensated: 보상 완료된 단계 (역순)
        uncompensated: 보상 실패/미보상 단계
        rollback_errors: 보상 중 발생한 오류 {step: message}
        reconciliation_id: 수동 복구 마커 ID (보상 실패 시)
    """

    kind = ErrorKind.PARTIAL_FAILURE

    def __init__(
        self,
        operation: str,
        failed_step: str,
        original_error: Exception,
        compensated: list[str],
        uncompensated: list[str],
        rollback_errors: dict[str, str] | None = None,
        reconciliation_id: str | None = None,
    ):
        self.operation = operation
        self.failed_step = failed_step
        self.original_error = original_error
        self.compensated = compensated
        self.uncompensated = uncompensated
        self.rollback_errors = rollback_errors or {}
        self.reconciliation_id = reconciliation_id

        if uncompensated:
            message = (
                f"{operation} failed at '{failed_step}': {original_error}; "
                f"steps not compensated: {', '.join(uncompensated)} "
                f"(manual reconciliation {reconciliation_id})"
            )
        else:
            message = (
                f"{operation} failed at '{failed_step}': {original_error}; "
                f"{len(compensated)} step(s) rolled back"
            )

        original_kind = getattr(original_error, "kind", ErrorKind.INTERNAL)
        super().__init__(
            message,
            {
                "operation": operation,
                "failed_step": failed_step,
                "original_error": str(original_error),
                "original_kind": ErrorKind(original_kind).value,
                "original_detail": (
                    original_error.to_detail()
                    if isinstance(original_error, DomainError)
                    else {}
                ),
                "compensated": list(compensated),
                "uncompensated": list(uncompensated),
                "rollback_errors": dict(self.rollback_errors),
                "reconciliation_id": reconciliation_id,
            },
        )

    @property
    def fully_compensated(self) -> bool:
        """모든 단계가 보상되었는지"""
        return not self.uncompensated
