"""
작업 결과

모든 작업 경계(Ledger/Debt/Coordinator/HTTP)는 동일한 구조화 결과를 반환한다:
    {ok, data, error_kind, error_detail, message}
"""

import logging
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable

from core.errors import DomainError
from core.types import ErrorKind

logger = logging.getLogger(__name__)


def to_jsonable(value: Any) -> Any:
    """결과 데이터 직렬화

    Decimal → str, datetime/date → ISO 문자열, Enum → value, dataclass → dict
    """
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


@dataclass
class OperationResult:
    """구조화 작업 결과

    Attributes:
        ok: 성공 여부
        data: 성공 시 결과 데이터
        error_kind: 실패 종류 (ErrorKind)
        error_detail: 실패 context (available/requested 등)
        message: 사람이 읽는 메시지
    """

    ok: bool
    data: Any = None
    error_kind: ErrorKind | None = None
    error_detail: dict[str, Any] = field(default_factory=dict)
    message: str | None = None

    @classmethod
    def success(cls, data: Any = None, message: str | None = None) -> "OperationResult":
        """성공 결과 생성"""
        return cls(ok=True, data=data, message=message)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> "OperationResult":
        """실패 결과 생성"""
        return cls(ok=False, error_kind=kind, error_detail=detail or {}, message=message)

    @classmethod
    def from_exception(cls, exc: Exception) -> "OperationResult":
        """예외를 결과로 변환

        DomainError가 아닌 예외는 INTERNAL로 보고한다.
        """
        if isinstance(exc, DomainError):
            return cls.failure(exc.kind, exc.message, exc.to_detail())
        return cls.failure(ErrorKind.INTERNAL, str(exc) or exc.__class__.__name__)

    def to_dict(self) -> dict[str, Any]:
        """JSON 응답용 dict"""
        return {
            "ok": self.ok,
            "data": to_jsonable(self.data),
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_detail": to_jsonable(self.error_detail),
            "message": self.message,
        }


async def capture(awaitable: Awaitable[Any]) -> OperationResult:
    """비동기 호출 결과를 OperationResult로 감싸기

    사용 예시:
    ```python
    result = await capture(engine.append(...))
    if not result.ok:
        print(result.error_kind, result.error_detail)
    ```
    """
    try:
        data = await awaitable
    except DomainError as e:
        logger.info(f"Operation rejected: {e.kind.value}: {e.message}")
        return OperationResult.from_exception(e)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return OperationResult.from_exception(e)
    return OperationResult.success(data)
