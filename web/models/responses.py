"""
응답 스키마 (Pydantic)

모든 작업 응답은 OperationResult 구조를 따른다.
"""

from typing import Any

from pydantic import BaseModel


class OperationResponse(BaseModel):
    """구조화 작업 결과"""

    ok: bool
    data: Any = None
    error_kind: str | None = None
    error_detail: dict[str, Any] = {}
    message: str | None = None


class HealthResponse(BaseModel):
    """헬스 체크 응답"""

    status: str
    mode: str
    version: str
    open_reconciliations: int
