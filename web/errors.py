"""
오류 응답 변환

DomainError / OperationResult → HTTP 상태 코드 + 공통 응답 구조
    {ok, data, error_kind, error_detail, message}
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core.errors import DomainError
from core.result import OperationResult
from core.types import ErrorKind

logger = logging.getLogger(__name__)


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_STATE: status.HTTP_409_CONFLICT,
    ErrorKind.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INSUFFICIENT_FUNDS: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INSUFFICIENT_STOCK: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.OVERPAYMENT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.PARTIAL_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(result: OperationResult) -> int:
    """결과 → HTTP 상태 코드"""
    if result.ok:
        return status.HTTP_200_OK
    return STATUS_BY_KIND.get(result.error_kind, status.HTTP_500_INTERNAL_SERVER_ERROR)


def respond(result: OperationResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """OperationResult를 JSON 응답으로 변환"""
    code = success_status if result.ok else status_for(result)
    return JSONResponse(status_code=code, content=result.to_dict())


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """라우트에서 직접 전파된 DomainError"""
    return respond(OperationResult.from_exception(exc))


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """요청 스키마 검증 실패 (Pydantic)"""
    result = OperationResult.failure(
        ErrorKind.VALIDATION,
        "Request validation failed",
        {"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=result.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """앱에 예외 핸들러 등록"""
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
