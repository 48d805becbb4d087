"""
Coordinator 작업 라우트

GET  /api/operations        - 등록된 작업 이름
POST /api/operations/{name} - 이름 있는 작업 실행 (payload 그대로 전달)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.coordinator import CompensationCoordinator
from core.result import OperationResult
from web.dependencies import get_coordinator
from web.errors import respond
from web.models.requests import OperationRequest
from web.models.responses import OperationResponse

router = APIRouter(prefix="/api/operations", tags=["Operations"])


@router.get("", response_model=OperationResponse)
async def list_operations(
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """등록된 작업 목록"""
    return respond(OperationResult.success(coordinator.operations))


@router.post("/{name}", response_model=OperationResponse)
async def run_operation(
    name: str,
    request: OperationRequest,
    coordinator: CompensationCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """작업 실행

    실패 시에도 {ok, data, error_kind, error_detail, message} 구조로 응답하며
    HTTP 상태 코드는 error_kind에 따라 결정된다.
    """
    return respond(await coordinator.run(name, request.payload))
