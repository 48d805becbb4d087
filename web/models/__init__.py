"""
Web 모델 패키지

Pydantic 스키마 정의
"""

from web.models.requests import (
    AccountCreateRequest,
    BranchCreateRequest,
    CashEntryRequest,
    CashTransferRequest,
    CashUpdateRequest,
    ConsignmentCreateRequest,
    ConsignmentSaleRequest,
    DebtPaymentRequest,
    OperationRequest,
    ProductCreateRequest,
    ReconciliationResolveRequest,
    StockTransferRequest,
    TradeCreateRequest,
)
from web.models.responses import (
    HealthResponse,
    OperationResponse,
)

__all__ = [
    # Requests
    "AccountCreateRequest",
    "BranchCreateRequest",
    "CashEntryRequest",
    "CashTransferRequest",
    "CashUpdateRequest",
    "ConsignmentCreateRequest",
    "ConsignmentSaleRequest",
    "DebtPaymentRequest",
    "OperationRequest",
    "ProductCreateRequest",
    "ReconciliationResolveRequest",
    "StockTransferRequest",
    "TradeCreateRequest",
    # Responses
    "HealthResponse",
    "OperationResponse",
]
