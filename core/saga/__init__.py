"""
Saga 실행기

여러 컴포넌트(Ledger/Stock/Debt)에 걸친 작업을
(forward, compensate) 단계 목록으로 실행하고, 실패 시 역순으로 보상한다.
"""

from core.saga.saga import Saga, SagaContext, SagaStep

__all__ = [
    "Saga",
    "SagaContext",
    "SagaStep",
]
