"""
State Machines

재고/현금이 움직이는 거래(penjualan, pembelian, penjualan_konsinyasi, unloading)의
상태 전이 관리.

전이 규칙:
- draft → committed: 수량/현금 반영
- draft → cancelled: 반영 전 취소
- committed → cancelled: 역반영
- cancelled: 종료 상태 (재활성화 불가)
"""

import logging

from core.errors import InvalidStateError
from core.types import TransactionState

logger = logging.getLogger(__name__)


TRANSACTION_TRANSITIONS: dict[TransactionState, frozenset[TransactionState]] = {
    TransactionState.DRAFT: frozenset({TransactionState.COMMITTED, TransactionState.CANCELLED}),
    TransactionState.COMMITTED: frozenset({TransactionState.CANCELLED}),
    TransactionState.CANCELLED: frozenset(),
}


class StateMachineError(InvalidStateError):
    """상태 전이 오류"""
    pass


class TransactionStateMachine:
    """거래 상태 머신

    Args:
        initial_state: 현재 DB에 저장된 상태
        name: 로그/오류 메시지에 쓰는 거래 표시 이름 (예: "penjualan NJ-0001")
    """

    def __init__(
        self,
        initial_state: TransactionState | str = TransactionState.DRAFT,
        name: str = "transaksi",
    ):
        self._state = TransactionState(initial_state)
        self._name = name
        self._history: list[tuple[TransactionState, TransactionState]] = []

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def history(self) -> list[tuple[TransactionState, TransactionState]]:
        """적용된 전이 목록"""
        return self._history.copy()

    @property
    def is_terminal(self) -> bool:
        return not TRANSACTION_TRANSITIONS[self._state]

    @property
    def is_applied(self) -> bool:
        """수량/현금이 반영된 상태 여부"""
        return self._state == TransactionState.COMMITTED

    def allowed(self) -> list[TransactionState]:
        return sorted(TRANSACTION_TRANSITIONS[self._state], key=lambda s: s.value)

    def can_transition(self, to_state: TransactionState | str) -> bool:
        return TransactionState(to_state) in TRANSACTION_TRANSITIONS[self._state]

    def transition(self, to_state: TransactionState | str) -> TransactionState:
        """상태 전이

        Raises:
            StateMachineError: 허용되지 않은 전이
        """
        target = TransactionState(to_state)
        if not self.can_transition(target):
            allowed = [s.value for s in self.allowed()]
            raise StateMachineError(
                f"{self._name}: cannot go from {self._state.value} to {target.value}. "
                f"Allowed: {allowed}",
                {"from": self._state.value, "to": target.value, "allowed": allowed},
            )

        self._history.append((self._state, target))
        logger.debug(f"{self._name}: {self._state.value} → {target.value}")
        self._state = target
        return target


def require_transition(
    current: TransactionState | str,
    target: TransactionState | str,
    name: str = "transaksi",
) -> TransactionState:
    """쓰기 전 전이 검증

    Raises:
        StateMachineError: 허용되지 않은 전이 (kind = invalid_state)
    """
    return TransactionStateMachine(current, name=name).transition(target)
