"""
Saga

단계 규칙:
- 각 단계의 forward는 컴포넌트 호출 1회 (= 로컬 트랜잭션 1개)
- 단계 k 실패 시 1..k-1을 역순으로 보상
- 보상은 캐시된 이전 값이 아닌 현재 상태를 다시 읽어 수행 (단계별 compensate 구현 책임)
- 보상 실패 시 자동 재시도하지 않고 rekonsiliasi_manual 마커를 남김
- 첫 단계에서 실패하면 아무것도 적용되지 않았으므로 원래 오류를 그대로 전달

compensate=False 모드 (취소 작업):
- 취소 자체가 생성 작업의 보상이므로 실패 시 되돌리지 않음
- 중간 실패 시 적용된 단계를 마커에 기록하고 PartialFailureError 발생
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from core.errors import PartialFailureError

if TYPE_CHECKING:
    from core.storage.reconciliation_store import ReconciliationStore

logger = logging.getLogger(__name__)


@dataclass
class SagaContext:
    """단계 간 공유 컨텍스트

    Attributes:
        payload: 작업 입력값
        results: 단계 이름 → forward 반환값
        state: 단계가 보상용으로 남기는 임의 값 (변경 전 필드 값 등)
    """

    payload: dict[str, Any] = field(default_factory=dict)
    results: dict[str, Any] = field(default_factory=dict)
    state: dict[str, Any] = field(default_factory=dict)


Forward = Callable[[SagaContext], Awaitable[Any]]
Compensate = Callable[[SagaContext, Any], Awaitable[None]]


@dataclass
class SagaStep:
    """Saga 단계

    Attributes:
        name: 단계 이름 (로그/마커용)
        forward: 정방향 작업
        compensate: 보상 작업 (None이면 보상할 것 없음)
    """

    name: str
    forward: Forward
    compensate: Compensate | None = None


class Saga:
    """Saga 실행기

    Args:
        name: 작업 이름
        reconciliation: 보상 실패 시 마커를 남길 저장소
        payload: 작업 입력값 (마커에 함께 저장)
        entity_type / entity_id: 영향받는 업무 레코드 (마커 조회용)
        compensate: False면 실패 시 보상하지 않음 (취소 작업)

    사용 예시:
    ```python
    saga = Saga("cash_transfer", reconciliation=store)
    saga.step("kas_out", do_out, undo_out)
    saga.step("kas_in", do_in)
    ctx = await saga.run()
    ```
    """

    def __init__(
        self,
        name: str,
        reconciliation: ReconciliationStore | None = None,
        payload: dict[str, Any] | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        compensate: bool = True,
    ):
        self.name = name
        self.reconciliation = reconciliation
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.compensate_on_failure = compensate
        self.context = SagaContext(payload=dict(payload or {}))
        self._steps: list[SagaStep] = []

    @property
    def steps(self) -> list[SagaStep]:
        return list(self._steps)

    def step(
        self,
        name: str,
        forward: Forward,
        compensate: Compensate | None = None,
    ) -> "Saga":
        """단계 추가 (선언 순서대로 실행)"""
        if any(s.name == name for s in self._steps):
            raise ValueError(f"Duplicate saga step: {name}")
        self._steps.append(SagaStep(name=name, forward=forward, compensate=compensate))
        return self

    async def run(self) -> SagaContext:
        """모든 단계 실행

        Returns:
            SagaContext (results에 단계별 결과)

        Raises:
            PartialFailureError: 앞선 단계가 적용된 뒤 실패
            Exception: 첫 단계 실패 시 원래 오류
        """
        completed: list[SagaStep] = []

        for step in self._steps:
            try:
                result = await step.forward(self.context)
            except Exception as e:
                if not completed:
                    logger.info(f"[{self.name}] step '{step.name}' failed before any write: {e}")
                    raise
                logger.error(f"[{self.name}] step '{step.name}' failed: {e}")
                raise await self._handle_failure(step, e, completed) from e

            self.context.results[step.name] = result
            completed.append(step)
            logger.info(f"[{self.name}] step '{step.name}' done")

        return self.context

    async def _handle_failure(
        self,
        failed: SagaStep,
        error: Exception,
        completed: list[SagaStep],
    ) -> PartialFailureError:
        """실패 처리: 역순 보상 → PartialFailureError 생성"""
        compensated: list[str] = []
        uncompensated: list[str] = []
        rollback_errors: dict[str, str] = {}

        if self.compensate_on_failure:
            for step in reversed(completed):
                if step.compensate is None:
                    compensated.append(step.name)
                    continue
                try:
                    await step.compensate(self.context, self.context.results.get(step.name))
                    compensated.append(step.name)
                    logger.warning(f"[{self.name}] compensated '{step.name}'")
                except Exception as ce:
                    uncompensated.append(step.name)
                    rollback_errors[step.name] = str(ce)
                    logger.error(
                        f"[{self.name}] compensation of '{step.name}' failed: {ce}",
                        exc_info=True,
                    )
        else:
            uncompensated = [s.name for s in completed]

        reconciliation_id = None
        if uncompensated and self.reconciliation is not None:
            try:
                reconciliation_id = await self.reconciliation.create(
                    operation=self.name,
                    failed_step=failed.name,
                    original_error=str(error),
                    completed_steps=[s.name for s in completed],
                    compensated_steps=compensated,
                    rollback_errors=rollback_errors,
                    payload=self.context.payload,
                    entity_type=self.entity_type,
                    entity_id=self.entity_id,
                )
            except Exception as me:
                # 마커 저장도 실패하면 로그가 유일한 기록
                logger.critical(
                    f"[{self.name}] failed to persist reconciliation marker: {me}",
                    exc_info=True,
                )

        return PartialFailureError(
            operation=self.name,
            failed_step=failed.name,
            original_error=error,
            compensated=compensated,
            uncompensated=uncompensated,
            rollback_errors=rollback_errors,
            reconciliation_id=reconciliation_id,
        )
