"""
Saga 실행기 테스트

ReconciliationStore는 AsyncMock으로 대체
"""

from unittest.mock import AsyncMock

import pytest

from core.errors import InsufficientStockError, PartialFailureError
from core.saga import Saga, SagaContext


def _recorder(log: list[str], name: str, result: object = None):
    async def _step(ctx: SagaContext) -> object:
        log.append(name)
        return result

    return _step


def _undo(log: list[str], name: str):
    async def _compensate(ctx: SagaContext, result: object) -> None:
        log.append(f"undo:{name}")

    return _compensate


def _failing(error: Exception):
    async def _step(ctx: SagaContext) -> None:
        raise error

    return _step


class TestSagaSuccess:
    """정상 실행"""

    @pytest.mark.asyncio
    async def test_runs_in_order_and_collects_results(self) -> None:
        log: list[str] = []
        saga = Saga("test_op", payload={"x": 1})
        saga.step("a", _recorder(log, "a", 1))
        saga.step("b", _recorder(log, "b", 2))

        ctx = await saga.run()

        assert log == ["a", "b"]
        assert ctx.results == {"a": 1, "b": 2}
        assert ctx.payload == {"x": 1}

    def test_duplicate_step_name(self) -> None:
        saga = Saga("test_op")
        saga.step("a", _recorder([], "a"))
        with pytest.raises(ValueError):
            saga.step("a", _recorder([], "a"))

    @pytest.mark.asyncio
    async def test_later_step_sees_earlier_results(self) -> None:
        saga = Saga("test_op")

        async def first(ctx: SagaContext) -> str:
            return "sale-1"

        async def second(ctx: SagaContext) -> str:
            return f"link:{ctx.results['first']}"

        saga.step("first", first).step("second", second)
        ctx = await saga.run()
        assert ctx.results["second"] == "link:sale-1"


class TestSagaFailure:
    """실패 처리"""

    @pytest.mark.asyncio
    async def test_first_step_failure_reraises_original(self) -> None:
        """아무것도 적용되지 않았으면 원래 오류 그대로"""
        reconciliation = AsyncMock()
        error = InsufficientStockError("prd-1", "cbg-1", 30, 50)
        saga = Saga("stock_transfer", reconciliation=reconciliation)
        saga.step("keluar", _failing(error))

        with pytest.raises(InsufficientStockError):
            await saga.run()
        reconciliation.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_compensates_in_reverse_order(self) -> None:
        """단계 k 실패 → 1..k-1 역순 보상"""
        log: list[str] = []
        reconciliation = AsyncMock()
        saga = Saga("test_op", reconciliation=reconciliation)
        saga.step("a", _recorder(log, "a"), _undo(log, "a"))
        saga.step("b", _recorder(log, "b"), _undo(log, "b"))
        saga.step("c", _failing(RuntimeError("boom")))

        with pytest.raises(PartialFailureError) as exc_info:
            await saga.run()

        assert log == ["a", "b", "undo:b", "undo:a"]
        error = exc_info.value
        assert error.failed_step == "c"
        assert error.compensated == ["b", "a"]
        assert error.uncompensated == []
        assert error.fully_compensated is True
        assert error.reconciliation_id is None
        reconciliation.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_step_without_compensate_counts_as_compensated(self) -> None:
        log: list[str] = []
        saga = Saga("test_op")
        saga.step("read", _recorder(log, "read"))
        saga.step("write", _failing(RuntimeError("boom")))

        with pytest.raises(PartialFailureError) as exc_info:
            await saga.run()
        assert exc_info.value.compensated == ["read"]

    @pytest.mark.asyncio
    async def test_compensation_failure_creates_marker(self) -> None:
        """보상 실패 → 마커 생성, 나머지 보상은 계속"""
        log: list[str] = []
        reconciliation = AsyncMock()
        reconciliation.create.return_value = "rk-1"

        async def broken_undo(ctx: SagaContext, result: object) -> None:
            raise RuntimeError("undo failed")

        saga = Saga(
            "debt_payment",
            reconciliation=reconciliation,
            payload={"jumlah": "100"},
            entity_type="piutang_penjualan",
            entity_id="pt-1",
        )
        saga.step("kas", _recorder(log, "kas"), _undo(log, "kas"))
        saga.step("cicilan", _recorder(log, "cicilan"), broken_undo)
        saga.step("recompute", _failing(RuntimeError("boom")))

        with pytest.raises(PartialFailureError) as exc_info:
            await saga.run()

        error = exc_info.value
        assert log == ["kas", "cicilan", "undo:kas"]
        assert error.compensated == ["kas"]
        assert error.uncompensated == ["cicilan"]
        assert error.rollback_errors == {"cicilan": "undo failed"}
        assert error.reconciliation_id == "rk-1"

        kwargs = reconciliation.create.call_args.kwargs
        assert kwargs["operation"] == "debt_payment"
        assert kwargs["failed_step"] == "recompute"
        assert kwargs["completed_steps"] == ["kas", "cicilan"]
        assert kwargs["entity_id"] == "pt-1"
        assert kwargs["payload"] == {"jumlah": "100"}

    @pytest.mark.asyncio
    async def test_no_compensate_mode(self) -> None:
        """compensate=False: 되돌리지 않고 적용된 단계를 마커로"""
        log: list[str] = []
        reconciliation = AsyncMock()
        reconciliation.create.return_value = "rk-2"
        saga = Saga("cancel_transaction", reconciliation=reconciliation, compensate=False)
        saga.step("stok_0", _recorder(log, "stok_0"), _undo(log, "stok_0"))
        saga.step("kas_0", _failing(RuntimeError("boom")))

        with pytest.raises(PartialFailureError) as exc_info:
            await saga.run()

        assert log == ["stok_0"]
        assert exc_info.value.uncompensated == ["stok_0"]
        assert exc_info.value.reconciliation_id == "rk-2"

    @pytest.mark.asyncio
    async def test_marker_store_failure_still_raises_partial(self) -> None:
        """마커 저장이 실패해도 PartialFailureError는 전달"""
        reconciliation = AsyncMock()
        reconciliation.create.side_effect = RuntimeError("db gone")
        saga = Saga("cancel_transaction", reconciliation=reconciliation, compensate=False)
        saga.step("a", _recorder([], "a"))
        saga.step("b", _failing(RuntimeError("boom")))

        with pytest.raises(PartialFailureError) as exc_info:
            await saga.run()
        assert exc_info.value.reconciliation_id is None
