"""
ReconciliationStore - 수동 정합성 복구 마커 저장소

보상(compensation) 자체가 실패하거나, 취소 작업이 중간에 멈춘 경우
rekonsiliasi_manual 테이블에 마커를 남긴다.
자동 재시도는 하지 않으며, 운영자가 조회 후 resolve 한다.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.errors import NotFoundError, ValidationError
from core.result import to_jsonable
from core.types import ReconciliationStatus
from core.utils.ids import new_id
from core.utils.timezone import format_ts, now_utc, parse_ts

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationMarker:
    """수동 복구 마커

    Attributes:
        id: 마커 ID
        operation: 작업 이름 (예: stock_transfer)
        entity_type / entity_id: 영향받은 업무 레코드
        status: open / resolved
        failed_step: 실패한 단계
        original_error: 원래 오류 메시지
        rollback_errors: 보상 중 발생한 오류 {step: message}
        completed_steps: 실패 시점까지 적용된 단계
        compensated_steps: 보상 완료된 단계
        payload: 작업 입력값
    """

    id: str
    operation: str
    entity_type: str | None
    entity_id: str | None
    status: ReconciliationStatus
    failed_step: str
    original_error: str
    rollback_errors: dict[str, str]
    completed_steps: list[str]
    compensated_steps: list[str]
    payload: dict[str, Any] | None
    resolution_note: str | None
    created_at: datetime
    resolved_at: datetime | None = None

    @property
    def pending_steps(self) -> list[str]:
        """적용됐지만 보상되지 않은 단계"""
        return [s for s in self.completed_steps if s not in self.compensated_steps]

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ReconciliationMarker":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            operation=row["operation"],
            entity_type=row.get("entity_type"),
            entity_id=row.get("entity_id"),
            status=ReconciliationStatus(row["status"]),
            failed_step=row["failed_step"],
            original_error=row["original_error"],
            rollback_errors=json.loads(row["rollback_errors"] or "{}"),
            completed_steps=json.loads(row["completed_steps"] or "[]"),
            compensated_steps=json.loads(row["compensated_steps"] or "[]"),
            payload=json.loads(row["payload"]) if row.get("payload") else None,
            resolution_note=row.get("resolution_note"),
            created_at=parse_ts(row["created_at"]),
            resolved_at=parse_ts(row["resolved_at"]) if row.get("resolved_at") else None,
        )


class ReconciliationStore:
    """수동 복구 마커 저장소

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def create(
        self,
        operation: str,
        failed_step: str,
        original_error: str,
        completed_steps: list[str],
        compensated_steps: list[str],
        rollback_errors: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> str:
        """마커 생성

        Returns:
            생성된 마커 ID
        """
        marker_id = new_id("rk")
        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO rekonsiliasi_manual (
                    id, operation, entity_type, entity_id, status,
                    failed_step, original_error, rollback_errors,
                    completed_steps, compensated_steps, payload, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    marker_id,
                    operation,
                    entity_type,
                    entity_id,
                    ReconciliationStatus.OPEN.value,
                    failed_step,
                    original_error,
                    json.dumps(rollback_errors or {}, ensure_ascii=False),
                    json.dumps(completed_steps),
                    json.dumps(compensated_steps),
                    json.dumps(to_jsonable(payload), ensure_ascii=False) if payload else None,
                    format_ts(now_utc()),
                ),
            )

        logger.error(
            f"Manual reconciliation required: {marker_id} ({operation} @ {failed_step})",
            extra={
                "marker_id": marker_id,
                "operation": operation,
                "entity_type": entity_type,
                "entity_id": entity_id,
            },
        )
        return marker_id

    async def get(self, marker_id: str) -> ReconciliationMarker:
        """마커 조회

        Raises:
            NotFoundError: 마커가 없는 경우
        """
        row = await self.db.fetchone_dict(
            "SELECT * FROM rekonsiliasi_manual WHERE id = ?",
            (marker_id,),
        )
        if row is None:
            raise NotFoundError("rekonsiliasi_manual", marker_id)
        return ReconciliationMarker.from_row(row)

    async def list_markers(
        self,
        status: ReconciliationStatus | None = ReconciliationStatus.OPEN,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> list[ReconciliationMarker]:
        """마커 목록 조회 (최신순)

        Args:
            status: None이면 전체
            entity_type / entity_id: 특정 레코드로 필터
        """
        conditions: list[str] = []
        params: list[Any] = []
        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)
        if entity_type is not None:
            conditions.append("entity_type = ?")
            params.append(entity_type)
        if entity_id is not None:
            conditions.append("entity_id = ?")
            params.append(entity_id)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await self.db.fetchall_dict(
            f"SELECT * FROM rekonsiliasi_manual {where} ORDER BY created_at DESC",
            tuple(params),
        )
        return [ReconciliationMarker.from_row(r) for r in rows]

    async def count_open(self) -> int:
        """미해결 마커 수"""
        row = await self.db.fetchone(
            "SELECT COUNT(*) FROM rekonsiliasi_manual WHERE status = ?",
            (ReconciliationStatus.OPEN.value,),
        )
        return int(row[0]) if row else 0

    async def resolve(self, marker_id: str, note: str) -> ReconciliationMarker:
        """마커 해결 처리

        Raises:
            NotFoundError: 마커가 없는 경우
            ValidationError: 이미 해결된 경우
        """
        marker = await self.get(marker_id)
        if marker.status == ReconciliationStatus.RESOLVED:
            raise ValidationError(
                f"Reconciliation {marker_id} is already resolved",
                {"id": marker_id},
            )

        async with self.db.transaction():
            await self.db.execute(
                """
                UPDATE rekonsiliasi_manual
                SET status = ?, resolution_note = ?, resolved_at = ?
                WHERE id = ?
                """,
                (ReconciliationStatus.RESOLVED.value, note, format_ts(now_utc()), marker_id),
            )

        logger.info(f"Reconciliation resolved: {marker_id}")
        return await self.get(marker_id)
