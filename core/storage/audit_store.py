"""
AuditStore - 감사 로그 저장소

취소/삭제 등 파괴적 작업의 이전 값(old_data)과 행위자를 audit_log에 남긴다.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.result import to_jsonable
from core.types import Actor
from core.utils.ids import new_id
from core.utils.timezone import format_ts, now_utc, parse_ts

logger = logging.getLogger(__name__)


@dataclass
class AuditRecord:
    """감사 로그 한 건"""

    id: str
    action: str
    table_name: str
    record_id: str
    old_data: dict[str, Any] | None
    new_data: dict[str, Any] | None
    actor: Actor
    created_at: datetime

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AuditRecord":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            action=row["action"],
            table_name=row["table_name"],
            record_id=row["record_id"],
            old_data=json.loads(row["old_data"]) if row.get("old_data") else None,
            new_data=json.loads(row["new_data"]) if row.get("new_data") else None,
            actor=Actor(kind=row["actor_kind"], id=row["actor_id"]),
            created_at=parse_ts(row["created_at"]),
        )


class AuditStore:
    """감사 로그 저장소

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def record(
        self,
        action: str,
        table_name: str,
        record_id: str,
        actor: Actor,
        old_data: dict[str, Any] | None = None,
        new_data: dict[str, Any] | None = None,
    ) -> str:
        """감사 로그 기록

        Args:
            action: DELETE, CANCEL, UPDATE 등
            table_name: 대상 테이블
            record_id: 대상 레코드 ID
            actor: 행위자
            old_data: 변경 전 스냅샷
            new_data: 변경 후 스냅샷

        Returns:
            audit_log ID
        """
        audit_id = new_id("al")
        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO audit_log (
                    id, action, table_name, record_id,
                    old_data, new_data, actor_kind, actor_id, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    audit_id,
                    action,
                    table_name,
                    record_id,
                    json.dumps(to_jsonable(old_data), ensure_ascii=False) if old_data else None,
                    json.dumps(to_jsonable(new_data), ensure_ascii=False) if new_data else None,
                    actor.kind,
                    actor.id,
                    format_ts(now_utc()),
                ),
            )

        logger.debug(f"Audit recorded: {action} {table_name}/{record_id}")
        return audit_id

    async def list_for(self, table_name: str, record_id: str) -> list[AuditRecord]:
        """레코드별 감사 로그 (오래된 순)"""
        rows = await self.db.fetchall_dict(
            """
            SELECT * FROM audit_log
            WHERE table_name = ? AND record_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (table_name, record_id),
        )
        return [AuditRecord.from_row(r) for r in rows]
