"""
스토리지 모듈

감사 로그, 수동 복구 마커 등 도메인 공통 저장소 제공
"""

from core.storage.audit_store import AuditRecord, AuditStore
from core.storage.reconciliation_store import ReconciliationMarker, ReconciliationStore

__all__ = [
    "AuditRecord",
    "AuditStore",
    "ReconciliationMarker",
    "ReconciliationStore",
]
