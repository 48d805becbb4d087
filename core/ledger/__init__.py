"""
Kas Ledger

kas 계좌 잔액과 kas_harian running balance chain을 관리.
kas.saldo는 chain의 마지막 saldo_setelah의 projection이며 LedgerEngine만 쓴다.

사용 예시:
```python
from core.ledger import LedgerEngine

engine = LedgerEngine(db)

kas = await engine.create_account("Kas Besar", opening_balance="1000")
entry = await engine.append(kas.id, "keluar", "250", "Operasional", "2026-03-01")

# 삭제 → 이후 엔트리 cascade 재계산
await engine.reverse(entry.id)

# 이체 (출금 leg 후 +1ms 입금 leg)
result = await engine.transfer(kas.id, other.id, "300")
```
"""

from core.ledger.store import LedgerEngine
from core.ledger.types import (
    Account,
    ChainBreak,
    DailySummary,
    LedgerEntry,
    TransferResult,
)

__all__ = [
    # 핵심 클래스
    "LedgerEngine",
    # 데이터
    "Account",
    "LedgerEntry",
    "TransferResult",
    "DailySummary",
    "ChainBreak",
]
