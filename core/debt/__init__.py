"""
Debt Tracker

piutang / hutang 잔액과 cicilan 관리.

사용 예시:
```python
from core.debt import DebtTracker

tracker = DebtTracker(db)
debt = await tracker.create_debt("piutang", penjualan_id)
debt = await tracker.apply_payment("piutang", debt.id, "250000", kas_id)
```
"""

from core.debt.tracker import DebtTracker, classify
from core.debt.types import DEBT_TABLES, DebtRecord, Payment

__all__ = [
    "DebtTracker",
    "classify",
    "DebtRecord",
    "Payment",
    "DEBT_TABLES",
]
