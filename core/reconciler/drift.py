"""
Drift Detector

저장된 projection(kas.saldo, saldo_setelah, dibayar, stok_cabang)을
원천 기록(kas_harian, cicilan, stock_barang)에서 다시 계산한 값과 비교하여 불일치 감지.

감지만 하고 수정하지 않는다. 수정은 LedgerEngine.rebuild_chain /
DebtTracker.recompute_status 로 수동 수행.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.debt import DebtTracker
from core.ledger import LedgerEngine
from core.result import to_jsonable
from core.stock import StockLedger
from core.types import DebtKind
from core.utils.money import money_eq

logger = logging.getLogger(__name__)


@dataclass
class DriftInfo:
    """Drift 정보"""
    drift_kind: str  # kas, piutang, hutang, stok
    entity_id: str
    expected: dict[str, Any]
    actual: dict[str, Any]
    description: str


@dataclass
class DriftReport:
    """전체 검사 결과"""
    accounts_checked: int = 0
    debts_checked: int = 0
    positions_checked: int = 0
    drifts: list[DriftInfo] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.drifts

    def to_dict(self) -> dict[str, Any]:
        return {
            "clean": self.clean,
            "accounts_checked": self.accounts_checked,
            "debts_checked": self.debts_checked,
            "positions_checked": self.positions_checked,
            "drifts": to_jsonable(self.drifts),
        }


class DriftDetector:
    """Drift 감지기

    Args:
        db: SQLite 어댑터
        ledger / stock / debts: 컴포넌트 (None이면 db로 생성)

    사용 예시:
    ```python
    report = await DriftDetector(db).run()
    for drift in report.drifts:
        print(drift.description)
    ```
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        ledger: LedgerEngine | None = None,
        stock: StockLedger | None = None,
        debts: DebtTracker | None = None,
    ):
        self.db = db
        self.ledger = ledger or LedgerEngine(db)
        self.stock = stock or StockLedger(db)
        self.debts = debts or DebtTracker(db)

    async def detect_kas_drift(self) -> tuple[int, list[DriftInfo]]:
        """kas별 running balance chain 검증"""
        accounts = await self.ledger.list_accounts()
        drifts: list[DriftInfo] = []
        for account in accounts:
            for brk in await self.ledger.verify_chain(account.id):
                target = brk.entry_id or account.id
                where = f"entry {brk.entry_id}" if brk.entry_id else "kas.saldo"
                drifts.append(
                    DriftInfo(
                        drift_kind="kas",
                        entity_id=target,
                        expected={"saldo": brk.expected},
                        actual={"saldo": brk.actual},
                        description=(
                            f"Kas {account.name} ({account.id}) {where}: "
                            f"expected {brk.expected}, actual {brk.actual}"
                        ),
                    )
                )
        return len(accounts), drifts

    async def detect_debt_drift(self) -> tuple[int, list[DriftInfo]]:
        """dibayar vs Σ cicilan, total vs Σ detail"""
        checked = 0
        drifts: list[DriftInfo] = []
        for kind in DebtKind:
            for debt in await self.debts.list_debts(kind):
                checked += 1
                paid = await self.debts.paid_amount(kind, debt.id)
                if not money_eq(paid, debt.paid):
                    drifts.append(
                        DriftInfo(
                            drift_kind=kind.value,
                            entity_id=debt.id,
                            expected={"dibayar": paid},
                            actual={"dibayar": debt.paid},
                            description=(
                                f"{kind.value} {debt.id} dibayar mismatch: "
                                f"payments sum to {paid}, stored {debt.paid}"
                            ),
                        )
                    )
                total = await self.debts.compute_total(kind, debt.transaction_id)
                if not money_eq(total, debt.total):
                    drifts.append(
                        DriftInfo(
                            drift_kind=kind.value,
                            entity_id=debt.id,
                            expected={"total": total},
                            actual={"total": debt.total},
                            description=(
                                f"{kind.value} {debt.id} total mismatch: "
                                f"line items sum to {total}, stored {debt.total}"
                            ),
                        )
                    )
        return checked, drifts

    async def detect_stock_drift(self) -> tuple[int, list[DriftInfo]]:
        """stok_cabang vs Σ stock_barang"""
        positions = await self.stock.all_positions()
        drifts: list[DriftInfo] = []
        for position in positions:
            drift = await self.stock.reconcile(position.product_id, position.branch_id)
            if drift is None:
                continue
            drifts.append(
                DriftInfo(
                    drift_kind="stok",
                    entity_id=f"{drift.product_id}@{drift.branch_id}",
                    expected={"jumlah": drift.movement_quantity},
                    actual={"jumlah": drift.position_quantity},
                    description=(
                        f"Stock {drift.product_id} at {drift.branch_id}: movements sum to "
                        f"{drift.movement_quantity}, position {drift.position_quantity}"
                    ),
                )
            )
        return len(positions), drifts

    async def run(self) -> DriftReport:
        """모든 검사 실행"""
        report = DriftReport()

        report.accounts_checked, kas_drifts = await self.detect_kas_drift()
        report.debts_checked, debt_drifts = await self.detect_debt_drift()
        report.positions_checked, stock_drifts = await self.detect_stock_drift()
        report.drifts = kas_drifts + debt_drifts + stock_drifts

        if report.drifts:
            for drift in report.drifts:
                logger.warning(f"Drift detected: {drift.description}")
        else:
            logger.info(
                f"No drift: {report.accounts_checked} kas, {report.debts_checked} debts, "
                f"{report.positions_checked} stock positions"
            )
        return report
