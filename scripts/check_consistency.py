#!/usr/bin/env python3
"""
정합성 검사 스크립트

kas chain / piutang·hutang dibayar / stok_cabang을 원천 기록과 비교하고
미해결 rekonsiliasi_manual 마커를 출력한다.

실행 방법:
    python scripts/check_consistency.py --mode testing
    python scripts/check_consistency.py --db data/gudangkas_prod.db --rebuild-kas
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from adapters.db.sqlite_adapter import SQLiteAdapter, get_db_path, init_schema
from core.ledger import LedgerEngine
from core.logging import setup_logging
from core.reconciler import DriftDetector
from core.storage import ReconciliationStore

logger = logging.getLogger("scripts.check_consistency")


async def main(db_path: Path, rebuild_kas: bool = False) -> int:
    """검사 실행

    Returns:
        종료 코드 (0: 정상, 1: drift 또는 미해결 마커 있음)
    """
    async with SQLiteAdapter(db_path) as db:
        await init_schema(db)
        ledger = LedgerEngine(db)

        report = await DriftDetector(db, ledger=ledger).run()
        markers = await ReconciliationStore(db).list_markers()

        print(f"DB Path: {db_path}")
        print(
            f"Checked: {report.accounts_checked} kas, {report.debts_checked} debts, "
            f"{report.positions_checked} stock positions"
        )

        if report.drifts:
            print(f"\nDrift ({len(report.drifts)}):")
            for drift in report.drifts:
                print(f"  - [{drift.drift_kind}] {drift.description}")

        if markers:
            print(f"\nOpen manual reconciliations ({len(markers)}):")
            for marker in markers:
                print(
                    f"  - {marker.id}: {marker.operation} failed at '{marker.failed_step}' "
                    f"({marker.entity_type} {marker.entity_id}), pending: {marker.pending_steps}"
                )

        if rebuild_kas:
            for account in await ledger.list_accounts():
                if await ledger.verify_chain(account.id):
                    balance = await ledger.rebuild_chain(account.id)
                    print(f"  rebuilt kas {account.id} ({account.name}) → {balance}")

        if report.clean and not markers:
            print("\nOK: no drift, no open reconciliations")
            return 0
        return 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="gudangkas 정합성 검사")
    parser.add_argument(
        "--mode",
        choices=["production", "testing"],
        default="testing",
        help="실행 모드 (기본 DB 경로 선택)",
    )
    parser.add_argument("--db", type=Path, default=None, help="DB 파일 경로 (mode보다 우선)")
    parser.add_argument(
        "--rebuild-kas",
        action="store_true",
        help="chain이 깨진 kas의 running balance를 seed부터 재계산",
    )
    args = parser.parse_args()

    setup_logging("scripts")
    sys.exit(asyncio.run(main(args.db or get_db_path(args.mode), args.rebuild_kas)))
