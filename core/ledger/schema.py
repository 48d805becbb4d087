"""
Kas 스키마 초기화

Web/스크립트 시작 시 자동으로 kas, kas_harian 테이블 생성.
CREATE IF NOT EXISTS 패턴으로 안전하게 동작.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_ledger_schema(db: "SQLiteAdapter") -> None:
    """Kas 스키마 초기화

    이미 존재하는 경우 안전하게 건너뜀 (IF NOT EXISTS).

    Args:
        db: SQLiteAdapter 인스턴스
    """
    await _create_ledger_tables(db)
    await _create_ledger_indexes(db)
    logger.info("Kas 스키마 초기화 완료")


async def _create_ledger_tables(db: "SQLiteAdapter") -> None:
    """Kas 테이블 생성"""

    # kas (계좌). saldo는 kas_harian chain의 projection
    await db.execute("""
        CREATE TABLE IF NOT EXISTS kas (
            id               TEXT PRIMARY KEY,
            nama_kas         TEXT NOT NULL,
            saldo_awal       TEXT NOT NULL DEFAULT '0',
            saldo            TEXT NOT NULL DEFAULT '0',
            version          INTEGER NOT NULL DEFAULT 1,
            created_at       TEXT NOT NULL,
            updated_at       TEXT NOT NULL
        )
    """)

    # kas_harian (계좌별 일지). 순서 키 = created_at, tanggal은 영업일
    await db.execute("""
        CREATE TABLE IF NOT EXISTS kas_harian (
            id               TEXT PRIMARY KEY,
            kas_id           TEXT NOT NULL,
            tanggal          TEXT NOT NULL,
            jenis_transaksi  TEXT NOT NULL CHECK (jenis_transaksi IN ('masuk', 'keluar')),
            kategori         TEXT NOT NULL,
            keterangan       TEXT,
            jumlah           TEXT NOT NULL,
            saldo_setelah    TEXT NOT NULL,
            ref_type         TEXT,
            ref_id           TEXT,
            created_at       TEXT NOT NULL,
            FOREIGN KEY (kas_id) REFERENCES kas(id) ON DELETE RESTRICT
        )
    """)


async def _create_ledger_indexes(db: "SQLiteAdapter") -> None:
    """Kas 인덱스 생성"""

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_kas_harian_chain
        ON kas_harian(kas_id, created_at, id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_kas_harian_tanggal
        ON kas_harian(kas_id, tanggal)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_kas_harian_ref
        ON kas_harian(ref_type, ref_id)
    """)
