"""
Stok 스키마 초기화

produk, cabang, stok_cabang, stock_barang, gudang_unloading 테이블 생성.
CREATE IF NOT EXISTS 패턴으로 안전하게 동작.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_stock_schema(db: "SQLiteAdapter") -> None:
    """Stok 스키마 초기화

    Args:
        db: SQLiteAdapter 인스턴스
    """
    await _create_master_tables(db)
    await _create_stock_tables(db)
    await _create_unloading_tables(db)
    logger.info("Stok 스키마 초기화 완료")


async def _create_master_tables(db: "SQLiteAdapter") -> None:
    """마스터 테이블 (produk, cabang)"""

    await db.execute("""
        CREATE TABLE IF NOT EXISTS produk (
            id                    TEXT PRIMARY KEY,
            kode_produk           TEXT NOT NULL UNIQUE,
            nama_produk           TEXT NOT NULL,
            satuan                TEXT NOT NULL,
            density_kg_per_liter  TEXT,
            created_at            TEXT NOT NULL
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS cabang (
            id               TEXT PRIMARY KEY,
            nama_cabang      TEXT NOT NULL,
            created_at       TEXT NOT NULL
        )
    """)


async def _create_stock_tables(db: "SQLiteAdapter") -> None:
    """재고 테이블 (stok_cabang, stock_barang)"""

    # stok_cabang (produk x cabang 현재 수량, jumlah ≥ 0)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS stok_cabang (
            produk_id        TEXT NOT NULL,
            cabang_id        TEXT NOT NULL,
            jumlah           TEXT NOT NULL DEFAULT '0',
            version          INTEGER NOT NULL DEFAULT 1,
            updated_at       TEXT NOT NULL,
            PRIMARY KEY (produk_id, cabang_id),
            FOREIGN KEY (produk_id) REFERENCES produk(id),
            FOREIGN KEY (cabang_id) REFERENCES cabang(id)
        )
    """)

    # stock_barang (append-only 이동 기록). 보상은 reverses_id로 역방향 행 추가
    await db.execute("""
        CREATE TABLE IF NOT EXISTS stock_barang (
            id               TEXT PRIMARY KEY,
            produk_id        TEXT NOT NULL,
            cabang_id        TEXT NOT NULL,
            tanggal          TEXT NOT NULL,
            tipe             TEXT NOT NULL CHECK (tipe IN ('masuk', 'keluar')),
            jumlah           TEXT NOT NULL,
            hpp              TEXT NOT NULL DEFAULT '0',
            keterangan       TEXT,
            ref_type         TEXT,
            ref_id           TEXT,
            reverses_id      TEXT UNIQUE,
            created_at       TEXT NOT NULL,
            FOREIGN KEY (produk_id) REFERENCES produk(id),
            FOREIGN KEY (cabang_id) REFERENCES cabang(id),
            FOREIGN KEY (reverses_id) REFERENCES stock_barang(id)
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_stock_barang_position
        ON stock_barang(produk_id, cabang_id, created_at)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_stock_barang_ref
        ON stock_barang(ref_type, ref_id)
    """)


async def _create_unloading_tables(db: "SQLiteAdapter") -> None:
    """재고 이동 (unloading) 테이블"""

    await db.execute("""
        CREATE TABLE IF NOT EXISTS gudang_unloading (
            id                TEXT PRIMARY KEY,
            tanggal           TEXT NOT NULL,
            cabang_asal_id    TEXT NOT NULL,
            cabang_tujuan_id  TEXT NOT NULL,
            keterangan        TEXT,
            status            TEXT NOT NULL DEFAULT 'draft',
            created_at        TEXT NOT NULL,
            FOREIGN KEY (cabang_asal_id) REFERENCES cabang(id),
            FOREIGN KEY (cabang_tujuan_id) REFERENCES cabang(id)
        )
    """)

    # 입력/출력 수량을 모두 저장 (취소 시 재계산하지 않음)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS gudang_unloading_item (
            id                TEXT PRIMARY KEY,
            unloading_id      TEXT NOT NULL,
            produk_asal_id    TEXT NOT NULL,
            produk_tujuan_id  TEXT NOT NULL,
            jumlah_input      TEXT NOT NULL,
            satuan_input      TEXT NOT NULL,
            jumlah_output     TEXT NOT NULL,
            satuan_output     TEXT NOT NULL,
            density           TEXT,
            conversion_type   TEXT NOT NULL,
            FOREIGN KEY (unloading_id) REFERENCES gudang_unloading(id) ON DELETE CASCADE,
            FOREIGN KEY (produk_asal_id) REFERENCES produk(id),
            FOREIGN KEY (produk_tujuan_id) REFERENCES produk(id)
        )
    """)
