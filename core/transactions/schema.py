"""
거래 스키마 초기화

penjualan / pembelian (헤더 + 상세), piutang / hutang + cicilan,
konsinyasi (헤더 + 상세 + 판매) 테이블 생성.
CREATE IF NOT EXISTS 패턴으로 안전하게 동작.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_transaction_schema(db: "SQLiteAdapter") -> None:
    """거래 스키마 초기화

    kas / stok 스키마가 먼저 생성되어 있어야 한다 (FK).

    Args:
        db: SQLiteAdapter 인스턴스
    """
    await _create_sale_tables(db)
    await _create_purchase_tables(db)
    await _create_consignment_tables(db)
    logger.info("거래 스키마 초기화 완료")


async def _create_sale_tables(db: "SQLiteAdapter") -> None:
    """판매 + 채권 테이블"""

    # transaksi_penjualan. total/dibayar/status_pembayaran은 비정규화 값
    await db.execute("""
        CREATE TABLE IF NOT EXISTS transaksi_penjualan (
            id                 TEXT PRIMARY KEY,
            nota               TEXT NOT NULL UNIQUE,
            cabang_id          TEXT NOT NULL,
            customer           TEXT,
            tanggal            TEXT NOT NULL,
            jenis_pembayaran   TEXT NOT NULL CHECK (jenis_pembayaran IN ('tunai', 'kredit')),
            kas_id             TEXT,
            status             TEXT NOT NULL DEFAULT 'draft',
            total              TEXT NOT NULL DEFAULT '0',
            dibayar            TEXT NOT NULL DEFAULT '0',
            status_pembayaran  TEXT NOT NULL DEFAULT 'belum_lunas',
            jatuh_tempo        TEXT,
            keterangan         TEXT,
            created_at         TEXT NOT NULL,
            updated_at         TEXT NOT NULL,
            FOREIGN KEY (cabang_id) REFERENCES cabang(id),
            FOREIGN KEY (kas_id) REFERENCES kas(id)
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS detail_penjualan (
            id                 TEXT PRIMARY KEY,
            penjualan_id       TEXT NOT NULL,
            produk_id          TEXT NOT NULL,
            jumlah             TEXT NOT NULL,
            harga              TEXT NOT NULL,
            subtotal           TEXT NOT NULL,
            FOREIGN KEY (penjualan_id) REFERENCES transaksi_penjualan(id) ON DELETE CASCADE,
            FOREIGN KEY (produk_id) REFERENCES produk(id)
        )
    """)

    # piutang_penjualan (신용 판매 1건당 1행). dibayar는 cicilan 합계에서 재계산
    await db.execute("""
        CREATE TABLE IF NOT EXISTS piutang_penjualan (
            id                 TEXT PRIMARY KEY,
            penjualan_id       TEXT NOT NULL UNIQUE,
            total              TEXT NOT NULL,
            dibayar            TEXT NOT NULL DEFAULT '0',
            sisa               TEXT NOT NULL,
            status             TEXT NOT NULL DEFAULT 'belum_lunas',
            jatuh_tempo        TEXT,
            version            INTEGER NOT NULL DEFAULT 1,
            created_at         TEXT NOT NULL,
            updated_at         TEXT NOT NULL,
            FOREIGN KEY (penjualan_id) REFERENCES transaksi_penjualan(id)
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS cicilan_penjualan (
            id                 TEXT PRIMARY KEY,
            piutang_id         TEXT NOT NULL,
            jumlah_cicilan     TEXT NOT NULL,
            tanggal_cicilan    TEXT NOT NULL,
            kas_id             TEXT NOT NULL,
            kas_harian_id      TEXT,
            keterangan         TEXT,
            created_at         TEXT NOT NULL,
            FOREIGN KEY (piutang_id) REFERENCES piutang_penjualan(id),
            FOREIGN KEY (kas_id) REFERENCES kas(id)
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_cicilan_penjualan_piutang
        ON cicilan_penjualan(piutang_id)
    """)


async def _create_purchase_tables(db: "SQLiteAdapter") -> None:
    """구매 + 채무 테이블"""

    await db.execute("""
        CREATE TABLE IF NOT EXISTS transaksi_pembelian (
            id                 TEXT PRIMARY KEY,
            nota               TEXT NOT NULL UNIQUE,
            cabang_id          TEXT NOT NULL,
            supplier           TEXT,
            tanggal            TEXT NOT NULL,
            jenis_pembayaran   TEXT NOT NULL CHECK (jenis_pembayaran IN ('tunai', 'kredit')),
            kas_id             TEXT,
            status             TEXT NOT NULL DEFAULT 'draft',
            total              TEXT NOT NULL DEFAULT '0',
            dibayar            TEXT NOT NULL DEFAULT '0',
            status_pembayaran  TEXT NOT NULL DEFAULT 'belum_lunas',
            jatuh_tempo        TEXT,
            keterangan         TEXT,
            created_at         TEXT NOT NULL,
            updated_at         TEXT NOT NULL,
            FOREIGN KEY (cabang_id) REFERENCES cabang(id),
            FOREIGN KEY (kas_id) REFERENCES kas(id)
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS detail_pembelian (
            id                 TEXT PRIMARY KEY,
            pembelian_id       TEXT NOT NULL,
            produk_id          TEXT NOT NULL,
            jumlah             TEXT NOT NULL,
            harga              TEXT NOT NULL,
            subtotal           TEXT NOT NULL,
            FOREIGN KEY (pembelian_id) REFERENCES transaksi_pembelian(id) ON DELETE CASCADE,
            FOREIGN KEY (produk_id) REFERENCES produk(id)
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS hutang_pembelian (
            id                 TEXT PRIMARY KEY,
            pembelian_id       TEXT NOT NULL UNIQUE,
            total              TEXT NOT NULL,
            dibayar            TEXT NOT NULL DEFAULT '0',
            sisa               TEXT NOT NULL,
            status             TEXT NOT NULL DEFAULT 'belum_lunas',
            jatuh_tempo        TEXT,
            version            INTEGER NOT NULL DEFAULT 1,
            created_at         TEXT NOT NULL,
            updated_at         TEXT NOT NULL,
            FOREIGN KEY (pembelian_id) REFERENCES transaksi_pembelian(id)
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS cicilan_pembelian (
            id                 TEXT PRIMARY KEY,
            hutang_id          TEXT NOT NULL,
            jumlah_cicilan     TEXT NOT NULL,
            tanggal_cicilan    TEXT NOT NULL,
            kas_id             TEXT NOT NULL,
            kas_harian_id      TEXT,
            keterangan         TEXT,
            created_at         TEXT NOT NULL,
            FOREIGN KEY (hutang_id) REFERENCES hutang_pembelian(id),
            FOREIGN KEY (kas_id) REFERENCES kas(id)
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_cicilan_pembelian_hutang
        ON cicilan_pembelian(hutang_id)
    """)


async def _create_consignment_tables(db: "SQLiteAdapter") -> None:
    """위탁 판매 테이블"""

    # konsinyasi (위탁처 toko에 맡긴 묶음)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS konsinyasi (
            id                 TEXT PRIMARY KEY,
            kode_konsinyasi    TEXT NOT NULL UNIQUE,
            toko               TEXT NOT NULL,
            cabang_id          TEXT NOT NULL,
            tanggal_titip      TEXT NOT NULL,
            status             TEXT NOT NULL DEFAULT 'aktif',
            created_at         TEXT NOT NULL,
            FOREIGN KEY (cabang_id) REFERENCES cabang(id)
        )
    """)

    # detail_konsinyasi. jumlah_titip = jumlah_terjual + jumlah_sisa + jumlah_kembali
    await db.execute("""
        CREATE TABLE IF NOT EXISTS detail_konsinyasi (
            id                 TEXT PRIMARY KEY,
            konsinyasi_id      TEXT NOT NULL,
            produk_id          TEXT NOT NULL,
            jumlah_titip       TEXT NOT NULL,
            jumlah_terjual     TEXT NOT NULL DEFAULT '0',
            jumlah_sisa        TEXT NOT NULL,
            jumlah_kembali     TEXT NOT NULL DEFAULT '0',
            harga_konsinyasi   TEXT NOT NULL,
            keuntungan_toko    TEXT NOT NULL DEFAULT '0',
            version            INTEGER NOT NULL DEFAULT 1,
            FOREIGN KEY (konsinyasi_id) REFERENCES konsinyasi(id) ON DELETE CASCADE,
            FOREIGN KEY (produk_id) REFERENCES produk(id)
        )
    """)

    # penjualan_konsinyasi. kas_harian_id / stock_barang_id로 반영된 엔트리 연결
    await db.execute("""
        CREATE TABLE IF NOT EXISTS penjualan_konsinyasi (
            id                   TEXT PRIMARY KEY,
            detail_konsinyasi_id TEXT NOT NULL,
            tanggal_jual         TEXT NOT NULL,
            jumlah_terjual       TEXT NOT NULL,
            harga_jual_toko      TEXT NOT NULL,
            total_penjualan      TEXT NOT NULL,
            total_nilai_kita     TEXT NOT NULL,
            keuntungan_toko      TEXT NOT NULL,
            kas_id               TEXT NOT NULL,
            kas_harian_id        TEXT,
            stock_barang_id      TEXT,
            status               TEXT NOT NULL DEFAULT 'draft',
            keterangan           TEXT,
            created_at           TEXT NOT NULL,
            FOREIGN KEY (detail_konsinyasi_id) REFERENCES detail_konsinyasi(id),
            FOREIGN KEY (kas_id) REFERENCES kas(id)
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_penjualan_konsinyasi_detail
        ON penjualan_konsinyasi(detail_konsinyasi_id)
    """)

    # retur_konsinyasi. rusak이면 stock_barang_id에 cabang 재고 감소 이동 연결
    await db.execute("""
        CREATE TABLE IF NOT EXISTS retur_konsinyasi (
            id                   TEXT PRIMARY KEY,
            detail_konsinyasi_id TEXT NOT NULL,
            tanggal_retur        TEXT NOT NULL,
            jumlah_retur         TEXT NOT NULL,
            kondisi              TEXT NOT NULL DEFAULT 'baik',
            stock_barang_id      TEXT,
            keterangan           TEXT,
            created_at           TEXT NOT NULL,
            FOREIGN KEY (detail_konsinyasi_id) REFERENCES detail_konsinyasi(id)
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_retur_konsinyasi_detail
        ON retur_konsinyasi(detail_konsinyasi_id)
    """)
