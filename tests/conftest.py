"""
pytest 공통 fixture 정의

임시 DB(스키마 포함), 설정 파일, 기본 kas / produk / cabang 시드
"""

import tempfile
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.coordinator import CompensationCoordinator
from core.ledger import LedgerEngine
from core.stock import Catalog, StockLedger
from core.transactions import ConsignmentRepository, TradeRepository
from core.utils.locks import KeyedLock


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_settings_file(temp_dir: Path) -> Path:
    """테스트용 settings.yaml 파일 생성"""
    settings_content = f"""# 테스트용 settings.yaml
mode: testing

database:
  path: {(temp_dir / "settings_test.db").as_posix()}

web:
  host: 0.0.0.0
  port: 8123

logging:
  level: debug
"""
    settings_path = temp_dir / "settings.yaml"
    settings_path.write_text(settings_content, encoding="utf-8")
    return settings_path


@pytest.fixture
def temp_settings_file_invalid_mode(temp_dir: Path) -> Path:
    """잘못된 모드의 settings.yaml 파일 생성"""
    settings_path = temp_dir / "settings_invalid.yaml"
    settings_path.write_text("mode: invalid_mode\n", encoding="utf-8")
    return settings_path


# =============================================================================
# DB
# =============================================================================


@pytest_asyncio.fixture
async def db(temp_dir: Path) -> SQLiteAdapter:
    """스키마가 초기화된 임시 DB"""
    adapter = SQLiteAdapter(temp_dir / "gudangkas_test.db")
    await adapter.connect()
    await init_schema(adapter)
    yield adapter
    await adapter.close()


@pytest.fixture
def locks() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def ledger(db: SQLiteAdapter, locks: KeyedLock) -> LedgerEngine:
    return LedgerEngine(db, locks)


@pytest.fixture
def stock(db: SQLiteAdapter, locks: KeyedLock) -> StockLedger:
    return StockLedger(db, locks)


@pytest.fixture
def catalog(db: SQLiteAdapter) -> Catalog:
    return Catalog(db)


@pytest.fixture
def trades(db: SQLiteAdapter) -> TradeRepository:
    return TradeRepository(db)


@pytest.fixture
def consignments(db: SQLiteAdapter) -> ConsignmentRepository:
    return ConsignmentRepository(db)


@pytest.fixture
def coordinator(db: SQLiteAdapter, locks: KeyedLock) -> CompensationCoordinator:
    return CompensationCoordinator(db, locks)


# =============================================================================
# 시드 데이터
# =============================================================================


@pytest_asyncio.fixture
async def seeded(ledger: LedgerEngine, catalog: Catalog, stock: StockLedger) -> dict[str, str]:
    """기본 시드

    - kas A (1000), kas B (0)
    - cabang Gudang / Toko
    - produk Minyak Curah (Kg, density 0.9), Minyak 1L (Ml)
    - Gudang 재고: Minyak Curah 30
    """
    kas_a = await ledger.create_account("Kas A", Decimal("1000"), account_id="kas-a")
    kas_b = await ledger.create_account("Kas B", Decimal("0"), account_id="kas-b")

    gudang = await catalog.create_branch("Gudang", branch_id="cbg-gudang")
    toko = await catalog.create_branch("Toko", branch_id="cbg-toko")

    bulk = await catalog.create_product(
        "MC-01", "Minyak Curah", "Kg", Decimal("0.9"), product_id="prd-curah"
    )
    retail = await catalog.create_product(
        "MB-1L", "Minyak 1L", "Ml", Decimal("0.9"), product_id="prd-botol"
    )

    await stock.increment(bulk.id, gudang.id, Decimal("30"), unit_cost=Decimal("15000"))

    return {
        "kas_a": kas_a.id,
        "kas_b": kas_b.id,
        "gudang": gudang.id,
        "toko": toko.id,
        "bulk": bulk.id,
        "retail": retail.id,
    }
