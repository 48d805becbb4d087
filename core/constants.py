"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from datetime import timedelta
from decimal import Decimal
from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → gudangkas/)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """기본값 상수"""

    WEB_HOST: str = "127.0.0.1"
    WEB_PORT: int = 8000

    LOG_LEVEL: str = "INFO"

    # 잔액 Chain 조회 시 한 번에 읽는 최대 행 수
    CHAIN_PAGE_SIZE: int = 500


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    WEB_LOGS_DIR: Path = LOGS_DIR / "web"
    SCRIPT_LOGS_DIR: Path = LOGS_DIR / "scripts"

    # 설정 파일
    SETTINGS_FILE: Path = CONFIG_DIR / "settings.yaml"

    # DB 파일
    PROD_DB: Path = DATA_DIR / "gudangkas_prod.db"
    TEST_DB: Path = DATA_DIR / "gudangkas_test.db"


class Tolerances:
    """금액/수량 비교 허용 오차

    금액은 소수점 반올림 오차 0.01까지 동일한 값으로 본다.
    """

    MONEY: Decimal = Decimal("0.01")
    QTY: Decimal = Decimal("0.001")


class Timing:
    """Ledger 순서 관련 상수"""

    # Transfer 입금 leg는 출금 leg 이후 최소 간격
    TRANSFER_LEG_OFFSET: timedelta = timedelta(milliseconds=1)

    # 같은 계좌 내 created_at 최소 증가폭
    MIN_TICK: timedelta = timedelta(microseconds=1)


class Categories:
    """kas_harian 카테고리 (원본 시스템 명칭 유지)"""

    TRANSFER_OUT: str = "Transfer Keluar"
    TRANSFER_IN: str = "Transfer Masuk"
    SALE: str = "Penjualan"
    PURCHASE: str = "Pembelian"
    RECEIVABLE_PAYMENT: str = "Pembayaran Piutang"
    PAYABLE_PAYMENT: str = "Pembayaran Hutang"
    CONSIGNMENT_SALE: str = "Penjualan Konsinyasi"
