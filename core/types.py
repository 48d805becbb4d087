"""
타입 정의 모듈

Enum, Dataclass 등 핵심 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
DB 저장값은 원본 시스템(인도네시아어) 명칭을 그대로 사용
"""

from dataclasses import dataclass
from enum import Enum


class RunMode(str, Enum):
    """실행 모드 (운영 / 테스트)"""

    PRODUCTION = "production"
    TESTING = "testing"


class EntryDirection(str, Enum):
    """kas_harian 방향"""

    IN = "masuk"
    OUT = "keluar"

    @property
    def sign(self) -> int:
        """부호 (+1 / -1)"""
        return 1 if self == EntryDirection.IN else -1

    @property
    def opposite(self) -> "EntryDirection":
        """반대 방향"""
        return EntryDirection.OUT if self == EntryDirection.IN else EntryDirection.IN


class DebtKind(str, Enum):
    """채권/채무 종류"""

    RECEIVABLE = "piutang"  # 고객이 갚을 돈 (판매)
    PAYABLE = "hutang"      # 공급사에 갚을 돈 (구매)


class DebtStatus(str, Enum):
    """채권/채무 상태"""

    UNPAID = "belum_lunas"
    PARTIAL = "cicil"
    PAID = "lunas"


class PaymentTerms(str, Enum):
    """결제 조건"""

    CASH = "tunai"
    CREDIT = "kredit"


class ReturnCondition(str, Enum):
    """위탁 반품 상태 (rusak이면 cabang 재고에서 차감)"""

    GOOD = "baik"
    DAMAGED = "rusak"


class TransactionKind(str, Enum):
    """재고/현금이 움직이는 거래 종류"""

    SALE = "penjualan"
    PURCHASE = "pembelian"
    CONSIGNMENT_SALE = "penjualan_konsinyasi"
    STOCK_TRANSFER = "unloading"


class TransactionState(str, Enum):
    """재고 거래 상태

    전이 규칙:
    - DRAFT → COMMITTED: 수량 반영
    - DRAFT → CANCELLED: 반영 전 취소
    - COMMITTED → CANCELLED: 수량 역반영
    """

    DRAFT = "draft"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class ErrorKind(str, Enum):
    """기계 판독용 오류 종류"""

    VALIDATION = "validation"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_STATE = "invalid_state"
    NOT_FOUND = "not_found"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_STOCK = "insufficient_stock"
    OVERPAYMENT = "overpayment"
    CONCURRENCY_CONFLICT = "concurrency_conflict"
    PARTIAL_FAILURE = "partial_failure"
    INTERNAL = "internal"


class OperationName(str, Enum):
    """Coordinator 작업 이름"""

    CASH_ENTRY = "cash_entry"
    CASH_UPDATE = "cash_update"
    CASH_REVERSE = "cash_reverse"
    CASH_TRANSFER = "cash_transfer"
    STOCK_TRANSFER = "stock_transfer"
    DEBT_PAYMENT = "debt_payment"
    PAYMENT_REVERSAL = "payment_reversal"
    CONSIGNMENT_SALE = "consignment_sale"
    CONSIGNMENT_RETURN = "consignment_return"
    STOCK_ADJUST = "stock_adjust"
    POST_SALE = "post_sale"
    POST_PURCHASE = "post_purchase"
    CANCEL_TRANSACTION = "cancel_transaction"


class ReconciliationStatus(str, Enum):
    """수동 정합성 복구 상태"""

    OPEN = "open"
    RESOLVED = "resolved"


class ActorKind(str, Enum):
    """행위자 종류"""

    USER = "USER"
    SYSTEM = "SYSTEM"


@dataclass(frozen=True)
class Ref:
    """원천 업무 레코드 참조 (불변)

    kas_harian / stock_barang 행이 어떤 거래에서 생겼는지 기록
    """

    ref_type: str
    ref_id: str

    @classmethod
    def of(cls, kind: "TransactionKind | str", ref_id: str) -> "Ref":
        """Ref 생성 헬퍼

        Enum 또는 문자열 모두 허용
        """
        return cls(
            ref_type=kind.value if isinstance(kind, Enum) else kind,
            ref_id=ref_id,
        )


@dataclass(frozen=True)
class Actor:
    """행위자 (불변)

    감사 로그 기록자를 식별
    """

    kind: str
    id: str

    @classmethod
    def user(cls, user_id: str) -> "Actor":
        """사용자 Actor 생성"""
        return cls(kind=ActorKind.USER.value, id=f"user:{user_id}")

    @classmethod
    def system(cls, system_name: str) -> "Actor":
        """시스템 Actor 생성"""
        return cls(kind=ActorKind.SYSTEM.value, id=f"system:{system_name}")

    @classmethod
    def web(cls, component: str) -> "Actor":
        """Web Actor 생성"""
        return cls(kind=ActorKind.USER.value, id=f"web:{component}")
