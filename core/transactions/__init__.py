"""
거래 레코드

penjualan / pembelian, konsinyasi, gudang_unloading 저장소.
여러 컴포넌트를 움직이는 작업은 core.coordinator가 담당한다.
"""

from core.transactions.repository import (
    ConsignmentRepository,
    StockTransferRepository,
    TradeRepository,
    trade_tables,
)
from core.transactions.types import (
    Consignment,
    ConsignmentLine,
    ConsignmentReturn,
    ConsignmentSale,
    LineItem,
    StockTransfer,
    TradeRecord,
    TransferItem,
)

__all__ = [
    "TradeRepository",
    "ConsignmentRepository",
    "StockTransferRepository",
    "trade_tables",
    "TradeRecord",
    "LineItem",
    "Consignment",
    "ConsignmentLine",
    "ConsignmentReturn",
    "ConsignmentSale",
    "StockTransfer",
    "TransferItem",
]
