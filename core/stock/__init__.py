"""
Stock Ledger

produk x cabang 재고 수량(stok_cabang)과 append-only 이동 기록(stock_barang).

사용 예시:
```python
from core.stock import StockLedger

stock = StockLedger(db)
await stock.increment(produk_id, cabang_id, "100", unit_cost="12500")
movement = await stock.decrement(produk_id, cabang_id, "30")

# 보상: 기록을 지우지 않고 역방향 이동 추가
await stock.reverse_movement(movement.id)
```
"""

from core.stock.catalog import Catalog
from core.stock.conversion import ConversionResult, ConversionType, convert_quantity
from core.stock.ledger import StockLedger
from core.stock.types import Branch, Product, StockDrift, StockMovement, StockPosition

__all__ = [
    "StockLedger",
    "Catalog",
    "Product",
    "Branch",
    "StockPosition",
    "StockMovement",
    "StockDrift",
    "ConversionResult",
    "ConversionType",
    "convert_quantity",
]
