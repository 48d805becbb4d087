"""
Compensation Coordinator

kas / stok / piutang·hutang을 함께 움직이는 작업을 Saga로 실행한다.

등록 작업:
- cash_entry / cash_update / cash_reverse / cash_transfer
- stock_transfer
- debt_payment / payment_reversal
- consignment_sale
- post_sale / post_purchase
- cancel_transaction
"""

from core.coordinator.coordinator import CompensationCoordinator

__all__ = [
    "CompensationCoordinator",
]
