"""
API 라우트 패키지

각 기능별 라우터 모듈:
- health: 헬스 체크
- kas: 계좌 / kas_harian / 이체
- debts: piutang / hutang cicilan
- stock: produk / cabang / 재고 / unloading / konsinyasi
- trades: 판매 / 구매 draft, 반영, 취소
- operations: 이름 있는 Coordinator 작업 실행
- reconciliation: 수동 복구 마커 / drift 검사
"""
