"""
키 단위 잠금

같은 kas 계좌 / 같은 (produk, cabang) 재고 / 같은 채무에 대한 변경을 직렬화.
프로세스 내 asyncio.Lock 기반이며, 프로세스 간 충돌은 version 컬럼이 잡는다.

키 네임스페이스:
- ("kas", kas_id): LedgerEngine 내부에서 사용
- ("stok", produk_id, cabang_id): StockLedger 내부에서 사용
- ("debt", kind, debt_id), ("konsinyasi", detail_id), ("trx", kind, id):
  Coordinator가 여러 단계에 걸쳐 보유

Coordinator가 잡는 키와 컴포넌트가 잡는 키는 겹치지 않는다 (asyncio.Lock은 재진입 불가).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable

logger = logging.getLogger(__name__)


class KeyedLock:
    """키별 asyncio.Lock 레지스트리

    사용 예시:
    ```python
    locks = KeyedLock()
    async with locks.hold(("kas", "kas-1"), ("kas", "kas-2")):
        ...
    ```
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    def _get(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def locked(self, key: Hashable) -> bool:
        """키가 잠겨 있는지"""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *keys: Hashable) -> AsyncIterator[None]:
        """여러 키를 정렬된 순서로 획득 (교착 방지)

        중복 키는 한 번만 획득한다.
        """
        ordered = sorted(set(keys), key=repr)
        acquired: list[Hashable] = []
        try:
            for key in ordered:
                self._waiters[key] = self._waiters.get(key, 0) + 1
                try:
                    await self._get(key).acquire()
                finally:
                    self._waiters[key] -= 1
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                # 대기자가 없으면 정리 (레지스트리 무한 증가 방지)
                if self._waiters.get(key, 0) == 0 and not self._locks[key].locked():
                    self._locks.pop(key, None)
                    self._waiters.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)
