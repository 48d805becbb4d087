"""
Ledger Engine

kas / kas_harian 저장 및 running balance chain 관리.

불변식:
- 계좌별 kas_harian을 (created_at, id) 순으로 정렬하면
  saldo_setelah[i] = saldo_setelah[i-1] ± jumlah[i], saldo_setelah[-1] = saldo_awal
- kas.saldo = 마지막 엔트리의 saldo_setelah (엔트리가 없으면 saldo_awal)
- kas.saldo는 이 모듈만 쓴다

각 public 변경 메서드는 계좌 키 잠금 + 로컬 트랜잭션 1개로 실행된다.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from core.constants import Categories, Defaults, Timing
from core.errors import (
    ConcurrencyConflictError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from core.ledger.types import (
    Account,
    ChainBreak,
    DailySummary,
    LedgerEntry,
    TransferResult,
)
from core.saga import Saga, SagaContext
from core.storage.reconciliation_store import ReconciliationStore
from core.types import EntryDirection, OperationName, Ref
from core.utils.ids import new_id
from core.utils.locks import KeyedLock
from core.utils.money import ZERO, dec_or_zero, require_positive, to_decimal
from core.utils.timezone import format_ts, next_ts, now_utc, parse_business_date, parse_ts

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


class LedgerEngine:
    """Ledger Engine

    kas 계좌 잔액과 kas_harian chain을 함께 관리하는 클래스.
    kas.saldo는 chain의 projection으로만 갱신됨.

    Args:
        db: SQLite 어댑터
        locks: 키 잠금 레지스트리 (프로세스 내 공유)
        reconciliation: 이체 보상 실패 시 마커 저장소
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        locks: KeyedLock | None = None,
        reconciliation: ReconciliationStore | None = None,
    ):
        self.db = db
        self.locks = locks or KeyedLock()
        self.reconciliation = reconciliation or ReconciliationStore(db)

    # =========================================================================
    # 계좌
    # =========================================================================

    async def create_account(
        self,
        name: str,
        opening_balance: Decimal | int | str = ZERO,
        account_id: str | None = None,
    ) -> Account:
        """kas 계좌 생성

        Args:
            name: 표시 이름
            opening_balance: 원장 이전 잔액 (seed)
            account_id: 지정 ID (None이면 자동 생성)

        Returns:
            생성된 Account
        """
        if not name or not name.strip():
            raise ValidationError("nama_kas is required", {"field": "nama_kas"})
        seed = to_decimal(opening_balance, "saldo_awal")
        if seed < ZERO:
            raise ValidationError("saldo_awal cannot be negative", {"saldo_awal": seed})

        account_id = account_id or new_id("kas")
        now = format_ts(now_utc())

        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO kas (id, nama_kas, saldo_awal, saldo, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, 1, ?, ?)
                """,
                (account_id, name.strip(), str(seed), str(seed), now, now),
            )

        logger.info(f"Kas created: {account_id} ({name})")
        return await self.get_account(account_id)

    async def get_account(self, account_id: str) -> Account:
        """계좌 조회

        Raises:
            NotFoundError: 계좌가 없는 경우
        """
        row = await self.db.fetchone_dict("SELECT * FROM kas WHERE id = ?", (account_id,))
        if row is None:
            raise NotFoundError("kas", account_id)
        return Account.from_row(row)

    async def list_accounts(self) -> list[Account]:
        """전체 계좌 목록"""
        rows = await self.db.fetchall_dict("SELECT * FROM kas ORDER BY nama_kas ASC")
        return [Account.from_row(r) for r in rows]

    async def delete_account(self, account_id: str) -> None:
        """계좌 삭제 (엔트리가 없을 때만)

        Raises:
            ValidationError: 엔트리가 남아있는 경우
        """
        async with self.locks.hold(("kas", account_id)):
            await self.get_account(account_id)
            row = await self.db.fetchone(
                "SELECT COUNT(*) FROM kas_harian WHERE kas_id = ?",
                (account_id,),
            )
            if row and row[0] > 0:
                raise ValidationError(
                    f"Kas {account_id} still has {row[0]} ledger entries",
                    {"account_id": account_id, "entries": row[0]},
                )
            async with self.db.transaction():
                await self.db.execute("DELETE FROM kas WHERE id = ?", (account_id,))
        logger.info(f"Kas deleted: {account_id}")

    # =========================================================================
    # 엔트리 조회
    # =========================================================================

    async def get_entry(self, entry_id: str) -> LedgerEntry:
        """엔트리 조회

        Raises:
            NotFoundError: 엔트리가 없는 경우
        """
        row = await self.db.fetchone_dict("SELECT * FROM kas_harian WHERE id = ?", (entry_id,))
        if row is None:
            raise NotFoundError("kas_harian", entry_id)
        return LedgerEntry.from_row(row)

    async def list_entries(
        self,
        account_id: str,
        business_date: date | str | None = None,
    ) -> list[LedgerEntry]:
        """계좌 엔트리 목록 (chain 순서)

        Args:
            account_id: 계좌 ID
            business_date: 지정 시 해당 영업일 엔트리만
        """
        if business_date is None:
            rows = await self.db.fetchall_dict(
                """
                SELECT * FROM kas_harian WHERE kas_id = ?
                ORDER BY created_at ASC, id ASC
                """,
                (account_id,),
            )
        else:
            rows = await self.db.fetchall_dict(
                """
                SELECT * FROM kas_harian WHERE kas_id = ? AND tanggal = ?
                ORDER BY created_at ASC, id ASC
                """,
                (account_id, parse_business_date(business_date).isoformat()),
            )
        return [LedgerEntry.from_row(r) for r in rows]

    async def find_entries_by_ref(self, ref: Ref) -> list[LedgerEntry]:
        """원천 레코드로 엔트리 조회"""
        rows = await self.db.fetchall_dict(
            """
            SELECT * FROM kas_harian WHERE ref_type = ? AND ref_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (ref.ref_type, ref.ref_id),
        )
        return [LedgerEntry.from_row(r) for r in rows]

    async def last_balance(self, account_id: str) -> Decimal:
        """마지막 엔트리의 running balance (없으면 seed)"""
        account = await self.get_account(account_id)
        last = await self._last_entry_row(account_id)
        if last is None:
            return account.opening_balance
        return dec_or_zero(last["saldo_setelah"])

    # =========================================================================
    # Append
    # =========================================================================

    async def append(
        self,
        account_id: str,
        direction: EntryDirection | str,
        amount: Decimal | int | str,
        category: str,
        business_date: date | str | None = None,
        note: str | None = None,
        ref: Ref | None = None,
        allow_negative: bool = False,
        not_before: datetime | None = None,
    ) -> LedgerEntry:
        """엔트리 추가

        running_balance = 마지막 엔트리 잔액 + signed(amount)
        순서 키는 생성 시각이며 business_date(tanggal)는 별도 보존.

        Args:
            account_id: 계좌 ID
            direction: masuk / keluar
            amount: 금액 (> 0)
            category: 카테고리
            business_date: 영업일 (None이면 오늘, WIB)
            note: 메모
            ref: 원천 업무 레코드
            allow_negative: keluar로 잔액이 음수가 되는 것을 허용
            not_before: created_at 하한 (Transfer 입금 leg)

        Returns:
            저장된 LedgerEntry

        Raises:
            InvalidAmountError: amount ≤ 0
            NotFoundError: 계좌 없음
            InsufficientFundsError: keluar 후 잔액 < 0
        """
        direction = EntryDirection(direction)
        amount = require_positive(amount, "jumlah")
        if not category:
            raise ValidationError("kategori is required", {"field": "kategori"})
        tanggal = parse_business_date(business_date)

        async with self.locks.hold(("kas", account_id)):
            async with self.db.transaction():
                account = await self.get_account(account_id)
                last = await self._last_entry_row(account_id)
                previous = (
                    dec_or_zero(last["saldo_setelah"]) if last else account.opening_balance
                )
                running = previous + amount * direction.sign

                if direction == EntryDirection.OUT and running < ZERO and not allow_negative:
                    raise InsufficientFundsError(account_id, previous, amount)

                created_at = next_ts(
                    parse_ts(last["created_at"]) if last else None,
                    Timing.MIN_TICK,
                    not_before,
                )
                entry_id = new_id("kh")

                await self.db.execute(
                    """
                    INSERT INTO kas_harian (
                        id, kas_id, tanggal, jenis_transaksi, kategori, keterangan,
                        jumlah, saldo_setelah, ref_type, ref_id, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry_id,
                        account_id,
                        tanggal.isoformat(),
                        direction.value,
                        category,
                        note,
                        str(amount),
                        str(running),
                        ref.ref_type if ref else None,
                        ref.ref_id if ref else None,
                        format_ts(created_at),
                    ),
                )
                await self._write_balance(account, running)

        logger.info(
            f"Kas entry appended: {entry_id} {direction.value} {amount} → {running}",
            extra={"kas_id": account_id, "entry_id": entry_id},
        )
        return await self.get_entry(entry_id)

    # =========================================================================
    # Reverse / Delete
    # =========================================================================

    async def reverse(self, entry_id: str, floor: Decimal | None = None) -> LedgerEntry:
        """엔트리 삭제 + 이후 엔트리 cascade 재계산

        이후 엔트리 각각에 삭제된 엔트리의 역 delta를 적용하고,
        계좌 잔액을 마지막 남은 엔트리 잔액(없으면 seed)으로 갱신한다.

        Args:
            entry_id: 삭제할 엔트리
            floor: masuk 엔트리 삭제 후 허용되는 최저 running balance
                (None이면 검사 안 함). 계좌 잠금과 트랜잭션 안에서 검사한다.

        Returns:
            삭제된 LedgerEntry

        Raises:
            NotFoundError: 엔트리가 없는 경우
            InsufficientFundsError: 삭제 후 최저 잔액이 floor 미만
        """
        account_id = await self._account_of(entry_id)

        async with self.locks.hold(("kas", account_id)):
            async with self.db.transaction():
                row = await self._require_entry_row(entry_id)
                entry = LedgerEntry.from_row(row)
                account = await self.get_account(account_id)

                later = await self._later_rows(account_id, row)
                if floor is not None and entry.direction == EntryDirection.IN:
                    lowest = await self._lowest_without(entry, row, account, later)
                    if lowest < floor:
                        raise InsufficientFundsError(
                            account_id,
                            lowest + entry.amount,
                            entry.amount,
                            f"Removing entry {entry_id} would take the balance to {lowest}",
                        )

                await self.db.execute("DELETE FROM kas_harian WHERE id = ?", (entry_id,))

                delta = -entry.signed_amount
                for later_row in later:
                    await self.db.execute(
                        "UPDATE kas_harian SET saldo_setelah = ? WHERE id = ?",
                        (str(dec_or_zero(later_row["saldo_setelah"]) + delta), later_row["id"]),
                    )

                last = await self._last_entry_row(account_id)
                balance = dec_or_zero(last["saldo_setelah"]) if last else account.opening_balance
                await self._write_balance(account, balance)

        logger.info(
            f"Kas entry reversed: {entry_id} ({len(later)} later entries recomputed) → {balance}",
            extra={"kas_id": account_id, "entry_id": entry_id},
        )
        return entry

    async def preview_reverse(self, entry_id: str) -> Decimal:
        """삭제 시 이후 엔트리 중 최저 running balance 미리 계산 (쓰기 없음)

        취소 작업의 사전 검증용. 이후 엔트리가 없으면 삭제 후 계좌 잔액.
        """
        row = await self._require_entry_row(entry_id)
        entry = LedgerEntry.from_row(row)
        account = await self.get_account(entry.account_id)
        later = await self._later_rows(entry.account_id, row)
        return await self._lowest_without(entry, row, account, later)

    async def preview_reverse_many(self, entry_ids: list[str]) -> dict[str, Decimal]:
        """여러 엔트리를 함께 삭제할 때 계좌별 최저 running balance (쓰기 없음)

        같은 계좌 엔트리의 delta는 누적되어 이후 엔트리에 함께 적용된다.
        삭제 지점 이후 남는 엔트리가 없으면 삭제 후 계좌 잔액.

        Returns:
            {account_id: 최저 잔액}
        """
        removing = {entry_id: await self.get_entry(entry_id) for entry_id in entry_ids}
        lowest_by_account: dict[str, Decimal] = {}

        for account_id in sorted({e.account_id for e in removing.values()}):
            account = await self.get_account(account_id)
            removed = ZERO
            started = False
            last_kept = account.opening_balance
            lowest: Decimal | None = None

            async for row in self._iter_chain(account_id):
                entry = removing.get(row["id"])
                if entry is not None:
                    removed += entry.signed_amount
                    started = True
                    continue
                last_kept = dec_or_zero(row["saldo_setelah"]) - removed
                if started:
                    lowest = last_kept if lowest is None else min(lowest, last_kept)

            lowest_by_account[account_id] = last_kept if lowest is None else lowest

        return lowest_by_account

    async def _lowest_without(
        self,
        entry: LedgerEntry,
        row: dict[str, Any],
        account: Account,
        later: list[dict[str, Any]],
    ) -> Decimal:
        if not later:
            return await self._previous_balance(entry.account_id, row, account)
        delta = -entry.signed_amount
        return min(dec_or_zero(r["saldo_setelah"]) + delta for r in later)

    # =========================================================================
    # Update
    # =========================================================================

    async def update(
        self,
        entry_id: str,
        direction: EntryDirection | str | None = None,
        amount: Decimal | int | str | None = None,
        category: str | None = None,
        note: str | None = None,
        business_date: date | str | None = None,
    ) -> LedgerEntry:
        """엔트리 수정

        delta = new_signed - old_signed 를 수정 엔트리와 이후 엔트리에 적용.
        순서 키(created_at)는 바뀌지 않는다.

        Raises:
            NotFoundError: 엔트리 없음
            InvalidAmountError: amount ≤ 0
            InsufficientFundsError: 영향받는 running balance 중 하나라도 음수가 되는 경우
        """
        account_id = await self._account_of(entry_id)

        async with self.locks.hold(("kas", account_id)):
            async with self.db.transaction():
                row = await self._require_entry_row(entry_id)
                old = LedgerEntry.from_row(row)
                account = await self.get_account(account_id)

                new_direction = EntryDirection(direction) if direction is not None else old.direction
                new_amount = require_positive(amount, "jumlah") if amount is not None else old.amount
                delta = new_amount * new_direction.sign - old.signed_amount

                later = await self._later_rows(account_id, row)
                affected = [row] + later
                if delta < ZERO:
                    floor = min(dec_or_zero(r["saldo_setelah"]) for r in affected)
                    if floor + delta < ZERO:
                        raise InsufficientFundsError(
                            account_id,
                            floor,
                            -delta,
                            f"Update would make the running balance negative "
                            f"(lowest {floor}, additional outflow {-delta})",
                        )

                await self.db.execute(
                    """
                    UPDATE kas_harian
                    SET jenis_transaksi = ?, jumlah = ?, saldo_setelah = ?,
                        kategori = ?, keterangan = ?, tanggal = ?
                    WHERE id = ?
                    """,
                    (
                        new_direction.value,
                        str(new_amount),
                        str(old.running_balance + delta),
                        category if category is not None else old.category,
                        note if note is not None else old.note,
                        (
                            parse_business_date(business_date).isoformat()
                            if business_date is not None
                            else old.business_date.isoformat()
                        ),
                        entry_id,
                    ),
                )

                if delta != ZERO:
                    for later_row in later:
                        await self.db.execute(
                            "UPDATE kas_harian SET saldo_setelah = ? WHERE id = ?",
                            (
                                str(dec_or_zero(later_row["saldo_setelah"]) + delta),
                                later_row["id"],
                            ),
                        )
                    await self._write_balance(account, account.balance + delta)

        logger.info(
            f"Kas entry updated: {entry_id} delta={delta}",
            extra={"kas_id": account_id, "entry_id": entry_id},
        )
        return await self.get_entry(entry_id)

    # =========================================================================
    # Transfer
    # =========================================================================

    async def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal | int | str,
        business_date: date | str | None = None,
        note: str | None = None,
    ) -> TransferResult:
        """계좌 이체 (출금 leg → 입금 leg)

        입금 leg의 created_at은 출금 leg + 1ms 이상.
        입금 leg 실패 시 출금 leg를 reverse 한다.

        Raises:
            ValidationError: 같은 계좌
            InvalidAmountError: amount ≤ 0
            NotFoundError: 계좌 없음
            InsufficientFundsError: 출금 계좌 잔액 < amount
            PartialFailureError: 입금 leg 실패 (출금 leg 보상 결과 포함)
        """
        if from_account_id == to_account_id:
            raise ValidationError(
                "Cannot transfer to the same kas",
                {"from_account_id": from_account_id, "to_account_id": to_account_id},
            )
        amount = require_positive(amount, "jumlah")
        tanggal = parse_business_date(business_date)

        source = await self.get_account(from_account_id)
        destination = await self.get_account(to_account_id)
        if source.balance < amount:
            raise InsufficientFundsError(from_account_id, source.balance, amount)

        transfer_id = new_id("trf")
        ref = Ref(ref_type="transfer", ref_id=transfer_id)
        base_note = note or "Transfer"

        async def _out(ctx: SagaContext) -> LedgerEntry:
            return await self.append(
                from_account_id,
                EntryDirection.OUT,
                amount,
                Categories.TRANSFER_OUT,
                tanggal,
                f"{base_note} (ke {destination.name})",
                ref,
            )

        async def _undo_out(ctx: SagaContext, entry: LedgerEntry) -> None:
            await self.reverse(entry.id)

        async def _in(ctx: SagaContext) -> LedgerEntry:
            out_entry: LedgerEntry = ctx.results["kas_out"]
            return await self.append(
                to_account_id,
                EntryDirection.IN,
                amount,
                Categories.TRANSFER_IN,
                tanggal,
                f"{base_note} (dari {source.name})",
                ref,
                not_before=out_entry.created_at + Timing.TRANSFER_LEG_OFFSET,
            )

        saga = Saga(
            OperationName.CASH_TRANSFER.value,
            reconciliation=self.reconciliation,
            payload={
                "from_account_id": from_account_id,
                "to_account_id": to_account_id,
                "amount": amount,
                "tanggal": tanggal,
            },
            entity_type="transfer",
            entity_id=transfer_id,
        )
        saga.step("kas_out", _out, _undo_out)
        saga.step("kas_in", _in)
        ctx = await saga.run()

        logger.info(
            f"Kas transfer: {from_account_id} → {to_account_id} {amount}",
            extra={"transfer_id": transfer_id},
        )
        return TransferResult(out_entry=ctx.results["kas_out"], in_entry=ctx.results["kas_in"])

    # =========================================================================
    # 일일 요약
    # =========================================================================

    async def daily_summary(self, account_id: str, business_date: date | str) -> DailySummary:
        """영업일 기준 일일 요약

        opening: tanggal < 해당일인 마지막 엔트리(created_at 순) 잔액, 없으면 seed
        closing: opening + total_in - total_out
        """
        tanggal = parse_business_date(business_date)
        account = await self.get_account(account_id)

        before = await self.db.fetchone(
            """
            SELECT saldo_setelah FROM kas_harian
            WHERE kas_id = ? AND tanggal < ?
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (account_id, tanggal.isoformat()),
        )
        opening = dec_or_zero(before[0]) if before else account.opening_balance

        entries = await self.list_entries(account_id, tanggal)
        total_in = sum(
            (e.amount for e in entries if e.direction == EntryDirection.IN), ZERO
        )
        total_out = sum(
            (e.amount for e in entries if e.direction == EntryDirection.OUT), ZERO
        )

        return DailySummary(
            account_id=account_id,
            business_date=tanggal,
            opening_balance=opening,
            total_in=total_in,
            total_out=total_out,
            closing_balance=opening + total_in - total_out,
            entry_count=len(entries),
        )

    # =========================================================================
    # Chain 검증 / 재구성
    # =========================================================================

    async def verify_chain(self, account_id: str) -> list[ChainBreak]:
        """running balance chain 검증 (쓰기 없음)

        Returns:
            불일치 목록 (비어 있으면 정상)
        """
        account = await self.get_account(account_id)
        breaks: list[ChainBreak] = []
        expected = account.opening_balance

        async for row in self._iter_chain(account_id):
            expected += dec_or_zero(row["jumlah"]) * EntryDirection(row["jenis_transaksi"]).sign
            actual = dec_or_zero(row["saldo_setelah"])
            if actual != expected:
                breaks.append(ChainBreak(account_id, row["id"], expected, actual))

        if account.balance != expected:
            breaks.append(ChainBreak(account_id, None, expected, account.balance))
        return breaks

    async def rebuild_chain(self, account_id: str) -> Decimal:
        """seed부터 running balance 전체 재계산 (수동 복구용)

        Returns:
            재계산된 계좌 잔액
        """
        async with self.locks.hold(("kas", account_id)):
            async with self.db.transaction():
                account = await self.get_account(account_id)
                running = account.opening_balance
                fixed = 0
                rows = await self.db.fetchall_dict(
                    """
                    SELECT id, jenis_transaksi, jumlah, saldo_setelah FROM kas_harian
                    WHERE kas_id = ? ORDER BY created_at ASC, id ASC
                    """,
                    (account_id,),
                )
                for row in rows:
                    running += dec_or_zero(row["jumlah"]) * EntryDirection(row["jenis_transaksi"]).sign
                    if dec_or_zero(row["saldo_setelah"]) != running:
                        fixed += 1
                        await self.db.execute(
                            "UPDATE kas_harian SET saldo_setelah = ? WHERE id = ?",
                            (str(running), row["id"]),
                        )
                if account.balance != running:
                    await self._write_balance(account, running)

        logger.warning(f"Kas chain rebuilt: {account_id} ({fixed} entries fixed) → {running}")
        return running

    # =========================================================================
    # 내부 헬퍼
    # =========================================================================

    async def _account_of(self, entry_id: str) -> str:
        row = await self.db.fetchone("SELECT kas_id FROM kas_harian WHERE id = ?", (entry_id,))
        if row is None:
            raise NotFoundError("kas_harian", entry_id)
        return row[0]

    async def _require_entry_row(self, entry_id: str) -> dict[str, Any]:
        row = await self.db.fetchone_dict("SELECT * FROM kas_harian WHERE id = ?", (entry_id,))
        if row is None:
            raise NotFoundError("kas_harian", entry_id)
        return row

    async def _last_entry_row(self, account_id: str) -> dict[str, Any] | None:
        return await self.db.fetchone_dict(
            """
            SELECT * FROM kas_harian WHERE kas_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (account_id,),
        )

    async def _later_rows(self, account_id: str, row: dict[str, Any]) -> list[dict[str, Any]]:
        """(created_at, id) 기준 이후 엔트리"""
        return await self.db.fetchall_dict(
            """
            SELECT id, saldo_setelah FROM kas_harian
            WHERE kas_id = ?
              AND (created_at > ? OR (created_at = ? AND id > ?))
            ORDER BY created_at ASC, id ASC
            """,
            (account_id, row["created_at"], row["created_at"], row["id"]),
        )

    async def _previous_balance(
        self,
        account_id: str,
        row: dict[str, Any],
        account: Account,
    ) -> Decimal:
        """엔트리 직전 running balance (없으면 seed)"""
        prev = await self.db.fetchone(
            """
            SELECT saldo_setelah FROM kas_harian
            WHERE kas_id = ?
              AND (created_at < ? OR (created_at = ? AND id < ?))
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (account_id, row["created_at"], row["created_at"], row["id"]),
        )
        return dec_or_zero(prev[0]) if prev else account.opening_balance

    async def _iter_chain(self, account_id: str):
        """chain 페이지 단위 순회"""
        offset = 0
        while True:
            rows = await self.db.fetchall_dict(
                """
                SELECT id, jenis_transaksi, jumlah, saldo_setelah FROM kas_harian
                WHERE kas_id = ? ORDER BY created_at ASC, id ASC
                LIMIT ? OFFSET ?
                """,
                (account_id, Defaults.CHAIN_PAGE_SIZE, offset),
            )
            for row in rows:
                yield row
            if len(rows) < Defaults.CHAIN_PAGE_SIZE:
                return
            offset += len(rows)

    async def _write_balance(self, account: Account, balance: Decimal) -> None:
        """kas.saldo 갱신 (version 검사 + 증가)

        Raises:
            ConcurrencyConflictError: 다른 writer가 먼저 변경한 경우
        """
        cursor = await self.db.execute(
            """
            UPDATE kas SET saldo = ?, version = version + 1, updated_at = ?
            WHERE id = ? AND version = ?
            """,
            (str(balance), format_ts(now_utc()), account.id, account.version),
        )
        if cursor.rowcount == 0:
            raise ConcurrencyConflictError("kas", account.id, account.version)
        account.balance = balance
        account.version += 1
