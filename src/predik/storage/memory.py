"""In-process ledger store.

Holds every table as a dict keyed by id. Transactions are serialized with a
lock and rolled back by restoring a snapshot taken on entry, so concurrent
callers observe the same all-or-nothing behaviour as the SQL backend.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from predik.errors import ConflictError, DuplicateCompletionError
from predik.storage.base import (
    CompletedTask,
    CompletionRecord,
    LeaderboardSummary,
    LeaderboardWindow,
    LedgerStore,
    PlatformTotals,
    RankedEntry,
    RecentCompletion,
    StakingRecord,
    StoreSession,
    TaskRecord,
    TaskStat,
    TransactionRecord,
    UserRecord,
    UserTaskStatus,
    XPGainer,
    XPTransactionRecord,
)


@dataclass
class _Prediction:
    id: int
    user_id: int
    prediction_type: str
    asset_symbol: str
    timestamp: datetime
    outcome: str | None


@dataclass
class _History:
    id: int
    user_id: int
    task_id: int
    xp_earned: int
    completed_at: datetime


@dataclass
class _Transaction:
    id: int
    user_id: int
    transaction_type: str
    transaction_hash: str | None
    amount: Decimal | None
    token_symbol: str | None
    status: str
    created_at: datetime
    completed_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class _State:
    users: dict[int, UserRecord] = field(default_factory=dict)
    tasks: dict[int, TaskRecord] = field(default_factory=dict)
    completions: dict[int, CompletionRecord] = field(default_factory=dict)
    history: dict[int, _History] = field(default_factory=dict)
    xp_transactions: dict[int, XPTransactionRecord] = field(default_factory=dict)
    predictions: dict[int, _Prediction] = field(default_factory=dict)
    transactions: dict[int, _Transaction] = field(default_factory=dict)
    staking: dict[int, StakingRecord] = field(default_factory=dict)
    ids: dict[str, int] = field(default_factory=dict)

    def next_id(self, table: str) -> int:
        self.ids[table] = self.ids.get(table, 0) + 1
        return self.ids[table]


def _contains(value: str | None, needle: str) -> bool:
    return value is not None and needle in value.lower()


class MemoryStoreSession(StoreSession):
    """StoreSession over a ``_State``; returns copies so callers can't mutate it."""

    def __init__(self, state: _State) -> None:
        self.state = state

    def _user_by_wallet(self, wallet_address: str) -> UserRecord | None:
        return next((u for u in self.state.users.values() if u.wallet_address == wallet_address), None)

    def _tx_record(self, tx: _Transaction) -> TransactionRecord:
        user = self.state.users[tx.user_id]
        return TransactionRecord(
            id=tx.id,
            user_id=tx.user_id,
            wallet_address=user.wallet_address,
            username=user.username,
            transaction_type=tx.transaction_type,
            transaction_hash=tx.transaction_hash,
            amount=tx.amount,
            token_symbol=tx.token_symbol,
            status=tx.status,
            created_at=tx.created_at,
            completed_at=tx.completed_at,
            updated_at=tx.updated_at,
        )

    # --- Users ---

    async def get_user(self, wallet_address: str, *, for_update: bool = False) -> UserRecord | None:
        user = self._user_by_wallet(wallet_address)
        return copy.deepcopy(user) if user else None

    async def list_users(self, limit: int, offset: int) -> list[UserRecord]:
        users = sorted(self.state.users.values(), key=lambda u: (-u.xp, u.created_at, u.id))
        return copy.deepcopy(users[offset : offset + limit])

    async def search_users(self, query: str, limit: int) -> list[UserRecord]:
        needle = query.lower()
        users = [
            u for u in self.state.users.values() if _contains(u.username, needle) or _contains(u.wallet_address, needle)
        ]
        users.sort(key=lambda u: (-u.xp, u.id))
        return copy.deepcopy(users[:limit])

    async def insert_user(
        self,
        wallet_address: str,
        username: str,
        preferred_assets: list[str],
        trading_type: str,
        now: datetime,
    ) -> UserRecord:
        if self._user_by_wallet(wallet_address) is not None:
            msg = "User already exists"
            raise ConflictError(msg)
        user = UserRecord(
            id=self.state.next_id("users"),
            wallet_address=wallet_address,
            username=username,
            preferred_assets=list(preferred_assets),
            trading_type=trading_type,
            created_at=now,
            updated_at=now,
        )
        self.state.users[user.id] = user
        return copy.deepcopy(user)

    async def update_user(self, user_id: int, changes: Mapping[str, Any], now: datetime) -> UserRecord:
        user = replace(self.state.users[user_id], **changes, updated_at=now)
        self.state.users[user_id] = user
        return copy.deepcopy(user)

    async def delete_user(self, user_id: int) -> None:
        s = self.state
        tx_ids = {t.id for t in s.transactions.values() if t.user_id == user_id}
        for table in (s.completions, s.history, s.xp_transactions, s.predictions, s.transactions):
            for key in [k for k, row in table.items() if row.user_id == user_id]:
                del table[key]
        for key in [k for k, row in s.staking.items() if row.user_id == user_id or row.transaction_id in tx_ids]:
            del s.staking[key]
        s.users.pop(user_id, None)

    # --- Tasks ---

    async def get_task(self, task_id: int) -> TaskRecord | None:
        task = self.state.tasks.get(task_id)
        return copy.deepcopy(task) if task else None

    async def list_tasks(self) -> list[TaskRecord]:
        return copy.deepcopy(sorted(self.state.tasks.values(), key=lambda t: t.id))

    async def insert_task(self, values: Mapping[str, Any], now: datetime) -> TaskRecord:
        task = TaskRecord(id=self.state.next_id("tasks"), **values, created_at=now, updated_at=now)
        self.state.tasks[task.id] = task
        return copy.deepcopy(task)

    async def update_task(self, task_id: int, changes: Mapping[str, Any], now: datetime) -> TaskRecord | None:
        if task_id not in self.state.tasks:
            return None
        task = replace(self.state.tasks[task_id], **changes, updated_at=now)
        self.state.tasks[task_id] = task
        return copy.deepcopy(task)

    async def delete_task(self, task_id: int) -> bool:
        s = self.state
        if s.tasks.pop(task_id, None) is None:
            return False
        for table in (s.completions, s.history):
            for key in [k for k, row in table.items() if row.task_id == task_id]:
                del table[key]
        return True

    async def list_user_tasks(self, user_id: int) -> list[UserTaskStatus]:
        done = {c.task_id: c.completed_at for c in self.state.completions.values() if c.user_id == user_id}
        return [
            UserTaskStatus(task=copy.deepcopy(t), completed=t.id in done, completed_at=done.get(t.id))
            for t in sorted(self.state.tasks.values(), key=lambda t: t.id)
        ]

    async def list_completed_tasks(self, user_id: int, limit: int, offset: int) -> list[CompletedTask]:
        rows = [c for c in self.state.completions.values() if c.user_id == user_id]
        rows.sort(key=lambda c: (c.completed_at, c.id), reverse=True)
        return [
            CompletedTask(task=copy.deepcopy(self.state.tasks[c.task_id]), completed_at=c.completed_at)
            for c in rows[offset : offset + limit]
        ]

    async def task_stats(self) -> list[TaskStat]:
        counts: dict[int, int] = {}
        for c in self.state.completions.values():
            counts[c.task_id] = counts.get(c.task_id, 0) + 1
        stats = [
            TaskStat(
                task_id=t.id,
                title=t.title,
                completion_count=counts.get(t.id, 0),
                xp=t.xp,
                difficulty=t.difficulty,
                task_type=t.task_type,
            )
            for t in self.state.tasks.values()
        ]
        stats.sort(key=lambda s: (-s.completion_count, s.task_id))
        return stats

    async def recent_completions(self, limit: int) -> list[RecentCompletion]:
        rows = sorted(self.state.completions.values(), key=lambda c: (c.completed_at, c.id), reverse=True)
        result = []
        for c in rows[:limit]:
            user = self.state.users[c.user_id]
            task = self.state.tasks[c.task_id]
            result.append(
                RecentCompletion(
                    username=user.username,
                    wallet_address=user.wallet_address,
                    task_id=task.id,
                    task_title=task.title,
                    completed_at=c.completed_at,
                )
            )
        return result

    # --- Completions ---

    def _completion(self, user_id: int, task_id: int) -> CompletionRecord | None:
        return next(
            (c for c in self.state.completions.values() if c.user_id == user_id and c.task_id == task_id),
            None,
        )

    async def get_completion(self, user_id: int, task_id: int) -> CompletionRecord | None:
        completion = self._completion(user_id, task_id)
        return copy.deepcopy(completion) if completion else None

    async def insert_completion(
        self,
        user_id: int,
        task_id: int,
        verification_data: dict[str, Any] | None,
        completed_at: datetime,
    ) -> CompletionRecord:
        if self._completion(user_id, task_id) is not None:
            msg = "Task already completed"
            raise DuplicateCompletionError(msg)
        completion = CompletionRecord(
            id=self.state.next_id("completions"),
            user_id=user_id,
            task_id=task_id,
            completed_at=completed_at,
            verification_data=copy.deepcopy(verification_data),
        )
        self.state.completions[completion.id] = completion
        return copy.deepcopy(completion)

    async def refresh_completion(
        self,
        completion_id: int,
        verification_data: dict[str, Any] | None,
        completed_at: datetime,
    ) -> None:
        completion = self.state.completions[completion_id]
        completion.verification_data = copy.deepcopy(verification_data)
        completion.completed_at = completed_at

    async def insert_history(self, user_id: int, task_id: int, xp_earned: int, completed_at: datetime) -> None:
        row = _History(self.state.next_id("history"), user_id, task_id, xp_earned, completed_at)
        self.state.history[row.id] = row

    async def count_history(self, user_id: int, task_id: int) -> int:
        return sum(1 for h in self.state.history.values() if h.user_id == user_id and h.task_id == task_id)

    async def reset_user_tasks(self, user_id: int) -> None:
        s = self.state
        for table in (s.completions, s.history):
            for key in [k for k, row in table.items() if row.user_id == user_id]:
                del table[key]

    async def approve_completions(self, completion_ids: Sequence[int]) -> int:
        approved = 0
        for completion_id in set(completion_ids):
            completion = self.state.completions.get(completion_id)
            if completion is not None:
                completion.verification_data = {**(completion.verification_data or {}), "admin_verified": True}
                approved += 1
        return approved

    async def reject_completions(self, completion_ids: Sequence[int]) -> int:
        return sum(1 for cid in set(completion_ids) if self.state.completions.pop(cid, None) is not None)

    # --- XP ---

    async def set_user_xp(self, user_id: int, xp: int, level: int, now: datetime) -> None:
        user = self.state.users[user_id]
        user.xp = xp
        user.level = level
        user.updated_at = now

    async def insert_xp_transaction(
        self,
        user_id: int,
        amount: int,
        source: str,
        source_id: int | None,
        description: str | None,
        created_at: datetime,
    ) -> None:
        entry = XPTransactionRecord(
            id=self.state.next_id("xp_transactions"),
            user_id=user_id,
            amount=amount,
            source=source,
            source_id=source_id,
            description=description,
            created_at=created_at,
        )
        self.state.xp_transactions[entry.id] = entry

    async def list_xp_transactions(self, user_id: int, limit: int, offset: int) -> list[XPTransactionRecord]:
        rows = [e for e in self.state.xp_transactions.values() if e.user_id == user_id]
        rows.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        return copy.deepcopy(rows[offset : offset + limit])

    async def count_xp_transactions(self, user_id: int) -> int:
        return sum(1 for e in self.state.xp_transactions.values() if e.user_id == user_id)

    async def top_xp_gainers(self, since: datetime, limit: int) -> list[XPGainer]:
        gained: dict[int, int] = {}
        for e in self.state.xp_transactions.values():
            if e.created_at > since:
                gained[e.user_id] = gained.get(e.user_id, 0) + e.amount
        ordered = sorted(gained.items(), key=lambda item: (-item[1], item[0]))[:limit]
        return [
            XPGainer(
                username=self.state.users[uid].username,
                wallet_address=self.state.users[uid].wallet_address,
                xp_gained=xp,
            )
            for uid, xp in ordered
        ]

    # --- Leaderboard ---

    def _ranking(self, window: LeaderboardWindow) -> list[RankedEntry]:
        totals: dict[int, list[int]] = {}
        for p in self.state.predictions.values():
            if window.since is not None and p.timestamp <= window.since:
                continue
            bucket = totals.setdefault(p.user_id, [0, 0])
            bucket[0] += 1
            if p.outcome == "correct":
                bucket[1] += 1

        users = sorted(self.state.users.values(), key=lambda u: (-u.xp, u.created_at, u.id))
        if window.require_activity:
            users = [u for u in users if u.id in totals]

        return [
            RankedEntry(
                rank=position,
                user_id=u.id,
                wallet_address=u.wallet_address,
                username=u.username,
                level=u.level,
                xp=u.xp,
                predictions_count=totals.get(u.id, [0, 0])[0],
                correct_predictions=totals.get(u.id, [0, 0])[1],
            )
            for position, u in enumerate(users, start=1)
        ]

    async def count_ranked(self, window: LeaderboardWindow) -> int:
        return len(self._ranking(window))

    async def list_ranked(self, window: LeaderboardWindow, limit: int, offset: int) -> list[RankedEntry]:
        return self._ranking(window)[offset : offset + limit]

    async def get_ranked(self, window: LeaderboardWindow, wallet_address: str) -> RankedEntry | None:
        return next((e for e in self._ranking(window) if e.wallet_address == wallet_address), None)

    async def list_ranked_between(self, window: LeaderboardWindow, first: int, last: int) -> list[RankedEntry]:
        return [e for e in self._ranking(window) if first <= e.rank <= last]

    async def search_ranked(self, window: LeaderboardWindow, query: str, limit: int) -> list[RankedEntry]:
        needle = query.lower()
        matches = [
            e for e in self._ranking(window) if _contains(e.username, needle) or _contains(e.wallet_address, needle)
        ]
        return matches[:limit]

    async def summarize_ranked(self, window: LeaderboardWindow) -> LeaderboardSummary:
        ranking = self._ranking(window)
        if not ranking:
            return LeaderboardSummary(user_count=0, highest_xp=None, average_xp=None)
        xps = [e.xp for e in ranking]
        return LeaderboardSummary(user_count=len(xps), highest_xp=max(xps), average_xp=sum(xps) / len(xps))

    # --- Predictions ---

    async def insert_prediction(
        self,
        user_id: int,
        prediction_type: str,
        asset_symbol: str,
        timestamp: datetime,
        outcome: str | None = None,
    ) -> None:
        row = _Prediction(self.state.next_id("predictions"), user_id, prediction_type, asset_symbol, timestamp, outcome)
        self.state.predictions[row.id] = row

    # --- Transactions / staking ---

    def _tx_by_hash(self, transaction_hash: str) -> _Transaction | None:
        return next((t for t in self.state.transactions.values() if t.transaction_hash == transaction_hash), None)

    async def get_transaction_by_hash(self, transaction_hash: str) -> TransactionRecord | None:
        tx = self._tx_by_hash(transaction_hash)
        return self._tx_record(tx) if tx else None

    async def insert_transaction(
        self,
        user_id: int,
        transaction_type: str,
        transaction_hash: str | None,
        amount: Decimal | None,
        token_symbol: str | None,
        status: str,
        now: datetime,
    ) -> TransactionRecord:
        if transaction_hash is not None and self._tx_by_hash(transaction_hash) is not None:
            msg = "Transaction with this hash already exists"
            raise ConflictError(msg)
        tx = _Transaction(
            id=self.state.next_id("transactions"),
            user_id=user_id,
            transaction_type=transaction_type,
            transaction_hash=transaction_hash,
            amount=amount,
            token_symbol=token_symbol,
            status=status,
            created_at=now,
        )
        self.state.transactions[tx.id] = tx
        return self._tx_record(tx)

    async def update_transaction_status(
        self,
        transaction_hash: str,
        status: str,
        completed_at: datetime | None,
        now: datetime,
    ) -> TransactionRecord | None:
        tx = self._tx_by_hash(transaction_hash)
        if tx is None:
            return None
        tx.status = status
        tx.completed_at = completed_at
        tx.updated_at = now
        return self._tx_record(tx)

    async def list_transactions(
        self,
        wallet_address: str | None,
        transaction_type: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[TransactionRecord], int]:
        rows = [
            t
            for t in self.state.transactions.values()
            if (not wallet_address or self.state.users[t.user_id].wallet_address == wallet_address)
            and (not transaction_type or t.transaction_type == transaction_type)
        ]
        rows.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return [self._tx_record(t) for t in rows[offset : offset + limit]], len(rows)

    async def insert_staking(
        self,
        user_id: int,
        transaction_id: int,
        amount: Decimal,
        token_symbol: str,
        apr: Decimal,
        lock_period_days: int,
        start_date: datetime,
    ) -> StakingRecord:
        staking = StakingRecord(
            id=self.state.next_id("staking"),
            user_id=user_id,
            transaction_id=transaction_id,
            amount=amount,
            token_symbol=token_symbol,
            apr=apr,
            lock_period_days=lock_period_days,
            start_date=start_date,
        )
        self.state.staking[staking.id] = staking
        return copy.deepcopy(staking)

    async def set_staking_active(self, transaction_id: int, is_active: bool) -> None:
        for staking in self.state.staking.values():
            if staking.transaction_id == transaction_id:
                staking.is_active = is_active

    async def get_staking_for_transaction(self, transaction_id: int) -> StakingRecord | None:
        staking = next((s for s in self.state.staking.values() if s.transaction_id == transaction_id), None)
        return copy.deepcopy(staking) if staking else None

    # --- Platform ---

    async def platform_totals(self) -> PlatformTotals:
        s = self.state
        by_type: dict[str, tuple[int, Decimal]] = {}
        for t in s.transactions.values():
            n, total = by_type.get(t.transaction_type, (0, Decimal(0)))
            by_type[t.transaction_type] = (n + 1, total + (t.amount or Decimal(0)))
        return PlatformTotals(
            user_count=len(s.users),
            total_xp=sum(u.xp for u in s.users.values()),
            total_completions=len(s.completions),
            unique_completing_users=len({c.user_id for c in s.completions.values()}),
            unique_completed_tasks=len({c.task_id for c in s.completions.values()}),
            transactions_by_type=[(name, n, total) for name, (n, total) in sorted(by_type.items())],
        )

    async def ping(self) -> bool:
        return True


class MemoryLedgerStore(LedgerStore):
    """LedgerStore kept entirely in process memory."""

    def __init__(self) -> None:
        self._state = _State()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[StoreSession, None]:
        """Writes go to a private copy that replaces the committed state on clean exit."""
        async with self._lock:
            working = copy.deepcopy(self._state)
            yield MemoryStoreSession(working)
            self._state = working

    @asynccontextmanager
    async def reader(self) -> AsyncGenerator[StoreSession, None]:
        # Commits swap in a new state object, so this one never changes underneath us.
        yield MemoryStoreSession(self._state)
