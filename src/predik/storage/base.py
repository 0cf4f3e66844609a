"""Storage interface shared by the SQL and in-memory backends.

A ``LedgerStore`` hands out ``StoreSession`` objects. ``transaction()``
yields a session whose writes commit together when the block exits
normally and are rolled back when it raises; ``reader()`` yields a session
for plain reads with no transactional guarantees.
"""

from __future__ import annotations

import abc
from collections.abc import Mapping, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class UserRecord:
    id: int
    wallet_address: str
    username: str
    xp: int = 0
    level: int = 1
    bio: str | None = None
    occupation: str | None = None
    quote: str | None = None
    preferred_assets: list[str] | None = None
    trading_type: str | None = None
    email: str | None = None
    email_verified: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class TaskRecord:
    id: int
    title: str
    description: str
    xp: int
    difficulty: str
    task_type: str
    requires_verification: bool = False
    is_repeatable: bool = False
    repeat_cooldown_hours: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class CompletionRecord:
    id: int
    user_id: int
    task_id: int
    completed_at: datetime
    verification_data: dict[str, Any] | None = None


@dataclass
class XPTransactionRecord:
    id: int
    user_id: int
    amount: int
    source: str
    source_id: int | None
    description: str | None
    created_at: datetime


@dataclass
class RankedEntry:
    rank: int
    user_id: int
    wallet_address: str
    username: str
    level: int
    xp: int
    predictions_count: int = 0
    correct_predictions: int = 0


@dataclass
class UserTaskStatus:
    task: TaskRecord
    completed: bool
    completed_at: datetime | None = None


@dataclass
class CompletedTask:
    task: TaskRecord
    completed_at: datetime


@dataclass
class TaskStat:
    task_id: int
    title: str
    completion_count: int
    xp: int
    difficulty: str
    task_type: str


@dataclass
class RecentCompletion:
    username: str
    wallet_address: str
    task_id: int
    task_title: str
    completed_at: datetime


@dataclass
class XPGainer:
    username: str
    wallet_address: str
    xp_gained: int


@dataclass
class LeaderboardSummary:
    user_count: int
    highest_xp: int | None
    average_xp: float | None


@dataclass
class TransactionRecord:
    id: int
    user_id: int
    wallet_address: str
    username: str
    transaction_type: str
    transaction_hash: str | None
    amount: Decimal | None
    token_symbol: str | None
    status: str
    created_at: datetime
    completed_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class StakingRecord:
    id: int
    user_id: int
    transaction_id: int
    amount: Decimal
    token_symbol: str
    apr: Decimal | None
    lock_period_days: int | None
    start_date: datetime
    end_date: datetime | None = None
    is_active: bool = True


@dataclass
class PlatformTotals:
    user_count: int
    total_xp: int
    total_completions: int
    unique_completing_users: int
    unique_completed_tasks: int
    transactions_by_type: list[tuple[str, int, Decimal]] = field(default_factory=list)


@dataclass(frozen=True)
class LeaderboardWindow:
    """Which users are ranked and which predictions are counted.

    ``since`` bounds the prediction activity joined into the ranking; ``None``
    counts all of it. With ``require_activity`` only users with at least one
    prediction inside the window are ranked.
    """

    name: str
    since: datetime | None
    require_activity: bool = False


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


class StoreSession(abc.ABC):
    """Data-access operations available inside a store session."""

    # --- Users ---

    @abc.abstractmethod
    async def get_user(self, wallet_address: str, *, for_update: bool = False) -> UserRecord | None: ...

    @abc.abstractmethod
    async def list_users(self, limit: int, offset: int) -> list[UserRecord]: ...

    @abc.abstractmethod
    async def search_users(self, query: str, limit: int) -> list[UserRecord]: ...

    @abc.abstractmethod
    async def insert_user(
        self,
        wallet_address: str,
        username: str,
        preferred_assets: list[str],
        trading_type: str,
        now: datetime,
    ) -> UserRecord:
        """Insert a user; raises ``ConflictError`` if the wallet exists."""

    @abc.abstractmethod
    async def update_user(self, user_id: int, changes: Mapping[str, Any], now: datetime) -> UserRecord:
        """Apply column -> value changes and bump ``updated_at``."""

    @abc.abstractmethod
    async def delete_user(self, user_id: int) -> None:
        """Delete the user and every row that depends on it."""

    # --- Tasks ---

    @abc.abstractmethod
    async def get_task(self, task_id: int) -> TaskRecord | None: ...

    @abc.abstractmethod
    async def list_tasks(self) -> list[TaskRecord]: ...

    @abc.abstractmethod
    async def insert_task(self, values: Mapping[str, Any], now: datetime) -> TaskRecord: ...

    @abc.abstractmethod
    async def update_task(self, task_id: int, changes: Mapping[str, Any], now: datetime) -> TaskRecord | None: ...

    @abc.abstractmethod
    async def delete_task(self, task_id: int) -> bool: ...

    @abc.abstractmethod
    async def list_user_tasks(self, user_id: int) -> list[UserTaskStatus]: ...

    @abc.abstractmethod
    async def list_completed_tasks(self, user_id: int, limit: int, offset: int) -> list[CompletedTask]: ...

    @abc.abstractmethod
    async def task_stats(self) -> list[TaskStat]: ...

    @abc.abstractmethod
    async def recent_completions(self, limit: int) -> list[RecentCompletion]: ...

    # --- Completions ---

    @abc.abstractmethod
    async def get_completion(self, user_id: int, task_id: int) -> CompletionRecord | None: ...

    @abc.abstractmethod
    async def insert_completion(
        self,
        user_id: int,
        task_id: int,
        verification_data: dict[str, Any] | None,
        completed_at: datetime,
    ) -> CompletionRecord:
        """Insert a completion; raises ``DuplicateCompletionError`` on a (user, task) clash."""

    @abc.abstractmethod
    async def refresh_completion(
        self,
        completion_id: int,
        verification_data: dict[str, Any] | None,
        completed_at: datetime,
    ) -> None: ...

    @abc.abstractmethod
    async def insert_history(self, user_id: int, task_id: int, xp_earned: int, completed_at: datetime) -> None: ...

    @abc.abstractmethod
    async def count_history(self, user_id: int, task_id: int) -> int: ...

    @abc.abstractmethod
    async def reset_user_tasks(self, user_id: int) -> None: ...

    @abc.abstractmethod
    async def approve_completions(self, completion_ids: Sequence[int]) -> int: ...

    @abc.abstractmethod
    async def reject_completions(self, completion_ids: Sequence[int]) -> int: ...

    # --- XP ---

    @abc.abstractmethod
    async def set_user_xp(self, user_id: int, xp: int, level: int, now: datetime) -> None: ...

    @abc.abstractmethod
    async def insert_xp_transaction(
        self,
        user_id: int,
        amount: int,
        source: str,
        source_id: int | None,
        description: str | None,
        created_at: datetime,
    ) -> None: ...

    @abc.abstractmethod
    async def list_xp_transactions(self, user_id: int, limit: int, offset: int) -> list[XPTransactionRecord]: ...

    @abc.abstractmethod
    async def count_xp_transactions(self, user_id: int) -> int: ...

    @abc.abstractmethod
    async def top_xp_gainers(self, since: datetime, limit: int) -> list[XPGainer]: ...

    # --- Leaderboard ---

    @abc.abstractmethod
    async def count_ranked(self, window: LeaderboardWindow) -> int: ...

    @abc.abstractmethod
    async def list_ranked(self, window: LeaderboardWindow, limit: int, offset: int) -> list[RankedEntry]: ...

    @abc.abstractmethod
    async def get_ranked(self, window: LeaderboardWindow, wallet_address: str) -> RankedEntry | None: ...

    @abc.abstractmethod
    async def list_ranked_between(self, window: LeaderboardWindow, first: int, last: int) -> list[RankedEntry]:
        """Ranked rows with ``first <= rank <= last``, ascending by rank."""

    @abc.abstractmethod
    async def search_ranked(self, window: LeaderboardWindow, query: str, limit: int) -> list[RankedEntry]: ...

    @abc.abstractmethod
    async def summarize_ranked(self, window: LeaderboardWindow) -> LeaderboardSummary: ...

    # --- Predictions ---

    @abc.abstractmethod
    async def insert_prediction(
        self,
        user_id: int,
        prediction_type: str,
        asset_symbol: str,
        timestamp: datetime,
        outcome: str | None = None,
    ) -> None: ...

    # --- Transactions / staking ---

    @abc.abstractmethod
    async def get_transaction_by_hash(self, transaction_hash: str) -> TransactionRecord | None: ...

    @abc.abstractmethod
    async def insert_transaction(
        self,
        user_id: int,
        transaction_type: str,
        transaction_hash: str | None,
        amount: Decimal | None,
        token_symbol: str | None,
        status: str,
        now: datetime,
    ) -> TransactionRecord: ...

    @abc.abstractmethod
    async def update_transaction_status(
        self,
        transaction_hash: str,
        status: str,
        completed_at: datetime | None,
        now: datetime,
    ) -> TransactionRecord | None: ...

    @abc.abstractmethod
    async def list_transactions(
        self,
        wallet_address: str | None,
        transaction_type: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[TransactionRecord], int]: ...

    @abc.abstractmethod
    async def insert_staking(
        self,
        user_id: int,
        transaction_id: int,
        amount: Decimal,
        token_symbol: str,
        apr: Decimal,
        lock_period_days: int,
        start_date: datetime,
    ) -> StakingRecord: ...

    @abc.abstractmethod
    async def set_staking_active(self, transaction_id: int, is_active: bool) -> None: ...

    @abc.abstractmethod
    async def get_staking_for_transaction(self, transaction_id: int) -> StakingRecord | None: ...

    # --- Platform ---

    @abc.abstractmethod
    async def platform_totals(self) -> PlatformTotals: ...

    @abc.abstractmethod
    async def ping(self) -> bool: ...


class LedgerStore(abc.ABC):
    """Pluggable persistence for the engagement ledger."""

    @abc.abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreSession]:
        """Session whose writes commit or roll back as one unit."""

    @abc.abstractmethod
    def reader(self) -> AbstractAsyncContextManager[StoreSession]:
        """Session for reads; consecutive queries may observe concurrent writes."""

    async def close(self) -> None:
        """Release backend resources."""
