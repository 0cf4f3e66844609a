"""SQLAlchemy-backed ledger store."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import Select, and_, case, delete, func, or_, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from predik.database import Database
from predik.db.models import (
    EmailVerificationToken,
    Prediction,
    SocialConnection,
    Staking,
    Task,
    Transaction,
    User,
    UserAchievement,
    UserTaskCompletion,
    UserTaskHistory,
    XPTransaction,
)
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


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything stored is UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _contains_pattern(query: str) -> str:
    """Case-folded LIKE pattern matching ``query`` literally anywhere in the value."""
    escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _user_record(u: User) -> UserRecord:
    return UserRecord(
        id=u.id,
        wallet_address=u.wallet_address,
        username=u.username,
        xp=u.xp,
        level=u.level,
        bio=u.bio,
        occupation=u.occupation,
        quote=u.quote,
        preferred_assets=list(u.preferred_assets) if u.preferred_assets is not None else None,
        trading_type=u.trading_type,
        email=u.email,
        email_verified=bool(u.email_verified),
        created_at=_aware(u.created_at),
        updated_at=_aware(u.updated_at),
    )


def _task_record(t: Task) -> TaskRecord:
    return TaskRecord(
        id=t.id,
        title=t.title,
        description=t.description,
        xp=t.xp,
        difficulty=t.difficulty,
        task_type=t.task_type,
        requires_verification=bool(t.requires_verification),
        is_repeatable=bool(t.is_repeatable),
        repeat_cooldown_hours=t.repeat_cooldown_hours,
        created_at=_aware(t.created_at),
        updated_at=_aware(t.updated_at),
    )


def _completion_record(c: UserTaskCompletion) -> CompletionRecord:
    return CompletionRecord(
        id=c.id,
        user_id=c.user_id,
        task_id=c.task_id,
        completed_at=_aware(c.completed_at),  # type: ignore[arg-type]
        verification_data=dict(c.verification_data) if c.verification_data is not None else None,
    )


def _transaction_record(tx: Transaction, user: User) -> TransactionRecord:
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
        created_at=_aware(tx.created_at),  # type: ignore[arg-type]
        completed_at=_aware(tx.completed_at),
        updated_at=_aware(tx.updated_at),
    )


def _staking_record(s: Staking) -> StakingRecord:
    return StakingRecord(
        id=s.id,
        user_id=s.user_id,
        transaction_id=s.transaction_id,
        amount=s.amount,
        token_symbol=s.token_symbol,
        apr=s.apr,
        lock_period_days=s.lock_period_days,
        start_date=_aware(s.start_date),  # type: ignore[arg-type]
        end_date=_aware(s.end_date),
        is_active=bool(s.is_active),
    )


def ranking_subquery(window: LeaderboardWindow):  # noqa: ANN201
    """Rank every user by XP, joined to the window's prediction counts.

    Mirrors the ``leaderboard_*`` views created by the migration.
    """
    join_on = Prediction.user_id == User.id
    if window.since is not None:
        join_on = and_(join_on, Prediction.timestamp > window.since)

    predictions_count = func.count(Prediction.id)
    correct_predictions = func.coalesce(func.sum(case((Prediction.outcome == "correct", 1), else_=0)), 0)

    stmt = (
        select(
            User.id.label("user_id"),
            User.wallet_address,
            User.username,
            User.level,
            User.xp,
            predictions_count.label("predictions_count"),
            correct_predictions.label("correct_predictions"),
            func.row_number()
            .over(order_by=(User.xp.desc(), User.created_at.asc(), User.id.asc()))
            .label("rank"),
        )
        .select_from(User)
        .outerjoin(Prediction, join_on)
        .group_by(User.id, User.wallet_address, User.username, User.level, User.xp, User.created_at)
    )
    if window.require_activity:
        stmt = stmt.having(predictions_count > 0)
    return stmt.subquery("ranking")


def _ranked_entry(row: Any) -> RankedEntry:  # noqa: ANN401
    return RankedEntry(
        rank=int(row.rank),
        user_id=row.user_id,
        wallet_address=row.wallet_address,
        username=row.username,
        level=row.level,
        xp=row.xp,
        predictions_count=int(row.predictions_count or 0),
        correct_predictions=int(row.correct_predictions or 0),
    )


class SqlStoreSession(StoreSession):
    """StoreSession over one ``AsyncSession``."""

    def __init__(self, session: AsyncSession) -> None:
        self.db = session

    async def _user_row(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            msg = f"User {user_id} vanished mid-transaction"
            raise RuntimeError(msg)
        return user

    # --- Users ---

    async def get_user(self, wallet_address: str, *, for_update: bool = False) -> UserRecord | None:
        stmt = select(User).where(User.wallet_address == wallet_address)
        if for_update:
            stmt = stmt.with_for_update()
        user = (await self.db.execute(stmt)).scalar_one_or_none()
        return _user_record(user) if user else None

    async def list_users(self, limit: int, offset: int) -> list[UserRecord]:
        result = await self.db.execute(
            select(User).order_by(User.xp.desc(), User.created_at.asc(), User.id.asc()).limit(limit).offset(offset)
        )
        return [_user_record(u) for u in result.scalars()]

    async def search_users(self, query: str, limit: int) -> list[UserRecord]:
        pattern = _contains_pattern(query)
        result = await self.db.execute(
            select(User)
            .where(
                or_(
                    func.lower(User.username).like(pattern, escape="\\"),
                    func.lower(User.wallet_address).like(pattern, escape="\\"),
                )
            )
            .order_by(User.xp.desc(), User.id.asc())
            .limit(limit)
        )
        return [_user_record(u) for u in result.scalars()]

    async def insert_user(
        self,
        wallet_address: str,
        username: str,
        preferred_assets: list[str],
        trading_type: str,
        now: datetime,
    ) -> UserRecord:
        user = User(
            wallet_address=wallet_address,
            username=username,
            preferred_assets=preferred_assets,
            trading_type=trading_type,
            email_verified=False,
            xp=0,
            level=1,
            created_at=now,
            updated_at=now,
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError as e:
            msg = "User already exists"
            raise ConflictError(msg) from e
        return _user_record(user)

    async def update_user(self, user_id: int, changes: Mapping[str, Any], now: datetime) -> UserRecord:
        user = await self._user_row(user_id)
        for column, value in changes.items():
            setattr(user, column, value)
        user.updated_at = now
        await self.db.flush()
        return _user_record(user)

    async def delete_user(self, user_id: int) -> None:
        # Children first; SQLite only cascades when the pragma is on.
        for model in (
            UserTaskCompletion,
            UserTaskHistory,
            SocialConnection,
            EmailVerificationToken,
            XPTransaction,
            UserAchievement,
            Staking,
            Transaction,
            Prediction,
        ):
            await self.db.execute(delete(model).where(model.user_id == user_id))
        await self.db.execute(delete(User).where(User.id == user_id))

    # --- Tasks ---

    async def get_task(self, task_id: int) -> TaskRecord | None:
        task = await self.db.get(Task, task_id)
        return _task_record(task) if task else None

    async def list_tasks(self) -> list[TaskRecord]:
        result = await self.db.execute(select(Task).order_by(Task.id.asc()))
        return [_task_record(t) for t in result.scalars()]

    async def insert_task(self, values: Mapping[str, Any], now: datetime) -> TaskRecord:
        task = Task(**values, created_at=now, updated_at=now)
        self.db.add(task)
        await self.db.flush()
        return _task_record(task)

    async def update_task(self, task_id: int, changes: Mapping[str, Any], now: datetime) -> TaskRecord | None:
        task = await self.db.get(Task, task_id)
        if task is None:
            return None
        for column, value in changes.items():
            setattr(task, column, value)
        task.updated_at = now
        await self.db.flush()
        return _task_record(task)

    async def delete_task(self, task_id: int) -> bool:
        task = await self.db.get(Task, task_id)
        if task is None:
            return False
        await self.db.execute(delete(UserTaskCompletion).where(UserTaskCompletion.task_id == task_id))
        await self.db.execute(delete(UserTaskHistory).where(UserTaskHistory.task_id == task_id))
        await self.db.delete(task)
        await self.db.flush()
        return True

    async def list_user_tasks(self, user_id: int) -> list[UserTaskStatus]:
        result = await self.db.execute(
            select(Task, UserTaskCompletion.completed_at)
            .outerjoin(
                UserTaskCompletion,
                and_(UserTaskCompletion.task_id == Task.id, UserTaskCompletion.user_id == user_id),
            )
            .order_by(Task.id.asc())
        )
        return [
            UserTaskStatus(
                task=_task_record(row.Task),
                completed=row.completed_at is not None,
                completed_at=_aware(row.completed_at),
            )
            for row in result
        ]

    async def list_completed_tasks(self, user_id: int, limit: int, offset: int) -> list[CompletedTask]:
        result = await self.db.execute(
            select(Task, UserTaskCompletion.completed_at)
            .join(UserTaskCompletion, UserTaskCompletion.task_id == Task.id)
            .where(UserTaskCompletion.user_id == user_id)
            .order_by(UserTaskCompletion.completed_at.desc(), UserTaskCompletion.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return [
            CompletedTask(task=_task_record(row.Task), completed_at=_aware(row.completed_at))  # type: ignore[arg-type]
            for row in result
        ]

    async def task_stats(self) -> list[TaskStat]:
        completion_count = func.count(UserTaskCompletion.id)
        result = await self.db.execute(
            select(Task.id, Task.title, Task.xp, Task.difficulty, Task.task_type, completion_count.label("cnt"))
            .outerjoin(UserTaskCompletion, UserTaskCompletion.task_id == Task.id)
            .group_by(Task.id, Task.title, Task.xp, Task.difficulty, Task.task_type)
            .order_by(completion_count.desc(), Task.id.asc())
        )
        return [
            TaskStat(
                task_id=row.id,
                title=row.title,
                completion_count=row.cnt,
                xp=row.xp,
                difficulty=row.difficulty,
                task_type=row.task_type,
            )
            for row in result
        ]

    async def recent_completions(self, limit: int) -> list[RecentCompletion]:
        result = await self.db.execute(
            select(User.username, User.wallet_address, Task.id, Task.title, UserTaskCompletion.completed_at)
            .select_from(UserTaskCompletion)
            .join(User, UserTaskCompletion.user_id == User.id)
            .join(Task, UserTaskCompletion.task_id == Task.id)
            .order_by(UserTaskCompletion.completed_at.desc(), UserTaskCompletion.id.desc())
            .limit(limit)
        )
        return [
            RecentCompletion(
                username=row.username,
                wallet_address=row.wallet_address,
                task_id=row.id,
                task_title=row.title,
                completed_at=_aware(row.completed_at),  # type: ignore[arg-type]
            )
            for row in result
        ]

    # --- Completions ---

    async def get_completion(self, user_id: int, task_id: int) -> CompletionRecord | None:
        result = await self.db.execute(
            select(UserTaskCompletion).where(
                UserTaskCompletion.user_id == user_id,
                UserTaskCompletion.task_id == task_id,
            )
        )
        completion = result.scalar_one_or_none()
        return _completion_record(completion) if completion else None

    async def insert_completion(
        self,
        user_id: int,
        task_id: int,
        verification_data: dict[str, Any] | None,
        completed_at: datetime,
    ) -> CompletionRecord:
        completion = UserTaskCompletion(
            user_id=user_id,
            task_id=task_id,
            verification_data=verification_data,
            completed_at=completed_at,
        )
        self.db.add(completion)
        try:
            await self.db.flush()
        except IntegrityError as e:
            msg = "Task already completed"
            raise DuplicateCompletionError(msg) from e
        return _completion_record(completion)

    async def refresh_completion(
        self,
        completion_id: int,
        verification_data: dict[str, Any] | None,
        completed_at: datetime,
    ) -> None:
        await self.db.execute(
            update(UserTaskCompletion)
            .where(UserTaskCompletion.id == completion_id)
            .values(verification_data=verification_data, completed_at=completed_at)
        )

    async def insert_history(self, user_id: int, task_id: int, xp_earned: int, completed_at: datetime) -> None:
        self.db.add(UserTaskHistory(user_id=user_id, task_id=task_id, xp_earned=xp_earned, completed_at=completed_at))
        await self.db.flush()

    async def count_history(self, user_id: int, task_id: int) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(UserTaskHistory)
            .where(UserTaskHistory.user_id == user_id, UserTaskHistory.task_id == task_id)
        )
        return result.scalar_one()

    async def reset_user_tasks(self, user_id: int) -> None:
        await self.db.execute(delete(UserTaskCompletion).where(UserTaskCompletion.user_id == user_id))
        await self.db.execute(delete(UserTaskHistory).where(UserTaskHistory.user_id == user_id))

    async def approve_completions(self, completion_ids: Sequence[int]) -> int:
        result = await self.db.execute(select(UserTaskCompletion).where(UserTaskCompletion.id.in_(completion_ids)))
        completions = list(result.scalars())
        for completion in completions:
            # Reassign so the JSON column is flagged dirty.
            completion.verification_data = {**(completion.verification_data or {}), "admin_verified": True}
        await self.db.flush()
        return len(completions)

    async def reject_completions(self, completion_ids: Sequence[int]) -> int:
        result = await self.db.execute(delete(UserTaskCompletion).where(UserTaskCompletion.id.in_(completion_ids)))
        return result.rowcount or 0

    # --- XP ---

    async def set_user_xp(self, user_id: int, xp: int, level: int, now: datetime) -> None:
        await self.db.execute(update(User).where(User.id == user_id).values(xp=xp, level=level, updated_at=now))

    async def insert_xp_transaction(
        self,
        user_id: int,
        amount: int,
        source: str,
        source_id: int | None,
        description: str | None,
        created_at: datetime,
    ) -> None:
        self.db.add(
            XPTransaction(
                user_id=user_id,
                amount=amount,
                source=source,
                source_id=source_id,
                description=description,
                created_at=created_at,
            )
        )
        await self.db.flush()

    async def list_xp_transactions(self, user_id: int, limit: int, offset: int) -> list[XPTransactionRecord]:
        result = await self.db.execute(
            select(XPTransaction)
            .where(XPTransaction.user_id == user_id)
            .order_by(XPTransaction.created_at.desc(), XPTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return [
            XPTransactionRecord(
                id=e.id,
                user_id=e.user_id,
                amount=e.amount,
                source=e.source,
                source_id=e.source_id,
                description=e.description,
                created_at=_aware(e.created_at),  # type: ignore[arg-type]
            )
            for e in result.scalars()
        ]

    async def count_xp_transactions(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(XPTransaction).where(XPTransaction.user_id == user_id)
        )
        return result.scalar_one()

    async def top_xp_gainers(self, since: datetime, limit: int) -> list[XPGainer]:
        gained = func.sum(XPTransaction.amount)
        result = await self.db.execute(
            select(User.username, User.wallet_address, gained.label("xp_gained"))
            .select_from(XPTransaction)
            .join(User, XPTransaction.user_id == User.id)
            .where(XPTransaction.created_at > since)
            .group_by(User.id, User.username, User.wallet_address)
            .order_by(gained.desc(), User.id.asc())
            .limit(limit)
        )
        return [
            XPGainer(username=row.username, wallet_address=row.wallet_address, xp_gained=int(row.xp_gained))
            for row in result
        ]

    # --- Leaderboard ---

    async def count_ranked(self, window: LeaderboardWindow) -> int:
        ranking = ranking_subquery(window)
        result = await self.db.execute(select(func.count()).select_from(ranking))
        return result.scalar_one()

    def _ranked_select(self, window: LeaderboardWindow) -> tuple[Any, Select]:  # type: ignore[type-arg]
        ranking = ranking_subquery(window)
        return ranking, select(ranking).order_by(ranking.c.rank.asc())

    async def list_ranked(self, window: LeaderboardWindow, limit: int, offset: int) -> list[RankedEntry]:
        _, stmt = self._ranked_select(window)
        result = await self.db.execute(stmt.limit(limit).offset(offset))
        return [_ranked_entry(row) for row in result]

    async def get_ranked(self, window: LeaderboardWindow, wallet_address: str) -> RankedEntry | None:
        ranking, stmt = self._ranked_select(window)
        row = (await self.db.execute(stmt.where(ranking.c.wallet_address == wallet_address))).first()
        return _ranked_entry(row) if row else None

    async def list_ranked_between(self, window: LeaderboardWindow, first: int, last: int) -> list[RankedEntry]:
        ranking, stmt = self._ranked_select(window)
        result = await self.db.execute(stmt.where(ranking.c.rank >= first, ranking.c.rank <= last))
        return [_ranked_entry(row) for row in result]

    async def search_ranked(self, window: LeaderboardWindow, query: str, limit: int) -> list[RankedEntry]:
        ranking, stmt = self._ranked_select(window)
        pattern = _contains_pattern(query)
        result = await self.db.execute(
            stmt.where(
                or_(
                    func.lower(ranking.c.username).like(pattern, escape="\\"),
                    func.lower(ranking.c.wallet_address).like(pattern, escape="\\"),
                )
            ).limit(limit)
        )
        return [_ranked_entry(row) for row in result]

    async def summarize_ranked(self, window: LeaderboardWindow) -> LeaderboardSummary:
        ranking = ranking_subquery(window)
        row = (
            await self.db.execute(
                select(func.count(), func.max(ranking.c.xp), func.avg(ranking.c.xp)).select_from(ranking)
            )
        ).one()
        count, highest, average = row
        return LeaderboardSummary(
            user_count=count,
            highest_xp=int(highest) if highest is not None else None,
            average_xp=float(average) if average is not None else None,
        )

    # --- Predictions ---

    async def insert_prediction(
        self,
        user_id: int,
        prediction_type: str,
        asset_symbol: str,
        timestamp: datetime,
        outcome: str | None = None,
    ) -> None:
        self.db.add(
            Prediction(
                user_id=user_id,
                prediction_type=prediction_type,
                asset_symbol=asset_symbol,
                timestamp=timestamp,
                outcome=outcome,
            )
        )
        await self.db.flush()

    # --- Transactions / staking ---

    async def get_transaction_by_hash(self, transaction_hash: str) -> TransactionRecord | None:
        row = (
            await self.db.execute(
                select(Transaction, User)
                .join(User, Transaction.user_id == User.id)
                .where(Transaction.transaction_hash == transaction_hash)
            )
        ).first()
        return _transaction_record(row.Transaction, row.User) if row else None

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
        tx = Transaction(
            user_id=user_id,
            transaction_type=transaction_type,
            transaction_hash=transaction_hash,
            amount=amount,
            token_symbol=token_symbol,
            status=status,
            created_at=now,
        )
        self.db.add(tx)
        try:
            await self.db.flush()
        except IntegrityError as e:
            msg = "Transaction with this hash already exists"
            raise ConflictError(msg) from e
        return _transaction_record(tx, await self._user_row(user_id))

    async def update_transaction_status(
        self,
        transaction_hash: str,
        status: str,
        completed_at: datetime | None,
        now: datetime,
    ) -> TransactionRecord | None:
        tx = (
            await self.db.execute(select(Transaction).where(Transaction.transaction_hash == transaction_hash))
        ).scalar_one_or_none()
        if tx is None:
            return None
        tx.status = status
        tx.completed_at = completed_at
        tx.updated_at = now
        await self.db.flush()
        return _transaction_record(tx, await self._user_row(tx.user_id))

    async def list_transactions(
        self,
        wallet_address: str | None,
        transaction_type: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[TransactionRecord], int]:
        filters = []
        if wallet_address:
            filters.append(User.wallet_address == wallet_address)
        if transaction_type:
            filters.append(Transaction.transaction_type == transaction_type)

        total = (
            await self.db.execute(
                select(func.count()).select_from(Transaction).join(User, Transaction.user_id == User.id).where(*filters)
            )
        ).scalar_one()
        result = await self.db.execute(
            select(Transaction, User)
            .join(User, Transaction.user_id == User.id)
            .where(*filters)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return [_transaction_record(row.Transaction, row.User) for row in result], total

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
        staking = Staking(
            user_id=user_id,
            transaction_id=transaction_id,
            amount=amount,
            token_symbol=token_symbol,
            apr=apr,
            lock_period_days=lock_period_days,
            start_date=start_date,
            is_active=True,
        )
        self.db.add(staking)
        await self.db.flush()
        return _staking_record(staking)

    async def set_staking_active(self, transaction_id: int, is_active: bool) -> None:
        await self.db.execute(
            update(Staking).where(Staking.transaction_id == transaction_id).values(is_active=is_active)
        )

    async def get_staking_for_transaction(self, transaction_id: int) -> StakingRecord | None:
        staking = (
            await self.db.execute(select(Staking).where(Staking.transaction_id == transaction_id))
        ).scalar_one_or_none()
        return _staking_record(staking) if staking else None

    # --- Platform ---

    async def platform_totals(self) -> PlatformTotals:
        user_count, total_xp = (
            await self.db.execute(select(func.count(User.id), func.coalesce(func.sum(User.xp), 0)))
        ).one()
        completions, unique_users, unique_tasks = (
            await self.db.execute(
                select(
                    func.count(UserTaskCompletion.id),
                    func.count(func.distinct(UserTaskCompletion.user_id)),
                    func.count(func.distinct(UserTaskCompletion.task_id)),
                )
            )
        ).one()
        by_type = await self.db.execute(
            select(
                Transaction.transaction_type,
                func.count(Transaction.id),
                func.coalesce(func.sum(Transaction.amount), 0),
            )
            .group_by(Transaction.transaction_type)
            .order_by(Transaction.transaction_type)
        )
        return PlatformTotals(
            user_count=user_count,
            total_xp=int(total_xp),
            total_completions=completions,
            unique_completing_users=unique_users,
            unique_completed_tasks=unique_tasks,
            transactions_by_type=[(row[0], row[1], Decimal(str(row[2]))) for row in by_type],
        )

    async def ping(self) -> bool:
        result = await self.db.execute(text("SELECT 1"))
        return result.scalar() == 1


class SqlLedgerStore(LedgerStore):
    """LedgerStore over a ``Database`` handle."""

    def __init__(self, database: Database) -> None:
        self.database = database

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[StoreSession, None]:
        async with self.database.session() as session, session.begin():
            yield SqlStoreSession(session)

    @asynccontextmanager
    async def reader(self) -> AsyncGenerator[StoreSession, None]:
        async with self.database.session() as session:
            yield SqlStoreSession(session)

    async def close(self) -> None:
        await self.database.close()
