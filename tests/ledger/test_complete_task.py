"""Task completion: XP accrual, idempotence, verification, cooldowns and atomicity."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import T0, wallet

from predik.errors import CooldownActiveError, NotFoundError, ValidationError
from predik.ledger.service import complete_task
from predik.storage.memory import MemoryStoreSession
from predik.storage.sql import SqlStoreSession


async def _user(store, n):
    async with store.reader() as reader:
        return await reader.get_user(wallet(n))


class TestXPAccrual:
    @pytest.mark.asyncio
    async def test_two_tasks_accumulate_and_level_up(self, store, make_user, make_task):
        await make_user(1)
        first = await make_task(title="Connect wallet", xp=150)
        second = await make_task(title="Join Discord", xp=200)

        r1 = await complete_task(store, wallet(1), first.id, now=T0)
        assert r1.xp_earned == 150
        assert r1.new_total_xp == 150
        assert r1.new_level == 1
        assert r1.leveled_up is False
        assert r1.message == "Task completed! You earned 150 XP."

        r2 = await complete_task(store, wallet(1), second.id, now=T0 + timedelta(minutes=1))
        assert r2.new_total_xp == 350
        assert r2.new_level == 2
        assert r2.leveled_up is True
        assert r2.message == "Congratulations! You've reached level 2!"

        user = await _user(store, 1)
        assert (user.xp, user.level) == (350, 2)

    @pytest.mark.asyncio
    async def test_xp_transactions_reconcile_with_user_xp(self, store, make_user, make_task):
        user = await make_user(1)
        tasks = [await make_task(title=f"Task {i}", xp=xp) for i, xp in enumerate((50, 120, 300))]
        for task in tasks:
            await complete_task(store, wallet(1), task.id, now=T0)

        async with store.reader() as reader:
            entries = await reader.list_xp_transactions(user.id, 10, 0)
            refreshed = await reader.get_user(wallet(1))

        assert sum(e.amount for e in entries) == refreshed.xp == 470
        assert refreshed.level == 470 // 300 + 1
        assert {e.description for e in entries} == {"Completed: Task 0", "Completed: Task 1", "Completed: Task 2"}
        assert all(e.source == "task" for e in entries)
        assert {e.source_id for e in entries} == {t.id for t in tasks}


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_non_repeatable_task_is_granted_once(self, store, make_user, make_task):
        user = await make_user(1)
        task = await make_task(xp=100)

        await complete_task(store, wallet(1), task.id, now=T0)
        again = await complete_task(store, wallet(1), task.id, now=T0 + timedelta(days=2))

        assert again.already_completed is True
        assert again.xp_earned == 0
        assert again.new_total_xp == 100
        assert again.message == "Task already completed"

        async with store.reader() as reader:
            assert await reader.count_xp_transactions(user.id) == 1
            assert (await reader.get_user(wallet(1))).xp == 100

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_insert_reports_already_completed(
        self, store, make_user, make_task, monkeypatch
    ):
        """A completion inserted between our check and our insert rolls back cleanly."""
        user = await make_user(1)
        task = await make_task(xp=100)
        await complete_task(store, wallet(1), task.id, now=T0)

        # Hide the existing row from the pre-check so the insert hits the unique constraint.
        async def _missing(self, user_id, task_id):
            return None

        for cls in (MemoryStoreSession, SqlStoreSession):
            monkeypatch.setattr(cls, "get_completion", _missing)

        result = await complete_task(store, wallet(1), task.id, now=T0 + timedelta(hours=1))

        assert result.already_completed is True
        assert result.xp_earned == 0
        assert result.new_total_xp == 100
        async with store.reader() as reader:
            assert await reader.count_xp_transactions(user.id) == 1


class TestVerification:
    @pytest.mark.asyncio
    async def test_missing_verification_data_is_rejected(self, store, make_user, make_task):
        user = await make_user(1)
        task = await make_task(requires_verification=True)

        with pytest.raises(ValidationError):
            await complete_task(store, wallet(1), task.id, None, now=T0)

        async with store.reader() as reader:
            assert await reader.get_completion(user.id, task.id) is None
            assert (await reader.get_user(wallet(1))).xp == 0

    @pytest.mark.asyncio
    async def test_empty_payload_counts_as_supplied(self, store, make_user, make_task):
        await make_user(1)
        task = await make_task(xp=60, requires_verification=True)

        result = await complete_task(store, wallet(1), task.id, {}, now=T0)

        assert result.xp_earned == 60

    @pytest.mark.asyncio
    async def test_verification_data_is_stored(self, store, make_user, make_task):
        user = await make_user(1)
        task = await make_task(requires_verification=True)

        await complete_task(store, wallet(1), task.id, {"tweet_url": "https://x.com/p/1"}, now=T0)

        async with store.reader() as reader:
            completion = await reader.get_completion(user.id, task.id)
        assert completion.verification_data == {"tweet_url": "https://x.com/p/1"}


class TestNotFound:
    @pytest.mark.asyncio
    async def test_unknown_user(self, store, make_task):
        task = await make_task()
        with pytest.raises(NotFoundError, match="User not found"):
            await complete_task(store, wallet(99), task.id, now=T0)

    @pytest.mark.asyncio
    async def test_unknown_task(self, store, make_user):
        await make_user(1)
        with pytest.raises(NotFoundError, match="Task not found"):
            await complete_task(store, wallet(1), 4242, now=T0)


class TestRepeatable:
    @pytest.mark.asyncio
    async def test_cooldown_blocks_then_allows(self, store, make_user, make_task):
        user = await make_user(1)
        task = await make_task(xp=40, is_repeatable=True, repeat_cooldown_hours=24)

        await complete_task(store, wallet(1), task.id, now=T0)

        with pytest.raises(CooldownActiveError) as exc_info:
            await complete_task(store, wallet(1), task.id, now=T0 + timedelta(hours=1))
        assert exc_info.value.hours_remaining == 23
        assert exc_info.value.status_code == 429
        assert "Available again in 23 hours" in exc_info.value.message

        result = await complete_task(store, wallet(1), task.id, now=T0 + timedelta(hours=25))
        assert result.xp_earned == 40
        assert result.new_total_xp == 80

        async with store.reader() as reader:
            assert await reader.count_history(user.id, task.id) == 2
            completion = await reader.get_completion(user.id, task.id)
        assert completion.completed_at == T0 + timedelta(hours=25)

    @pytest.mark.asyncio
    async def test_remaining_hours_round_up(self, store, make_user, make_task):
        await make_user(1)
        task = await make_task(is_repeatable=True, repeat_cooldown_hours=2)
        await complete_task(store, wallet(1), task.id, now=T0)

        with pytest.raises(CooldownActiveError) as exc_info:
            await complete_task(store, wallet(1), task.id, now=T0 + timedelta(minutes=61))
        assert exc_info.value.hours_remaining == 1

    @pytest.mark.asyncio
    async def test_repeatable_without_cooldown(self, store, make_user, make_task):
        user = await make_user(1)
        task = await make_task(xp=10, is_repeatable=True)

        for _ in range(3):
            await complete_task(store, wallet(1), task.id, now=T0)

        async with store.reader() as reader:
            assert await reader.count_history(user.id, task.id) == 3
            assert (await reader.get_user(wallet(1))).xp == 30


class TestAtomicity:
    @pytest.mark.asyncio
    async def test_failure_mid_transaction_leaves_no_trace(self, store, make_user, make_task, monkeypatch):
        user = await make_user(1, xp=100)
        task = await make_task(xp=250, is_repeatable=True)

        async def _boom(self, *args, **kwargs):
            raise RuntimeError("ledger write failed")

        for cls in (MemoryStoreSession, SqlStoreSession):
            monkeypatch.setattr(cls, "insert_xp_transaction", _boom)

        with pytest.raises(RuntimeError):
            await complete_task(store, wallet(1), task.id, now=T0)

        async with store.reader() as reader:
            refreshed = await reader.get_user(wallet(1))
            assert (refreshed.xp, refreshed.level) == (100, 1)
            assert await reader.get_completion(user.id, task.id) is None
            assert await reader.count_history(user.id, task.id) == 0
            assert await reader.count_xp_transactions(user.id) == 0
