"""Transaction isolation of the in-process store."""

import pytest
from conftest import T0, wallet

from predik.storage.memory import MemoryLedgerStore


class _Abort(Exception):
    pass


async def _seed(store: MemoryLedgerStore):
    async with store.transaction() as tx:
        return await tx.insert_user(wallet(1), "user1", ["ETH"], "Spot", T0)


class TestIsolation:
    @pytest.mark.asyncio
    async def test_reader_does_not_see_uncommitted_writes(self, memory_store):
        user = await _seed(memory_store)

        with pytest.raises(_Abort):
            async with memory_store.transaction() as tx:
                await tx.set_user_xp(user.id, 5000, 17, T0)
                async with memory_store.reader() as reader:
                    seen = await reader.get_user(wallet(1))
                raise _Abort

        assert seen.xp == 0
        async with memory_store.reader() as reader:
            assert (await reader.get_user(wallet(1))).xp == 0

    @pytest.mark.asyncio
    async def test_commit_is_visible_to_later_readers(self, memory_store):
        user = await _seed(memory_store)

        async with memory_store.reader() as before:
            async with memory_store.transaction() as tx:
                await tx.set_user_xp(user.id, 600, 3, T0)
            stale = await before.get_user(wallet(1))

        async with memory_store.reader() as after:
            fresh = await after.get_user(wallet(1))

        assert stale.xp == 0
        assert (fresh.xp, fresh.level) == (600, 3)

    @pytest.mark.asyncio
    async def test_failed_transaction_keeps_committed_rows(self, memory_store):
        await _seed(memory_store)

        with pytest.raises(_Abort):
            async with memory_store.transaction() as tx:
                await tx.insert_user(wallet(2), "user2", ["BTC"], "Spot", T0)
                raise _Abort

        async with memory_store.reader() as reader:
            assert await reader.get_user(wallet(1)) is not None
            assert await reader.get_user(wallet(2)) is None
