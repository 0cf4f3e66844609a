"""Leaderboard ranking, rank lookup, search, stats and reward tiers."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import T0, wallet

from predik.errors import NotFoundError, ValidationError
from predik.ledger.service import (
    complete_task,
    determine_reward_tier,
    get_rank,
    leaderboard_stats,
    list_leaderboard,
    search_leaderboard,
)
from predik.users.service import search_users

NOW = T0 + timedelta(days=1)


async def _predict(store, user, when, outcome=None):
    async with store.transaction() as tx:
        await tx.insert_prediction(user.id, "price", "BTC", when, outcome)


async def _board(store, make_user, xps):
    """Users 1..n with the given XP, created in id order."""
    return [await make_user(n, xp=xp) for n, xp in enumerate(xps, start=1)]


class TestRanking:
    @pytest.mark.asyncio
    async def test_ranks_are_contiguous_and_ordered_by_xp(self, store, make_user):
        await _board(store, make_user, [100, 900, 300, 300, 50])

        page = await list_leaderboard(store, "alltime", limit=10, now=NOW)

        assert page.total_count == 5
        assert [e.rank for e in page.entries] == [1, 2, 3, 4, 5]
        assert [e.xp for e in page.entries] == [900, 300, 300, 100, 50]
        assert [e.wallet_address for e in page.entries][:3] == [wallet(2), wallet(3), wallet(4)]

    @pytest.mark.asyncio
    async def test_ties_broken_by_signup_time(self, store, make_user):
        await make_user(1, xp=500, created_at=T0 + timedelta(hours=2))
        await make_user(2, xp=500, created_at=T0)
        await make_user(3, xp=500, created_at=T0 + timedelta(hours=1))

        page = await list_leaderboard(store, "weekly", now=NOW)

        assert [(e.rank, e.wallet_address) for e in page.entries] == [
            (1, wallet(2)),
            (2, wallet(3)),
            (3, wallet(1)),
        ]

    @pytest.mark.asyncio
    async def test_pagination(self, store, make_user):
        await _board(store, make_user, [500, 400, 300, 200, 100])

        page = await list_leaderboard(store, "daily", limit=2, offset=2, now=NOW)

        assert page.total_count == 5
        assert [e.rank for e in page.entries] == [3, 4]

    @pytest.mark.asyncio
    async def test_unknown_timeframe_falls_back_to_daily(self, store, make_user):
        await make_user(1)
        page = await list_leaderboard(store, "monthly", now=NOW)
        assert page.timeframe == "daily"

    @pytest.mark.asyncio
    async def test_prediction_counts_respect_window(self, store, make_user):
        (user,) = await _board(store, make_user, [100])
        await _predict(store, user, NOW - timedelta(hours=1), "correct")
        await _predict(store, user, NOW - timedelta(hours=2), "wrong")
        await _predict(store, user, NOW - timedelta(days=3), "correct")

        daily = (await list_leaderboard(store, "daily", now=NOW)).entries[0]
        weekly = (await list_leaderboard(store, "weekly", now=NOW)).entries[0]
        alltime = (await list_leaderboard(store, "alltime", now=NOW)).entries[0]

        assert (daily.predictions_count, daily.correct_predictions) == (2, 1)
        assert (weekly.predictions_count, weekly.correct_predictions) == (3, 2)
        assert (alltime.predictions_count, alltime.correct_predictions) == (3, 2)

    @pytest.mark.asyncio
    async def test_require_activity_ranks_only_active_users(self, store, make_user):
        idle, active, stale = await _board(store, make_user, [900, 100, 500])
        await _predict(store, active, NOW - timedelta(hours=3))
        await _predict(store, stale, NOW - timedelta(days=2))

        daily = await list_leaderboard(store, "daily", require_activity=True, now=NOW)
        weekly = await list_leaderboard(store, "weekly", require_activity=True, now=NOW)
        alltime = await list_leaderboard(store, "alltime", require_activity=True, now=NOW)

        assert [(e.rank, e.wallet_address) for e in daily.entries] == [(1, active.wallet_address)]
        assert [e.wallet_address for e in weekly.entries] == [stale.wallet_address, active.wallet_address]
        assert alltime.total_count == 3
        assert alltime.entries[0].wallet_address == idle.wallet_address


class TestRank:
    @pytest.mark.asyncio
    async def test_surrounding_entries(self, store, make_user):
        await _board(store, make_user, [700, 600, 500, 400, 300, 200, 100])

        top = await get_rank(store, wallet(1), "alltime", now=NOW)
        middle = await get_rank(store, wallet(4), "alltime", now=NOW)
        last = await get_rank(store, wallet(7), "alltime", now=NOW)

        assert [e.rank for e in top.surrounding] == [1, 2, 3]
        assert [e.rank for e in middle.surrounding] == [2, 3, 4, 5, 6]
        assert [e.rank for e in last.surrounding] == [5, 6, 7]

    @pytest.mark.asyncio
    async def test_rank_details(self, store, make_user):
        await _board(store, make_user, [700, 600, 500, 400, 300, 200, 100])

        result = await get_rank(store, wallet(4), "alltime", now=NOW)

        assert result.ranked is True
        assert result.rank == 4
        assert result.total_users == 7
        assert result.percentile == 43
        assert result.username == "user4"
        assert (result.xp, result.level) == (400, 2)

    @pytest.mark.asyncio
    async def test_first_place_percentile(self, store, make_user):
        await _board(store, make_user, [300, 200])
        result = await get_rank(store, wallet(1), now=NOW)
        assert result.percentile == 50

    @pytest.mark.asyncio
    async def test_inactive_user_is_unranked(self, store, make_user):
        await _board(store, make_user, [250])

        result = await get_rank(store, wallet(1), "daily", require_activity=True, now=NOW)

        assert result.ranked is False
        assert result.rank is None
        assert result.surrounding == []
        assert (result.username, result.xp) == ("user1", 250)

    @pytest.mark.asyncio
    async def test_unknown_wallet(self, store):
        with pytest.raises(NotFoundError):
            await get_rank(store, wallet(404), now=NOW)


class TestSearch:
    @pytest.mark.asyncio
    async def test_matches_username_case_insensitively(self, store, make_user):
        await make_user(1, xp=100, username="CryptoWhale")
        await make_user(2, xp=300, username="whalewatcher")
        await make_user(3, xp=200, username="minnow")

        results = await search_leaderboard(store, "WHALE", "alltime", now=NOW)

        assert [(e.rank, e.username) for e in results] == [(1, "whalewatcher"), (3, "CryptoWhale")]

    @pytest.mark.asyncio
    async def test_matches_wallet_fragment(self, store, make_user):
        await _board(store, make_user, [10, 20])
        results = await search_leaderboard(store, wallet(2)[-6:], now=NOW)
        assert [e.wallet_address for e in results] == [wallet(2)]

    @pytest.mark.asyncio
    async def test_results_are_capped(self, store, make_user):
        await _board(store, make_user, [10 * n for n in range(12)])
        results = await search_leaderboard(store, "user", now=NOW)
        assert len(results) == 10

    @pytest.mark.asyncio
    async def test_wildcards_match_literally(self, store, make_user):
        await make_user(1, xp=100, username="moon_boy")
        await make_user(2, xp=200, username="moonxboy")
        await make_user(3, xp=300, username="ten%gainz")

        underscore = await search_leaderboard(store, "n_b", now=NOW)
        percent = await search_leaderboard(store, "%%", now=NOW)
        literal_percent = await search_leaderboard(store, "n%g", now=NOW)
        users_found = await search_users(store, "n_b")

        assert [e.username for e in underscore] == ["moon_boy"]
        assert percent == []
        assert [e.username for e in literal_percent] == ["ten%gainz"]
        assert [u.username for u in users_found] == ["moon_boy"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "a", " b "])
    async def test_short_query_rejected(self, store, query):
        with pytest.raises(ValidationError):
            await search_leaderboard(store, query, now=NOW)


class TestStats:
    @pytest.mark.asyncio
    async def test_summaries_and_top_gainers(self, store, make_user, make_task):
        first, second, third = await _board(store, make_user, [0, 0, 0])
        task = await make_task(xp=120, is_repeatable=True)
        await complete_task(store, first.wallet_address, task.id, now=NOW - timedelta(hours=1))
        await complete_task(store, first.wallet_address, task.id, now=NOW - timedelta(hours=2))
        await complete_task(store, second.wallet_address, task.id, now=NOW - timedelta(hours=3))
        await complete_task(store, third.wallet_address, task.id, now=NOW - timedelta(days=3))
        await _predict(store, second, NOW - timedelta(hours=1))

        stats = await leaderboard_stats(store, require_activity=True, now=NOW)

        assert set(stats.timeframes) == {"daily", "weekly", "alltime"}
        alltime = stats.timeframes["alltime"]
        assert alltime.user_count == 3
        assert alltime.highest_xp == 240
        assert alltime.average_xp == pytest.approx(160.0)
        assert stats.timeframes["daily"].user_count == 1
        assert stats.timeframes["daily"].highest_xp == 120

        assert [(g.wallet_address, g.xp_gained) for g in stats.top_gainers] == [
            (first.wallet_address, 240),
            (second.wallet_address, 120),
        ]

    @pytest.mark.asyncio
    async def test_empty_board(self, store):
        stats = await leaderboard_stats(store, now=NOW)
        assert stats.timeframes["daily"].user_count == 0
        assert stats.timeframes["daily"].highest_xp is None
        assert stats.top_gainers == []


class TestRewardTier:
    @pytest.mark.asyncio
    async def test_tiers_on_small_board(self, store, make_user):
        await _board(store, make_user, [1000 - 10 * n for n in range(12)])

        tiers = {n: await determine_reward_tier(store, wallet(n), "alltime", now=NOW) for n in (1, 2, 3, 4, 10, 11)}

        assert {n: (r.tier, r.reward) for n, r in tiers.items()} == {
            1: ("gold", 1000),
            2: ("silver", 500),
            3: ("silver", 500),
            4: ("bronze", 200),
            10: ("bronze", 200),
            11: ("none", 0),
        }
        assert tiers[1].eligible is True
        assert tiers[11].eligible is False
        assert (tiers[4].rank, tiers[4].total_users) == (4, 12)

    @pytest.mark.asyncio
    async def test_defaults_to_weekly(self, store, make_user):
        await make_user(1)
        result = await determine_reward_tier(store, wallet(1), now=NOW)
        assert result.timeframe == "weekly"

    @pytest.mark.asyncio
    async def test_unknown_timeframe_uses_alltime(self, store, make_user):
        await make_user(1)
        result = await determine_reward_tier(store, wallet(1), "yearly", now=NOW)
        assert result.timeframe == "alltime"
        assert result.tier == "gold"

    @pytest.mark.asyncio
    async def test_unranked_wallet(self, store, make_user):
        await make_user(1)

        result = await determine_reward_tier(store, wallet(1), "daily", require_activity=True, now=NOW)
        missing = await determine_reward_tier(store, wallet(99), now=NOW)

        for r in (result, missing):
            assert r.eligible is False
            assert r.tier == "none"
            assert r.reward == 0
            assert r.reason == "User not ranked on leaderboard"
