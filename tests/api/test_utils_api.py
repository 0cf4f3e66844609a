"""Tests for /api/v1/utils endpoints."""

import pytest
from conftest import wallet


class TestStatistics:
    @pytest.mark.asyncio
    async def test_totals(self, client, make_user, make_task):
        await make_user(1, xp=100)
        await make_user(2, xp=50)
        task = await make_task(xp=25)
        await client.post("/api/v1/tasks/complete", json={"walletAddress": wallet(1), "taskId": task.id})
        for amount in ("1.5", "2.5"):
            await client.post(
                "/api/v1/transactions",
                json={"walletAddress": wallet(2), "transactionType": "deposit", "amount": amount},
            )

        data = (await client.get("/api/v1/utils/statistics")).json()

        assert data["users"] == {"total": 2, "totalXp": 175}
        assert data["tasks"] == {"totalCompletions": 1, "uniqueUsers": 1, "uniqueTasks": 1}
        assert data["transactions"] == [{"type": "deposit", "count": 2, "totalAmount": 4.0}]
        assert "timestamp" in data


class TestValidateAddress:
    @pytest.mark.asyncio
    async def test_valid(self, client):
        resp = await client.post("/api/v1/utils/validate-address", json={"address": wallet(42)})
        assert resp.json() == {"address": wallet(42), "isValid": True, "type": "ethereum"}

    @pytest.mark.asyncio
    async def test_invalid(self, client):
        resp = await client.post("/api/v1/utils/validate-address", json={"address": "bc1qxyz"})
        assert resp.json()["isValid"] is False
        assert resp.json()["type"] == "unknown"


class TestCalculateRewards:
    @pytest.mark.asyncio
    async def test_staking(self, client, make_user):
        await make_user(1)

        resp = await client.post(
            "/api/v1/utils/calculate-rewards",
            json={"walletAddress": wallet(1), "amount": "1000", "type": "staking"},
        )

        data = resp.json()
        assert data["userLevel"] == 1
        assert data["type"] == "staking"
        assert data["reward"] == pytest.approx(1000 * 0.125 * 1.01 / 365)
        assert data["details"]["apr"] == pytest.approx(12.625)
        assert data["details"]["levelBonus"] == "+1%"
        assert data["details"]["monthlyReward"] == pytest.approx(data["reward"] * 30)

    @pytest.mark.asyncio
    async def test_referral_scales_with_level(self, client, make_user):
        await make_user(1, xp=1500)

        data = (
            await client.post("/api/v1/utils/calculate-rewards", json={"walletAddress": wallet(1), "type": "referral"})
        ).json()

        assert data["userLevel"] == 6
        assert data["reward"] == pytest.approx(106.0)
        assert data["details"]["xpPerReferral"] == pytest.approx(106.0)

    @pytest.mark.asyncio
    async def test_unknown_type(self, client, make_user):
        await make_user(1)
        resp = await client.post("/api/v1/utils/calculate-rewards", json={"walletAddress": wallet(1), "type": "lottery"})
        assert resp.status_code == 400
        assert "Available types" in resp.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_user(self, client):
        resp = await client.post("/api/v1/utils/calculate-rewards", json={"walletAddress": wallet(1)})
        assert resp.status_code == 404
