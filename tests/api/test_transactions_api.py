"""Tests for /api/v1/transactions endpoints."""

from decimal import Decimal

import pytest
from conftest import make_settings, wallet

from predik.errors import ConflictError, NotFoundError
from predik.transactions.service import create_transaction, update_transaction_status

TX_HASH = "0x" + "ab" * 32


class TestTransactionsAPI:
    @pytest.mark.asyncio
    async def test_create_and_list(self, client, make_user):
        await make_user(1)
        await make_user(2)

        resp = await client.post(
            "/api/v1/transactions",
            json={
                "walletAddress": wallet(1),
                "transactionType": "deposit",
                "transactionHash": TX_HASH,
                "amount": "12.5",
                "tokenSymbol": "USDC",
            },
        )
        assert resp.status_code == 201
        created = resp.json()
        assert created["status"] == "pending"
        assert created["username"] == "user1"
        assert Decimal(created["amount"]) == Decimal("12.5")

        await client.post("/api/v1/transactions", json={"walletAddress": wallet(2), "transactionType": "withdraw"})

        everything = (await client.get("/api/v1/transactions")).json()
        assert everything["pagination"]["total"] == 2

        mine = (await client.get("/api/v1/transactions", params={"walletAddress": wallet(1)})).json()
        assert [t["transactionHash"] for t in mine["transactions"]] == [TX_HASH]

        withdrawals = (await client.get("/api/v1/transactions", params={"type": "withdraw"})).json()
        assert [t["walletAddress"] for t in withdrawals["transactions"]] == [wallet(2)]

    @pytest.mark.asyncio
    async def test_duplicate_hash(self, client, make_user):
        await make_user(1)
        body = {"walletAddress": wallet(1), "transactionType": "deposit", "transactionHash": TX_HASH}

        await client.post("/api/v1/transactions", json=body)
        resp = await client.post("/api/v1/transactions", json=body)

        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_wallet(self, client):
        resp = await client.post("/api/v1/transactions", json={"walletAddress": wallet(5), "transactionType": "stake"})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_status_update(self, client, make_user):
        await make_user(1)
        await client.post(
            "/api/v1/transactions",
            json={"walletAddress": wallet(1), "transactionType": "deposit", "transactionHash": TX_HASH},
        )

        resp = await client.put("/api/v1/transactions", json={"transactionHash": TX_HASH, "status": "completed"})

        data = resp.json()
        assert data["status"] == "completed"
        assert data["completedAt"] is not None
        assert data["updatedAt"] is not None

    @pytest.mark.asyncio
    async def test_status_update_unknown_hash(self, client):
        resp = await client.put("/api/v1/transactions", json={"transactionHash": TX_HASH, "status": "completed"})
        assert resp.status_code == 404


class TestStaking:
    @pytest.mark.asyncio
    async def test_stake_opens_position_with_defaults(self, store, make_user):
        await make_user(1)

        record = await create_transaction(
            store, make_settings(), wallet(1), "stake", TX_HASH, amount=Decimal("250")
        )

        async with store.reader() as reader:
            staking = await reader.get_staking_for_transaction(record.id)
        assert staking.amount == Decimal("250")
        assert staking.token_symbol == "MATIC"
        assert staking.apr == Decimal("12.5")
        assert staking.lock_period_days == 30
        assert staking.is_active is True

    @pytest.mark.asyncio
    async def test_stake_without_amount_has_no_position(self, store, make_user):
        await make_user(1)
        record = await create_transaction(store, make_settings(), wallet(1), "stake", TX_HASH)
        async with store.reader() as reader:
            assert await reader.get_staking_for_transaction(record.id) is None

    @pytest.mark.asyncio
    async def test_status_toggles_position(self, store, make_user):
        await make_user(1)
        record = await create_transaction(
            store, make_settings(), wallet(1), "stake", TX_HASH, amount=Decimal("1"), token_symbol="ETH"
        )

        await update_transaction_status(store, TX_HASH, "reverted")
        async with store.reader() as reader:
            assert (await reader.get_staking_for_transaction(record.id)).is_active is False

        await update_transaction_status(store, TX_HASH, "completed")
        async with store.reader() as reader:
            staking = await reader.get_staking_for_transaction(record.id)
        assert staking.is_active is True
        assert staking.token_symbol == "ETH"

    @pytest.mark.asyncio
    async def test_duplicate_hash_leaves_single_row(self, store, make_user):
        await make_user(1)
        await create_transaction(store, make_settings(), wallet(1), "stake", TX_HASH, amount=Decimal("3"))

        with pytest.raises(ConflictError):
            await create_transaction(store, make_settings(), wallet(1), "stake", TX_HASH, amount=Decimal("3"))

        async with store.reader() as reader:
            rows, total = await reader.list_transactions(None, None, 10, 0)
        assert total == 1

    @pytest.mark.asyncio
    async def test_unknown_user(self, store):
        with pytest.raises(NotFoundError):
            await create_transaction(store, make_settings(), wallet(1), "stake", TX_HASH)
