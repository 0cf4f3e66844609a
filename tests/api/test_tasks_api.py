"""Tests for /api/v1/tasks endpoints."""

import pytest
from conftest import wallet

NEW_TASK = {
    "title": "Share a prediction",
    "description": "Post your first prediction on X",
    "xp": 75,
    "difficulty": "medium",
    "taskType": "social",
    "requiresVerification": True,
}


class TestAdminGuard:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("method", "path", "body"),
        [
            ("POST", "/api/v1/tasks", NEW_TASK),
            ("PATCH", "/api/v1/tasks", {"tasks": [{"id": 1, "xp": 5}]}),
            ("PATCH", "/api/v1/tasks/completions", {"completionIds": [1], "action": "approve"}),
            ("DELETE", "/api/v1/tasks/1", None),
        ],
    )
    async def test_mutations_require_token(self, client, method, path, body):
        resp = await client.request(method, path, json=body)
        assert resp.status_code == 401
        assert resp.json() == {"detail": "Admin token missing or invalid", "reason": "unauthorized"}

    @pytest.mark.asyncio
    async def test_wrong_token(self, client):
        resp = await client.post("/api/v1/tasks", json=NEW_TASK, headers={"X-Admin-Token": "nope"})
        assert resp.status_code == 401


class TestTaskCatalogue:
    @pytest.mark.asyncio
    async def test_create_and_list(self, client, admin_headers):
        resp = await client.post("/api/v1/tasks", json=NEW_TASK, headers=admin_headers)

        assert resp.status_code == 201
        created = resp.json()
        assert created["taskType"] == "social"
        assert created["requiresVerification"] is True
        assert created["isRepeatable"] is False

        listed = (await client.get("/api/v1/tasks")).json()
        assert [t["id"] for t in listed] == [created["id"]]

    @pytest.mark.asyncio
    async def test_create_rejects_non_positive_xp(self, client, admin_headers):
        resp = await client.post("/api/v1/tasks", json={**NEW_TASK, "xp": 0}, headers=admin_headers)
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_bulk_update(self, client, admin_headers, make_task):
        first = await make_task(title="A", xp=10)
        second = await make_task(title="B", xp=20)

        resp = await client.patch(
            "/api/v1/tasks",
            json={"tasks": [{"id": first.id, "xp": 15}, {"id": second.id, "title": "B2"}, {"id": 999, "xp": 1}]},
            headers=admin_headers,
        )

        data = resp.json()
        assert data["updatedCount"] == 2
        assert {t["id"]: (t["title"], t["xp"]) for t in data["tasks"]} == {
            first.id: ("A", 15),
            second.id: ("B2", 20),
        }

    @pytest.mark.asyncio
    async def test_bulk_update_needs_tasks(self, client, admin_headers):
        resp = await client.patch("/api/v1/tasks", json={"tasks": []}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "No tasks to update"

    @pytest.mark.asyncio
    async def test_delete(self, client, admin_headers, make_task):
        task = await make_task()

        resp = await client.delete(f"/api/v1/tasks/{task.id}", headers=admin_headers)
        assert resp.json() == {"success": True, "message": f"Task {task.id} has been deleted"}

        again = await client.delete(f"/api/v1/tasks/{task.id}", headers=admin_headers)
        assert again.status_code == 404


class TestStatsAndReview:
    @pytest.mark.asyncio
    async def test_stats(self, client, make_user, make_task):
        await make_user(1)
        await make_user(2)
        popular = await make_task(title="Popular")
        await make_task(title="Ignored")
        for n in (1, 2):
            await client.post("/api/v1/tasks/complete", json={"walletAddress": wallet(n), "taskId": popular.id})

        data = (await client.get("/api/v1/tasks/stats")).json()

        assert [(s["title"], s["completionCount"]) for s in data["taskStats"]] == [("Popular", 2), ("Ignored", 0)]
        assert len(data["recentCompletions"]) == 2
        assert data["recentCompletions"][0]["taskTitle"] == "Popular"

    @pytest.mark.asyncio
    async def test_review_rejects_unknown_action(self, client, admin_headers):
        resp = await client.patch(
            "/api/v1/tasks/completions",
            json={"completionIds": [1], "action": "escalate"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_reject_removes_completion(self, client, admin_headers, make_user, make_task):
        user = await make_user(1)
        task = await make_task(requires_verification=True)
        await client.post(
            "/api/v1/tasks/complete",
            json={"walletAddress": wallet(1), "taskId": task.id, "verificationData": {"proof": "abc"}},
        )
        tasks = (await client.get(f"/api/v1/users/{wallet(1)}/tasks")).json()
        assert tasks[0]["completed"] is True

        resp = await client.patch(
            "/api/v1/tasks/completions",
            json={"completionIds": [1], "action": "reject"},
            headers=admin_headers,
        )

        assert resp.json() == {"success": True, "action": "reject", "affected": 1}
        tasks = (await client.get(f"/api/v1/users/{user.wallet_address}/tasks")).json()
        assert tasks[0]["completed"] is False
