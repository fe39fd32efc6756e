import pytest

from taskboard.core.config import settings
from taskboard.main import app
from taskboard.routers.auth import get_event_sink
from taskboard.services.tasks import TaskService

from helpers import PASSWORD, FlakyEventSink, channel, task_in


async def login(client, realm: str, email: str) -> dict:
    response = await client.post(f"/{realm}/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}


@pytest.fixture()
async def admin_headers(client, users):
    return await login(client, "admin", "ada@example.com")


@pytest.fixture()
async def bob_headers(client, users):
    return await login(client, "public", "bob@example.com")


async def create_task(client, headers, *participants, title="Quarterly report"):
    response = await client.post(
        "/admin/tasks",
        json={
            "title": title,
            "description": "Numbers for Q3",
            "status": "published",
            "participants": [{"user_id": user.id, "role": role} for user, role in participants],
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestAuth:
    async def test_admin_credential_fails_public_login(self, client, users):
        response = await client.post("/public/login", json={"email": "ada@example.com", "password": PASSWORD})

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid email or password"}

    async def test_user_credential_fails_admin_login(self, client, users):
        response = await client.post("/admin/login", json={"email": "bob@example.com", "password": PASSWORD})

        assert response.status_code == 401

    async def test_wrong_password(self, client, users):
        response = await client.post("/admin/login", json={"email": "ada@example.com", "password": "nope"})

        assert response.status_code == 401

    async def test_public_token_cannot_reach_admin_routes(self, client, bob_headers):
        response = await client.get("/admin/tasks", headers=bob_headers)

        assert response.status_code == 403
        assert response.json()["success"] is False

    async def test_admin_token_cannot_reach_public_routes(self, client, admin_headers):
        response = await client.get("/public/tasks", headers=admin_headers)

        assert response.status_code == 403

    async def test_missing_token(self, client, users):
        response = await client.get("/public/me")

        assert response.status_code == 401

    async def test_garbage_token(self, client, users):
        response = await client.get("/admin/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    async def test_me_returns_summary(self, client, users, admin_headers):
        response = await client.get("/admin/me", headers=admin_headers)

        assert response.json()["data"] == {"id": users.admin.id, "name": "Ada Admin", "email": "ada@example.com"}

    async def test_register_issues_public_token(self, client, users):
        response = await client.post(
            "/public/register",
            json={"name": "Erin", "email": "erin@example.com", "password": "long-enough"},
        )

        assert response.status_code == 201
        token = response.json()["data"]["access_token"]
        me = await client.get("/public/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["data"]["email"] == "erin@example.com"

    async def test_duplicate_registration_is_rejected(self, client, users):
        response = await client.post(
            "/public/register",
            json={"name": "Bob again", "email": "bob@example.com", "password": "long-enough"},
        )

        assert response.status_code == 422
        assert response.json() == {"success": False, "message": "Email already registered"}

    async def test_short_password_is_a_validation_error(self, client, users):
        response = await client.post(
            "/public/register",
            json={"name": "Erin", "email": "erin@example.com", "password": "short"},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["message"].startswith("password")
        assert body["errors"]


class TestAdminTasks:
    async def test_create_without_creator_is_422(self, client, users, admin_headers, sink):
        response = await client.post(
            "/admin/tasks",
            json={
                "title": "Orphan",
                "description": "",
                "status": "published",
                "participants": [{"user_id": users.bob.id, "role": "executor"}],
            },
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["success"] is False
        assert sink.published == []

    async def test_invalid_status_is_422(self, client, users, admin_headers):
        response = await client.post(
            "/admin/tasks",
            json={"title": "x", "description": "", "status": "archived", "participants": []},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["message"].startswith("status")

    async def test_full_lifecycle(self, client, users, admin_headers, sink):
        task = await create_task(client, admin_headers, (users.admin, "creator"), (users.bob, "executor"))
        assert task["creator"]["id"] == users.admin.id
        assert task["executor"]["id"] == users.bob.id
        assert sink.channels("task.created") == {channel(users.admin), channel(users.bob)}

        updated = await client.put(
            f"/admin/tasks/{task['id']}",
            json={"status": "done"},
            headers=admin_headers,
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["status"] == "done"
        assert updated.json()["data"]["title"] == "Quarterly report"
        assert {p["task"]["status"] for p in sink.payloads("task.updated")} == {"done"}

        listed = await client.get("/admin/tasks", params={"status": "done"}, headers=admin_headers)
        assert [t["id"] for t in listed.json()["data"]] == [task["id"]]
        assert listed.json()["meta"]["total"] == 1

        deleted = await client.delete(f"/admin/tasks/{task['id']}", headers=admin_headers)
        assert deleted.status_code == 200

        gone = await client.get(f"/admin/tasks/{task['id']}", headers=admin_headers)
        assert gone.status_code == 404
        assert gone.json() == {"success": False, "message": "Task not found"}

    async def test_admin_who_is_not_a_participant_gets_404(self, client, users, admin_headers, db, sink):
        task = await TaskService(db, sink).create(task_in((users.alice, "creator")))

        response = await client.get(f"/admin/tasks/{task.id}", headers=admin_headers)

        assert response.status_code == 404

    async def test_comment_crud(self, client, users, admin_headers, sink):
        task = await create_task(client, admin_headers, (users.admin, "creator"), (users.bob, "observer"))
        sink.clear()

        created = await client.post(
            f"/admin/tasks/{task['id']}/comments", json={"content": "Kick-off"}, headers=admin_headers
        )
        assert created.status_code == 201
        comment = created.json()["data"]
        assert comment["user"]["id"] == users.admin.id
        assert sink.channels("comment.created") == {channel(users.bob)}

        edited = await client.put(
            f"/admin/tasks/{task['id']}/comments/{comment['id']}",
            json={"content": "Kick-off moved"},
            headers=admin_headers,
        )
        assert edited.json()["data"]["content"] == "Kick-off moved"

        shown = await client.get(f"/admin/tasks/{task['id']}/comments/{comment['id']}", headers=admin_headers)
        assert shown.json()["data"]["content"] == "Kick-off moved"

        await client.delete(f"/admin/tasks/{task['id']}/comments/{comment['id']}", headers=admin_headers)
        listed = await client.get(f"/admin/tasks/{task['id']}/comments", headers=admin_headers)
        assert listed.json()["data"] == []

    async def test_user_search(self, client, users, admin_headers):
        short = await client.get("/admin/users", params={"search": "a"}, headers=admin_headers)
        found = await client.get("/admin/users", params={"search": "car"}, headers=admin_headers)

        assert short.json()["data"] == []
        assert [u["id"] for u in found.json()["data"]] == [users.carol.id]


class TestPublicTasks:
    async def test_show_includes_comments(self, client, users, admin_headers, bob_headers):
        task = await create_task(client, admin_headers, (users.admin, "creator"), (users.bob, "executor"))
        await client.post(f"/admin/tasks/{task['id']}/comments", json={"content": "Go"}, headers=admin_headers)

        response = await client.get(f"/public/tasks/{task['id']}", headers=bob_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert [c["content"] for c in data["comments"]] == ["Go"]
        assert data["comments"][0]["user"]["id"] == users.admin.id

    async def test_list_shows_only_executor_and_observer_tasks(self, client, users, admin_headers, bob_headers):
        assigned = await create_task(client, admin_headers, (users.admin, "creator"), (users.bob, "executor"), title="a")
        await create_task(client, admin_headers, (users.admin, "creator"), title="b")

        response = await client.get("/public/tasks", headers=bob_headers)

        assert [t["id"] for t in response.json()["data"]] == [assigned["id"]]
        assert response.json()["meta"] == {"current_page": 1, "last_page": 1, "per_page": 15, "total": 1}

    async def test_hidden_task_is_404(self, client, users, admin_headers, bob_headers):
        task = await create_task(client, admin_headers, (users.admin, "creator"))

        response = await client.get(f"/public/tasks/{task['id']}", headers=bob_headers)

        assert response.status_code == 404

    async def test_comment_notifies_other_participants(self, client, users, admin_headers, bob_headers, sink):
        task = await create_task(
            client, admin_headers, (users.admin, "creator"), (users.bob, "executor"), (users.carol, "observer")
        )
        sink.clear()

        response = await client.post(
            f"/public/tasks/{task['id']}/comments", json={"content": "On it"}, headers=bob_headers
        )

        assert response.status_code == 201
        assert sink.channels("comment.created") == {channel(users.admin), channel(users.carol)}

    async def test_empty_comment_is_rejected(self, client, users, admin_headers, bob_headers):
        task = await create_task(client, admin_headers, (users.admin, "creator"), (users.bob, "executor"))

        response = await client.post(f"/public/tasks/{task['id']}/comments", json={"content": ""}, headers=bob_headers)

        assert response.status_code == 422


async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/nowhere")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found"}


async def test_unreachable_recipients_do_not_fail_requests(client, users, admin_headers, bob_headers, monkeypatch):
    monkeypatch.setattr(settings, "BROADCAST_TIMEOUT", 0.05)
    flaky = FlakyEventSink(failing={channel(users.admin)}, hanging={channel(users.carol)})
    app.dependency_overrides[get_event_sink] = lambda: flaky

    task = await create_task(
        client, admin_headers, (users.admin, "creator"), (users.bob, "executor"), (users.carol, "observer")
    )
    updated = await client.put(f"/admin/tasks/{task['id']}", json={"status": "in-progress"}, headers=admin_headers)
    commented = await client.post(
        f"/public/tasks/{task['id']}/comments", json={"content": "Started"}, headers=bob_headers
    )

    assert updated.status_code == 200
    assert commented.status_code == 201
    shown = (await client.get(f"/public/tasks/{task['id']}", headers=bob_headers)).json()["data"]
    assert shown["status"] == "in-progress"
    assert [c["content"] for c in shown["comments"]] == ["Started"]
    assert flaky.channels() == {channel(users.bob)}
    assert [event for _, event, _ in flaky.published] == ["task.created", "task.updated"]
