"""HTTP API tests against the FastAPI app (httpx ASGITransport, sqlite store)."""
import pytest

from mentoring.domain.common.errors import PersistenceError
from mentoring.main import create_app
from mentoring.domain.common.types import conversation_topic


async def _relationship(client, professional="P1", client_id="C1"):
    response = await client.post(
        "/v1/relationships", json={"professional_id": professional, "client_id": client_id}
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _conversation(client, relationship_id):
    response = await client.post("/v1/conversations", json={"relationship_id": relationship_id})
    assert response.status_code == 201, response.text
    return response.json()


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_create_relationship_and_duplicate_conflict(client):
    created = await _relationship(client)

    duplicate = await client.post("/v1/relationships", json={"professional_id": "P1", "client_id": "C1"})

    assert created["status"] == "pending"
    assert duplicate.status_code == 409
    assert duplicate.json()["current_status"] == "pending"


async def test_self_relationship_is_422(client):
    response = await client.post("/v1/relationships", json={"professional_id": "X", "client_id": "X"})

    assert response.status_code == 422


async def test_patch_relationship_lifecycle(client):
    rel = await _relationship(client)

    ended = await client.patch(f"/v1/relationships/{rel['id']}", json={"status": "ended"})
    reopen = await client.patch(f"/v1/relationships/{rel['id']}", json={"status": "active"})

    assert ended.status_code == 200
    assert ended.json()["ended_at"] is not None
    assert reopen.status_code == 409
    assert reopen.json()["current_status"] == "ended"


async def test_patch_with_stale_expected_status(client):
    rel = await _relationship(client)
    await client.post(f"/v1/relationships/{rel['id']}/accept")

    response = await client.patch(
        f"/v1/relationships/{rel['id']}", json={"status": "paused", "expected_status": "pending"}
    )

    assert response.status_code == 409
    assert response.json()["current_status"] == "active"


async def test_relationship_verbs_and_listing(client):
    rel = await _relationship(client)

    accepted = await client.post(f"/v1/relationships/{rel['id']}/accept")
    paused = await client.post(f"/v1/relationships/{rel['id']}/pause")
    resumed = await client.post(f"/v1/relationships/{rel['id']}/resume")
    listing = await client.get("/v1/relationships", params={"identity": "C1"})
    fetched = await client.get(f"/v1/relationships/{rel['id']}")

    assert [r.json()["status"] for r in (accepted, paused, resumed)] == ["active", "paused", "active"]
    assert [r["id"] for r in listing.json()] == [rel["id"]]
    assert fetched.json()["status"] == "active"


async def test_unknown_relationship_is_404(client):
    response = await client.get("/v1/relationships/missing")

    assert response.status_code == 404
    assert response.json()["resource"] == "Relationship"


async def test_message_flow(client, dispatcher, recorder):
    rel = await _relationship(client)
    conv = await _conversation(client, rel["id"])
    await dispatcher.subscribe(conversation_topic(conv["id"]), recorder)

    sent = await client.post(
        "/v1/messages", json={"conversation_id": conv["id"], "sender_id": "P1", "content": "hello"}
    )
    await client.post("/v1/messages", json={"conversation_id": conv["id"], "sender_id": "C1", "content": "hi"})
    listing = await client.get("/v1/messages", params={"conversation": conv["id"], "limit": 10})
    unread = await client.get("/v1/messages/unread-count", params={"identity": "C1"})
    read = await client.patch(f"/v1/messages/{sent.json()['id']}/read", json={"reader_id": "C1"})
    unread_after = await client.get("/v1/messages/unread-count", params={"identity": "C1"})
    await dispatcher.wait_idle()

    assert sent.status_code == 201
    assert [m["content"] for m in listing.json()] == ["hello", "hi"]
    assert unread.json()["unread_count"] == 1
    assert read.json()["read_at"] is not None
    assert unread_after.json()["unread_count"] == 0
    assert [e.payload["content"] for e in recorder.of_type("MessageCreated")] == ["hello", "hi"]
    assert (await client.get(f"/v1/relationships/{rel['id']}")).json()["status"] == "active"


async def test_empty_message_is_422(client):
    rel = await _relationship(client)
    conv = await _conversation(client, rel["id"])

    response = await client.post(
        "/v1/messages", json={"conversation_id": conv["id"], "sender_id": "P1", "content": "  "}
    )

    assert response.status_code == 422


async def test_list_messages_limit_out_of_range_is_422(client):
    rel = await _relationship(client)
    conv = await _conversation(client, rel["id"])

    response = await client.get("/v1/messages", params={"conversation": conv["id"], "limit": 500})

    assert response.status_code == 422


async def test_persistence_failure_is_503_with_content(client, monkeypatch):
    rel = await _relationship(client)
    conv = await _conversation(client, rel["id"])

    async def failing_append(self, message):
        raise PersistenceError("Send message failed", content=message.content)

    monkeypatch.setattr(
        "mentoring.infra.db.repositories.message_repo.MessageRepositoryImpl.append", failing_append
    )
    response = await client.post(
        "/v1/messages", json={"conversation_id": conv["id"], "sender_id": "P1", "content": "retry me"}
    )

    assert response.status_code == 503
    assert response.json()["content"] == "retry me"


async def test_inbox_and_mark_conversation_read(client):
    rel = await _relationship(client)
    conv = await _conversation(client, rel["id"])
    for text in ("one", "two"):
        await client.post("/v1/messages", json={"conversation_id": conv["id"], "sender_id": "P1", "content": text})

    inbox = await client.get("/v1/conversations", params={"identity": "C1"})
    marked = await client.post(f"/v1/conversations/{conv['id']}/read", json={"reader_id": "C1"})
    inbox_after = await client.get("/v1/conversations", params={"identity": "C1"})

    assert inbox.json()[0]["unread_count"] == 2
    assert inbox.json()[0]["last_message"]["content"] == "two"
    assert inbox.json()[0]["relationship"]["client_id"] == "C1"
    assert marked.json() == {"conversation_id": conv["id"], "marked": 2}
    assert inbox_after.json()[0]["unread_count"] == 0


async def test_goal_endpoints(client):
    created = await client.post(
        "/v1/goals",
        json={
            "client_id": "C1",
            "professional_id": "P1",
            "goal_type": "weight_loss",
            "title": "Lose 10 kg",
            "target_value": 10,
            "unit": "kg",
            "current_value": 9,
        },
    )
    goal_id = created.json()["id"]
    progress = await client.post(f"/v1/goals/{goal_id}/progress", json={"recorded_by": "C1", "value": 4})
    fetched = await client.get(f"/v1/goals/{goal_id}")
    listing = await client.get("/v1/goals", params={"client": "C1"})
    patched = await client.patch(f"/v1/goals/{goal_id}", json={"status": "completed"})
    stats = await client.get("/v1/professionals/P1/stats")

    assert created.status_code == 201
    assert created.json()["current_value"] == 0
    assert progress.status_code == 201
    assert fetched.json()["current_value"] == 4
    assert fetched.json()["progress_percentage"] == 40
    assert [g["id"] for g in listing.json()] == [goal_id]
    assert patched.json()["status"] == "completed"
    assert stats.json()["completed_goals"] == 1


async def test_goal_patch_cannot_set_current_value(client):
    created = await client.post("/v1/goals", json={"client_id": "C1", "title": "Sleep 8h", "target_value": 8})

    response = await client.patch(f"/v1/goals/{created.json()['id']}", json={"current_value": 8})

    assert response.status_code == 422


async def test_progress_for_unknown_goal_is_404(client):
    response = await client.post("/v1/goals/missing/progress", json={"recorded_by": "C1", "value": 1})

    assert response.status_code == 404


async def test_missing_database_is_503(dispatcher):
    import httpx

    app = create_app(dispatcher=dispatcher)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        response = await c.get("/v1/relationships", params={"identity": "C1"})

    assert response.status_code == 503
    assert "Database" in response.json()["detail"]


async def test_goal_patch_null_status_is_invalid(client):
    created = await client.post("/v1/goals", json={"client_id": "C1", "title": "Sleep 8h"})

    response = await client.patch(f"/v1/goals/{created.json()['id']}", json={"status": None})

    assert response.status_code == 422
