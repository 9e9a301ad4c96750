"""Tests for the chat lifecycle, queue and tenant isolation."""

import uuid

import pytest
from httpx import AsyncClient

from chatdesk.core.presence import queue_key


async def _open_chat(client: AsyncClient, tenant, **body) -> dict:
    resp = await client.post(
        "/chats",
        json={"visitor_name": "Vic Visitor", **body},
        headers={"X-Widget-Key": tenant.company.widget_key},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_widget_creates_pending_chat(client: AsyncClient, tenant, fake_redis):
    resp = await client.post(
        "/chats",
        json={"visitor_name": "Vic", "visitor_email": "vic@example.com"},
        headers={"X-Widget-Key": tenant.company.widget_key, "User-Agent": "WidgetTest/1.0"},
    )
    assert resp.status_code == 201, resp.text
    chat = resp.json()
    assert chat["status"] == "pending"
    assert chat["priority"] == "normal"
    assert chat["company_id"] == str(tenant.company.id)
    assert chat["visitor_id"].startswith("visitor_")
    assert chat["assignments"] == []

    assert chat["id"] in fake_redis.sets[queue_key(tenant.company.id)]


@pytest.mark.asyncio
async def test_widget_key_in_body(client: AsyncClient, tenant):
    resp = await client.post(
        "/chats",
        json={"widget_key": tenant.company.widget_key, "visitor_id": "v-123"},
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["visitor_id"] == "v-123"


@pytest.mark.asyncio
async def test_camel_case_request_bodies(authed_client: AsyncClient, tenant, make_user):
    resp = await authed_client.post(
        "/chats",
        json={"widgetKey": tenant.company.widget_key, "visitorId": "v-camel", "visitorName": "Ana"},
    )
    assert resp.status_code == 201, resp.text
    chat = resp.json()
    assert chat["visitor_name"] == "Ana"
    assert chat["visitor_id"] == "v-camel"

    agent, _ = make_user(tenant.company.id, "agent")
    resp = await authed_client.post(f"/chats/{chat['id']}/assign", json={"agentId": str(agent.id)})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "assigned"

    resp = await authed_client.patch(f"/chats/{chat['id']}", json={"ratingComment": "Quick help"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["rating_comment"] == "Quick help"

    resp = await authed_client.post(
        "/messages",
        json={"chatId": chat["id"], "content": "On it", "messageType": "text"},
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["chat_id"] == chat["id"]


@pytest.mark.asyncio
async def test_widget_key_required(client: AsyncClient, tenant):
    resp = await client.post("/chats", json={"visitor_name": "Nobody"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Widget key required"

    resp = await client.post("/chats", json={}, headers={"X-Widget-Key": "widget_unknown"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_inactive_company_cannot_open_chats(client: AsyncClient, db, tenant):
    tenant.company.is_active = False
    db.commit()

    resp = await client.post("/chats", json={}, headers={"X-Widget-Key": tenant.company.widget_key})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_foreign_department_rejected(client: AsyncClient, tenant, other_tenant):
    resp = await client.post("/departments", json={"name": "Theirs"}, headers=other_tenant.headers)
    department_id = resp.json()["id"]

    resp = await client.post(
        "/chats",
        json={"department_id": department_id},
        headers={"X-Widget-Key": tenant.company.widget_key},
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_list_chats_with_filters(authed_client: AsyncClient, tenant, other_tenant, make_user):
    first = await _open_chat(authed_client, tenant)
    second = await _open_chat(authed_client, tenant)
    await _open_chat(authed_client, other_tenant)
    agent, _ = make_user(tenant.company.id, "agent")

    resp = await authed_client.post(f"/chats/{first['id']}/assign", json={"agent_id": str(agent.id)})
    assert resp.status_code == 200, resp.text

    resp = await authed_client.get("/chats")
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["total"] == 2
    # Newest first
    assert [c["id"] for c in data["items"]] == [second["id"], first["id"]]

    resp = await authed_client.get("/chats", params={"status": "pending"})
    assert [c["id"] for c in resp.json()["items"]] == [second["id"]]

    resp = await authed_client.get("/chats", params={"agent_id": str(agent.id)})
    items = resp.json()["items"]
    assert [c["id"] for c in items] == [first["id"]]
    assert items[0]["assignments"][0]["agent_name"] == agent.full_name

    resp = await authed_client.get("/chats", params={"status": "bogus"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_queue_is_oldest_first(authed_client: AsyncClient, tenant):
    first = await _open_chat(authed_client, tenant)
    second = await _open_chat(authed_client, tenant)
    third = await _open_chat(authed_client, tenant)

    resp = await authed_client.get("/chats/queue")
    assert resp.status_code == 200, resp.text
    assert [c["id"] for c in resp.json()] == [first["id"], second["id"], third["id"]]


@pytest.mark.asyncio
async def test_queue_prunes_stale_entries(authed_client: AsyncClient, db, tenant, fake_redis):
    kept = await _open_chat(authed_client, tenant)
    closed = await _open_chat(authed_client, tenant)

    # Status changed behind the queue's back
    from chatdesk.db.models import Chat

    db.get(Chat, uuid.UUID(closed["id"])).status = "closed"
    db.commit()
    key = queue_key(tenant.company.id)
    fake_redis.sets[key].update({"not-a-uuid", str(uuid.uuid4())})

    resp = await authed_client.get("/chats/queue")
    assert [c["id"] for c in resp.json()] == [kept["id"]]
    assert fake_redis.sets[key] == {kept["id"]}


@pytest.mark.asyncio
async def test_queue_excludes_other_companies(authed_client: AsyncClient, tenant, other_tenant, fake_redis):
    foreign = await _open_chat(authed_client, other_tenant)
    fake_redis.sets.setdefault(queue_key(tenant.company.id), set()).add(foreign["id"])

    resp = await authed_client.get("/chats/queue")
    assert resp.json() == []


@pytest.mark.asyncio
async def test_assign_flow(authed_client: AsyncClient, tenant, make_user, fake_redis):
    chat = await _open_chat(authed_client, tenant)
    first_agent, _ = make_user(tenant.company.id, "agent", first_name="Ann")
    second_agent, _ = make_user(tenant.company.id, "agent", first_name="Ben")

    resp = await authed_client.post(f"/chats/{chat['id']}/assign", json={"agent_id": str(first_agent.id)})
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["status"] == "assigned"
    assert [a["agent_id"] for a in data["assignments"] if a["is_active"]] == [str(first_agent.id)]
    assert data["assignments"][0]["assigned_by"] == str(tenant.admin.id)
    assert chat["id"] not in fake_redis.sets[queue_key(tenant.company.id)]

    # Reassignment keeps history with exactly one active row
    resp = await authed_client.post(f"/chats/{chat['id']}/assign", json={"agent_id": str(second_agent.id)})
    assert resp.status_code == 200, resp.text
    assignments = resp.json()["assignments"]
    assert len(assignments) == 2
    active = [a for a in assignments if a["is_active"]]
    assert [a["agent_id"] for a in active] == [str(second_agent.id)]
    inactive = [a for a in assignments if not a["is_active"]]
    assert inactive[0]["unassigned_at"] is not None


@pytest.mark.asyncio
async def test_assign_rejects_foreign_or_inactive_agent(
    authed_client: AsyncClient, db, tenant, other_tenant, make_user
):
    chat = await _open_chat(authed_client, tenant)
    outsider, _ = make_user(other_tenant.company.id, "agent")
    resp = await authed_client.post(f"/chats/{chat['id']}/assign", json={"agent_id": str(outsider.id)})
    assert resp.status_code == 404

    agent, _ = make_user(tenant.company.id, "agent")
    agent.is_active = False
    db.commit()
    resp = await authed_client.post(f"/chats/{chat['id']}/assign", json={"agent_id": str(agent.id)})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_closed_chat_cannot_be_assigned(authed_client: AsyncClient, tenant, make_user):
    chat = await _open_chat(authed_client, tenant)
    agent, _ = make_user(tenant.company.id, "agent")

    resp = await authed_client.patch(f"/chats/{chat['id']}", json={"status": "closed"})
    assert resp.status_code == 200, resp.text

    resp = await authed_client.post(f"/chats/{chat['id']}/assign", json={"agent_id": str(agent.id)})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_close_stamps_closed_at(authed_client: AsyncClient, tenant, fake_redis):
    chat = await _open_chat(authed_client, tenant)

    resp = await authed_client.patch(
        f"/chats/{chat['id']}",
        json={"status": "closed", "rating": 5, "rating_comment": "Great help"},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["status"] == "closed"
    assert data["closed_at"] is not None
    assert data["rating"] == 5
    assert chat["id"] not in fake_redis.sets[queue_key(tenant.company.id)]

    # Closing again keeps the original timestamp
    resp = await authed_client.patch(f"/chats/{chat['id']}", json={"status": "closed"})
    assert resp.json()["closed_at"] == data["closed_at"]


@pytest.mark.asyncio
async def test_back_to_pending_requeues(authed_client: AsyncClient, tenant, make_user):
    chat = await _open_chat(authed_client, tenant)
    agent, _ = make_user(tenant.company.id, "agent")
    await authed_client.post(f"/chats/{chat['id']}/assign", json={"agent_id": str(agent.id)})

    resp = await authed_client.get("/chats/queue")
    assert resp.json() == []

    resp = await authed_client.patch(f"/chats/{chat['id']}", json={"status": "pending"})
    assert resp.status_code == 200, resp.text

    resp = await authed_client.get("/chats/queue")
    assert [c["id"] for c in resp.json()] == [chat["id"]]


@pytest.mark.asyncio
async def test_priority_is_free_form(authed_client: AsyncClient, tenant):
    chat = await _open_chat(authed_client, tenant)
    resp = await authed_client.patch(f"/chats/{chat['id']}", json={"priority": "vip"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["priority"] == "vip"


@pytest.mark.asyncio
async def test_rating_bounds(authed_client: AsyncClient, tenant):
    chat = await _open_chat(authed_client, tenant)
    for rating in (0, 6):
        resp = await authed_client.patch(f"/chats/{chat['id']}", json={"rating": rating})
        assert resp.status_code == 422


@pytest.mark.asyncio
async def test_cross_tenant_chat_access(authed_client: AsyncClient, client, tenant, other_tenant):
    chat = await _open_chat(authed_client, tenant)

    resp = await client.get(f"/chats/{chat['id']}", headers=other_tenant.headers)
    assert resp.status_code == 403

    resp = await client.patch(
        f"/chats/{chat['id']}", json={"status": "closed"}, headers=other_tenant.headers
    )
    assert resp.status_code == 403

    resp = await client.post(
        f"/chats/{chat['id']}/assign",
        json={"agent_id": str(other_tenant.admin.id)},
        headers=other_tenant.headers,
    )
    assert resp.status_code == 403

    resp = await authed_client.get(f"/chats/{uuid.uuid4()}")
    assert resp.status_code == 404
