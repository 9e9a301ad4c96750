"""Tests for system and custom roles."""

import uuid

import pytest
from httpx import AsyncClient

from chatdesk.core.security import create_access_token
from chatdesk.db.models import User
from chatdesk.services import catalog_service, permission_service


def _permission_ids(db, *names) -> list[str]:
    by_name = {p.name: p for p in permission_service.list_permissions(db)}
    return [str(by_name[name].id) for name in names]


@pytest.mark.asyncio
async def test_list_roles_includes_system_roles(authed_client: AsyncClient):
    resp = await authed_client.get("/roles")
    assert resp.status_code == 200, resp.text
    names = [r["name"] for r in resp.json()]
    assert {"company_admin", "manager", "agent", "super_admin"} <= set(names)
    assert all(r["is_system"] for r in resp.json())


@pytest.mark.asyncio
async def test_system_roles_are_immutable(authed_client: AsyncClient, db):
    agent = catalog_service.get_system_role(db, "agent")

    resp = await authed_client.patch(f"/roles/{agent.id}", json={"name": "renamed"})
    assert resp.status_code == 403

    resp = await authed_client.delete(f"/roles/{agent.id}")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_custom_role_lifecycle(authed_client: AsyncClient, db, tenant):
    resp = await authed_client.post(
        "/roles",
        json={
            "name": "Supervisor",
            "description": "Reads reports",
            "permission_ids": _permission_ids(db, "view_reports", "view_all_chats"),
        },
    )
    assert resp.status_code == 201, resp.text
    role = resp.json()
    assert role["company_id"] == str(tenant.company.id)
    assert role["is_system"] is False
    assert [p["name"] for p in role["permissions"]] == ["view_all_chats", "view_reports"]

    resp = await authed_client.patch(
        f"/roles/{role['id']}",
        json={"permission_ids": _permission_ids(db, "assign_chat")},
    )
    assert resp.status_code == 200, resp.text
    assert [p["name"] for p in resp.json()["permissions"]] == ["assign_chat"]

    resp = await authed_client.delete(f"/roles/{role['id']}")
    assert resp.status_code == 204

    resp = await authed_client.get(f"/roles/{role['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_custom_role_name_conflicts(authed_client: AsyncClient):
    resp = await authed_client.post("/roles", json={"name": "Agent"})
    assert resp.status_code == 409

    resp = await authed_client.post("/roles", json={"name": "Tier 2"})
    assert resp.status_code == 201, resp.text
    resp = await authed_client.post("/roles", json={"name": "tier 2"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_unknown_permission_rejected(authed_client: AsyncClient):
    resp = await authed_client.post(
        "/roles", json={"name": "Ghost", "permission_ids": [str(uuid.uuid4())]}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_role_in_use_cannot_be_deleted(authed_client: AsyncClient, client, db, tenant):
    resp = await authed_client.post(
        "/roles",
        json={"name": "Reporter", "permission_ids": _permission_ids(db, "view_reports")},
    )
    assert resp.status_code == 201, resp.text
    role_id = resp.json()["id"]

    resp = await authed_client.post(
        "/users",
        json={
            "email": "reporter@example.com",
            "password": "password123",
            "first_name": "Rita",
            "last_name": "Reporter",
            "role_id": role_id,
        },
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["role_name"] == "Reporter"

    resp = await authed_client.delete(f"/roles/{role_id}")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_custom_role_grants_permissions(authed_client: AsyncClient, client, db, tenant):
    resp = await authed_client.post(
        "/roles",
        json={"name": "Analyst", "permission_ids": _permission_ids(db, "view_reports")},
    )
    role_id = resp.json()["id"]
    resp = await authed_client.post(
        "/users",
        json={
            "email": "analyst@example.com",
            "password": "password123",
            "first_name": "Ana",
            "last_name": "Lyst",
            "role_id": role_id,
        },
    )
    assert resp.status_code == 201, resp.text

    analyst = db.get(User, uuid.UUID(resp.json()["id"]))
    token = create_access_token(analyst.id, analyst.company_id, "Analyst", analyst.token_version)
    headers = {"Authorization": f"Bearer {token}"}

    resp = await client.get("/analytics/chats", headers=headers)
    assert resp.status_code == 200, resp.text

    resp = await client.get("/chats", headers=headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_custom_roles_are_company_scoped(authed_client: AsyncClient, client, other_tenant):
    resp = await authed_client.post("/roles", json={"name": "Private"})
    role_id = resp.json()["id"]

    resp = await client.get(f"/roles/{role_id}", headers=other_tenant.headers)
    assert resp.status_code == 403

    resp = await client.get("/roles", headers=other_tenant.headers)
    assert "Private" not in [r["name"] for r in resp.json()]


@pytest.mark.asyncio
async def test_custom_role_assignment_across_companies_forbidden(
    authed_client: AsyncClient, client, other_tenant
):
    resp = await authed_client.post("/roles", json={"name": "Acme Only"})
    role_id = resp.json()["id"]

    resp = await client.post(
        "/users",
        json={
            "email": "intruder@example.com",
            "password": "password123",
            "first_name": "In",
            "last_name": "Truder",
            "role_id": role_id,
        },
        headers=other_tenant.headers,
    )
    assert resp.status_code == 403
