"""Tests for company registration and company-scoped access."""

import uuid

import pytest
from httpx import AsyncClient


def _registration(**overrides) -> dict:
    payload = {
        "company_name": "Initech Support",
        "email": f"owner-{uuid.uuid4().hex[:8]}@example.com",
        "password": "password123",
        "first_name": "Bill",
        "last_name": "Lumbergh",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_register_company(client: AsyncClient, db):
    resp = await client.post("/companies", json=_registration(slug="initech"))
    assert resp.status_code == 201, resp.text
    data = resp.json()

    assert data["access_token"]
    assert data["refresh_token"]
    assert data["user"]["role"] == "company_admin"
    assert data["company"]["slug"] == "initech"
    assert data["company"]["widget_key"].startswith("widget_")
    assert data["company"]["is_active"] is True

    # New tenants start on a trial of the default plan
    headers = {"Authorization": f"Bearer {data['access_token']}"}
    resp = await client.get("/subscriptions/me", headers=headers)
    assert resp.status_code == 200, resp.text
    sub = resp.json()
    assert sub["status"] == "trial"
    assert sub["trial_ends_at"] is not None
    assert sub["plan"]["slug"] == "basic"


@pytest.mark.asyncio
async def test_register_derives_slug_from_name(client: AsyncClient, db):
    resp = await client.post("/companies", json=_registration(company_name="Vandelay Industries!"))
    assert resp.status_code == 201, resp.text
    assert resp.json()["company"]["slug"] == "vandelay-industries"


@pytest.mark.asyncio
async def test_register_duplicate_slug_conflict(client: AsyncClient, tenant):
    resp = await client.post("/companies", json=_registration(slug="acme"))
    assert resp.status_code == 409, resp.text


@pytest.mark.asyncio
async def test_register_duplicate_email_conflict(client: AsyncClient, tenant):
    resp = await client.post(
        "/companies",
        json=_registration(slug="acme-two", email=tenant.admin.email),
    )
    assert resp.status_code == 409, resp.text


@pytest.mark.asyncio
async def test_register_validation(client: AsyncClient, db):
    resp = await client.post("/companies", json=_registration(password="short"))
    assert resp.status_code == 422

    resp = await client.post("/companies", json=_registration(slug="Not A Slug"))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_get_my_company_detail(authed_client: AsyncClient, tenant):
    resp = await authed_client.get("/companies/me")
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["id"] == str(tenant.company.id)
    assert data["counts"] == {"users": 1, "chats": 0, "departments": 0}
    assert data["subscription"]["status"] == "trial"


@pytest.mark.asyncio
async def test_cannot_read_other_company(authed_client: AsyncClient, tenant, other_tenant):
    resp = await authed_client.get(f"/companies/{tenant.company.id}")
    assert resp.status_code == 200, resp.text

    resp = await authed_client.get(f"/companies/{other_tenant.company.id}")
    assert resp.status_code == 403

    resp = await authed_client.patch(
        f"/companies/{other_tenant.company.id}", json={"name": "Hijacked"}
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_super_admin_reads_any_company(client: AsyncClient, tenant, super_admin):
    _, headers = super_admin
    resp = await client.get(f"/companies/{tenant.company.id}", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["slug"] == "acme"


@pytest.mark.asyncio
async def test_update_company(authed_client: AsyncClient, tenant):
    resp = await authed_client.patch(
        f"/companies/{tenant.company.id}",
        json={"name": "Acme Corp", "website": "https://acme.example.com"},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["name"] == "Acme Corp"
    assert resp.json()["website"] == "https://acme.example.com"


@pytest.mark.asyncio
async def test_agent_cannot_update_company(client: AsyncClient, tenant, make_user):
    _, headers = make_user(tenant.company.id, "agent")
    resp = await client.patch(
        f"/companies/{tenant.company.id}", json={"name": "Agent Corp"}, headers=headers
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_update_widget_theme(authed_client: AsyncClient, tenant):
    resp = await authed_client.patch(
        "/companies/me/widget-theme",
        json={"widget_theme": {"primaryColor": "#ff0000", "position": "bottom-left"}},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["widget_theme"] == {"primaryColor": "#ff0000", "position": "bottom-left"}

    resp = await authed_client.patch(
        "/companies/me/widget-theme",
        json={"widget_theme": {"position": "middle"}},
    )
    assert resp.status_code == 422
