"""Tests for public widget endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from chatdesk.core.presence import online_key
from chatdesk.schemas.widget import DEFAULT_WIDGET_THEME
from chatdesk.services import plan_check_service


@pytest.mark.asyncio
async def test_widget_config_default_theme(client: AsyncClient, tenant):
    resp = await client.get(f"/widget/config/{tenant.company.widget_key}")
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["company_id"] == str(tenant.company.id)
    assert data["theme"] == DEFAULT_WIDGET_THEME
    assert data["is_active"] is True


@pytest.mark.asyncio
async def test_widget_config_custom_theme(client: AsyncClient, tenant):
    resp = await client.patch(
        "/companies/me/widget-theme",
        json={"widget_theme": {"primaryColor": "#222222", "welcomeMessage": "Hi!"}},
        headers=tenant.headers,
    )
    assert resp.status_code == 200, resp.text

    resp = await client.get(f"/widget/config/{tenant.company.widget_key}")
    assert resp.json()["theme"] == {"primaryColor": "#222222", "welcomeMessage": "Hi!"}


@pytest.mark.asyncio
async def test_widget_config_unknown_key(client: AsyncClient, db):
    resp = await client.get("/widget/config/widget_does_not_exist")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_widget_config_inactive_company(client: AsyncClient, db, tenant):
    tenant.company.is_active = False
    db.commit()

    resp = await client.get(f"/widget/config/{tenant.company.widget_key}")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_widget_config_requires_entitlement(client: AsyncClient, db, tenant):
    subscription = plan_check_service.get_subscription(db, tenant.company.id)
    subscription.trial_ends_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.commit()

    resp = await client.get(f"/widget/config/{tenant.company.widget_key}")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Active subscription required"


@pytest.mark.asyncio
async def test_online_agents_lists_present_agents(client: AsyncClient, tenant, make_user, fake_redis):
    online, _ = make_user(tenant.company.id, "agent", first_name="Olive")
    make_user(tenant.company.id, "agent", first_name="Oscar")
    manager, _ = make_user(tenant.company.id, "manager")

    # Managers and malformed ids are filtered out
    fake_redis.sets[online_key(tenant.company.id)] = {str(online.id), str(manager.id), "junk"}

    resp = await client.get("/widget/online-agents", params={"widget_key": tenant.company.widget_key})
    assert resp.status_code == 200, resp.text
    assert resp.json() == [
        {"id": str(online.id), "first_name": "Olive", "last_name": "Tester", "avatar": None}
    ]


@pytest.mark.asyncio
async def test_online_agents_requires_widget_key(client: AsyncClient, db):
    resp = await client.get("/widget/online-agents")
    assert resp.status_code == 422

    resp = await client.get("/widget/online-agents", params={"widget_key": "widget_nope"})
    assert resp.status_code == 404
