"""Tenant resolution: host parsing, edge headers, and session cross-checks."""

import uuid

import pytest

from chatdesk.core.errors import ForbiddenError, NotFoundError
from chatdesk.core.tenant import extract_subdomain, resolve_tenant, subdomain_from_headers


@pytest.mark.parametrize(
    "host, expected",
    [
        ("acme.app.com", "acme"),
        ("acme.localhost:3000", "acme"),
        ("localhost:3000", None),
        ("app.com", None),
        ("ACME.App.Com:8443", "acme"),
        ("a.b.c.d", "a"),
        ("127.0.0.1:8000", None),
        ("[::1]:8000", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_subdomain(host, expected):
    assert extract_subdomain(host) == expected


def test_edge_headers_win_over_host():
    headers = {"x-tenant-slug": "Globex", "host": "acme.app.com"}
    assert subdomain_from_headers(headers) == "globex"

    headers = {"x-subdomain": "initech", "host": "localhost"}
    assert subdomain_from_headers(headers) == "initech"


def test_resolve_tenant_by_subdomain(db, tenant):
    ctx = resolve_tenant(db, {"host": "acme.app.com"})
    assert ctx.company_id == tenant.company.id
    assert ctx.subdomain == "acme"


def test_resolve_tenant_falls_back_to_session(db, tenant):
    ctx = resolve_tenant(db, {"host": "localhost:3000"}, session_company_id=tenant.company.id)
    assert ctx.company_id == tenant.company.id
    assert ctx.subdomain is None

    assert resolve_tenant(db, {"host": "localhost"}) is None


def test_resolve_tenant_unknown_or_inactive_company(db, tenant):
    with pytest.raises(NotFoundError):
        resolve_tenant(db, {"host": "nobody.app.com"})

    tenant.company.is_active = False
    db.commit()
    with pytest.raises(NotFoundError):
        resolve_tenant(db, {"host": "acme.app.com"})


def test_resolve_tenant_rejects_session_mismatch(db, tenant, other_tenant):
    with pytest.raises(ForbiddenError):
        resolve_tenant(db, {"host": "acme.app.com"}, session_company_id=other_tenant.company.id)

    with pytest.raises(ForbiddenError):
        resolve_tenant(db, {"x-tenant-slug": "acme"}, session_company_id=uuid.uuid4())


@pytest.mark.asyncio
async def test_request_on_foreign_subdomain_is_forbidden(client, tenant, other_tenant):
    resp = await client.get(
        "/auth/me",
        headers={**tenant.headers, "x-tenant-slug": other_tenant.company.slug},
    )
    assert resp.status_code == 403, resp.text

    resp = await client.get(
        "/auth/me",
        headers={**tenant.headers, "x-tenant-slug": tenant.company.slug},
    )
    assert resp.status_code == 200, resp.text
