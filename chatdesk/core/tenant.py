"""
Tenant resolution from request host and edge headers.

The edge rewrite layer forwards the tenant subdomain in x-tenant-slug /
x-subdomain. When absent, the Host header is parsed. Without either, the
authenticated identity's company is the tenant.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from chatdesk.core.errors import ForbiddenError, NotFoundError
from chatdesk.db.models import Company

logger = logging.getLogger(__name__)

TENANT_HEADERS = ("x-tenant-slug", "x-subdomain")


@dataclass(frozen=True)
class TenantContext:
    company_id: UUID
    subdomain: str | None = None


def _strip_port(host: str) -> str:
    if host.startswith("["):
        # Bracketed IPv6 literal
        return host[1:].split("]", 1)[0]
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def extract_subdomain(host: str | None) -> str | None:
    """
    Return the tenant subdomain encoded in a host name, if any.

        acme.example.com    -> "acme"
        acme.localhost:3000 -> "acme"
        localhost           -> None
        example.com         -> None
        192.168.1.1         -> None
    """
    if not host:
        return None
    hostname = _strip_port(host.strip().lower())
    if not hostname or _is_ip(hostname):
        return None

    labels = hostname.split(".")
    if len(labels) >= 3:
        return labels[0] or None
    if len(labels) == 2 and labels[1] == "localhost":
        return labels[0] or None
    return None


def subdomain_from_headers(headers: Mapping[str, str]) -> str | None:
    """Pick the subdomain from edge headers first, then the Host header."""
    for name in TENANT_HEADERS:
        value = headers.get(name)
        if value and value.strip():
            return value.strip().lower()
    return extract_subdomain(headers.get("host"))


def get_company_by_slug(db: Session, slug: str) -> Company:
    """Resolve an active company by slug or raise NotFoundError."""
    company = db.query(Company).filter(Company.slug == slug).first()
    if not company or not company.is_active:
        raise NotFoundError("Company not found")
    return company


def resolve_tenant(
    db: Session,
    headers: Mapping[str, str],
    session_company_id: UUID | None = None,
) -> TenantContext | None:
    """
    Resolve the tenant for a request.

    Raises:
        NotFoundError: subdomain names a missing or inactive company
        ForbiddenError: subdomain company differs from the session's company
    """
    subdomain = subdomain_from_headers(headers)
    if subdomain:
        company = get_company_by_slug(db, subdomain)
        if session_company_id and company.id != session_company_id:
            logger.info("Tenant mismatch for subdomain %s", subdomain)
            raise ForbiddenError("Access to this company is not allowed")
        return TenantContext(company_id=company.id, subdomain=subdomain)

    if session_company_id:
        return TenantContext(company_id=session_company_id)
    return None
