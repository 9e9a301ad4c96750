"""Tests for the administration CLI."""

from click.testing import CliRunner

from chatdesk.cli import cli
from chatdesk.db.models import User
from chatdesk.services import auth_service


def test_bootstrap_is_repeatable(db):
    runner = CliRunner()
    for _ in range(2):
        result = runner.invoke(cli, ["bootstrap"])
        assert result.exit_code == 0, result.output
        assert "Catalog is up to date" in result.output


def test_create_super_admin(db):
    runner = CliRunner()
    result = runner.invoke(
        cli, ["create-super-admin", "--email", "Ops@Example.com", "--password", "s3cret-pass"]
    )
    assert result.exit_code == 0, result.output
    assert "Created super admin: ops@example.com" in result.output

    tokens = auth_service.login(db, "ops@example.com", "s3cret-pass", surface=auth_service.ADMIN_LOGIN)
    assert tokens.user.role == "super_admin"

    result = runner.invoke(
        cli, ["create-super-admin", "--email", "ops@example.com", "--password", "s3cret-pass"]
    )
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_create_super_admin_requires_password(db, monkeypatch):
    from chatdesk.core.config import settings

    monkeypatch.setattr(settings, "SUPER_ADMIN_PASSWORD", "")
    result = CliRunner().invoke(cli, ["create-super-admin", "--email", "ops@example.com"])
    assert result.exit_code == 1


def test_revoke_sessions(db, tenant):
    version = tenant.admin.token_version
    result = CliRunner().invoke(cli, ["revoke-sessions", "--email", tenant.admin.email])
    assert result.exit_code == 0, result.output
    assert "Refresh tokens revoked: 1" in result.output

    db.expire_all()
    assert db.get(User, tenant.admin.id).token_version == version + 1
