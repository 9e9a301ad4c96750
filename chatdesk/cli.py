"""CLI tools for chatdesk administration."""

import click

from chatdesk.core.config import settings
from chatdesk.core.security import generate_widget_key, hash_password
from chatdesk.db.enums import SystemRole
from chatdesk.db.models import Company, User
from chatdesk.db.session import SessionLocal
from chatdesk.services import auth_service, catalog_service

PLATFORM_SLUG = "platform"


@click.group()
def cli():
    """Chatdesk CLI tools."""
    pass


@cli.command()
def bootstrap():
    """
    Seed the permission catalog, default plans and system roles.

    Safe to run repeatedly.

    Example:
        chatdesk bootstrap
    """
    db = SessionLocal()
    try:
        catalog_service.ensure_catalog(db)
        click.echo("✓ Catalog is up to date")
    finally:
        db.close()


@cli.command()
@click.option("--email", default=None, help="Super admin email (default: SUPER_ADMIN_EMAIL)")
@click.option("--password", default=None, help="Super admin password (default: SUPER_ADMIN_PASSWORD)")
@click.option("--first-name", default="Platform", help="First name")
@click.option("--last-name", default="Admin", help="Last name")
def create_super_admin(email: str | None, password: str | None, first_name: str, last_name: str):
    """
    Create the platform super admin.

    The account lives in a dedicated platform company and can only sign in
    through /admin/auth/login.

    Example:
        chatdesk create-super-admin --email admin@platform.com --password "s3cret-pass"
    """
    email = (email or settings.SUPER_ADMIN_EMAIL).strip().lower()
    password = password or settings.SUPER_ADMIN_PASSWORD
    if not password:
        click.echo("❌ A password is required (--password or SUPER_ADMIN_PASSWORD)")
        raise SystemExit(1)

    db = SessionLocal()
    try:
        catalog_service.ensure_catalog(db)

        if auth_service.find_user_by_email(db, email):
            click.echo(f"❌ User already exists: {email}")
            raise SystemExit(1)

        role = catalog_service.get_system_role(db, SystemRole.SUPER_ADMIN.value)
        company = db.query(Company).filter(Company.slug == PLATFORM_SLUG).first()
        if not company:
            company = Company(
                name="Platform",
                slug=PLATFORM_SLUG,
                email=email,
                widget_key=generate_widget_key(),
            )
            db.add(company)
            db.flush()

        user = User(
            company_id=company.id,
            role_id=role.id,
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
        )
        db.add(user)
        db.commit()

        click.echo(f"✓ Created super admin: {email}")
        click.echo(f"  ID: {user.id}")
        click.echo(f"  Company: {company.slug}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user: refresh tokens and live access tokens.

    Example:
        chatdesk revoke-sessions --email "agent@example.com"
    """
    db = SessionLocal()
    try:
        user = auth_service.find_user_by_email(db, email)
        if not user:
            click.echo(f"❌ User not found: {email}")
            return

        old_version = user.token_version
        revoked = auth_service.logout(db, user.id)
        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Refresh tokens revoked: {revoked}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
