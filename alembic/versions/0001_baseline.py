"""Baseline migration - tenants, access control, plans, and chat tables

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates every table for the chat platform. The permission, plan and
system-role catalog is seeded at startup (BOOTSTRAP_CATALOG) or with
`chatdesk bootstrap`, not here.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""

    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Companies
    # ==========================================================================
    op.execute('''
        CREATE TABLE companies (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            slug VARCHAR(100) UNIQUE NOT NULL,
            email VARCHAR(255) NOT NULL,
            phone VARCHAR(50),
            website VARCHAR(255),
            logo VARCHAR(500),
            widget_key VARCHAR(100) UNIQUE NOT NULL,
            widget_theme JSONB,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # ==========================================================================
    # Access control
    # ==========================================================================
    op.execute('''
        CREATE TABLE roles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID REFERENCES companies(id) ON DELETE CASCADE,
            name VARCHAR(100) NOT NULL,
            description VARCHAR(500),
            is_system BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_roles_company_name UNIQUE (company_id, name)
        )
    ''')

    op.execute('''
        CREATE TABLE permissions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(100) UNIQUE NOT NULL,
            description VARCHAR(500),
            category VARCHAR(50) NOT NULL
        )
    ''')

    op.execute('''
        CREATE TABLE role_permissions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            role_id UUID NOT NULL REFERENCES roles(id) ON DELETE CASCADE,
            permission_id UUID NOT NULL REFERENCES permissions(id) ON DELETE CASCADE,
            CONSTRAINT uq_role_permissions_role_perm UNIQUE (role_id, permission_id)
        )
    ''')

    # ==========================================================================
    # Users and refresh tokens
    # ==========================================================================
    op.execute('''
        CREATE TABLE users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
            role_id UUID NOT NULL REFERENCES roles(id) ON DELETE RESTRICT,
            email VARCHAR(255) UNIQUE NOT NULL,
            password_hash VARCHAR(255) NOT NULL,
            first_name VARCHAR(100) NOT NULL,
            last_name VARCHAR(100) NOT NULL,
            phone VARCHAR(50),
            avatar VARCHAR(500),
            is_active BOOLEAN NOT NULL DEFAULT true,
            is_email_verified BOOLEAN NOT NULL DEFAULT false,
            token_version INTEGER NOT NULL DEFAULT 1,
            last_login_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_users_company_active ON users(company_id, is_active)')

    op.execute('''
        CREATE TABLE refresh_tokens (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            token VARCHAR(128) UNIQUE NOT NULL,
            expires_at TIMESTAMPTZ NOT NULL,
            is_revoked BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_refresh_tokens_user ON refresh_tokens(user_id)')

    # ==========================================================================
    # Plans and subscriptions
    # ==========================================================================
    op.execute('''
        CREATE TABLE plans (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(100) NOT NULL,
            slug VARCHAR(100) UNIQUE NOT NULL,
            description VARCHAR(500),
            price NUMERIC(10, 2) NOT NULL DEFAULT 0,
            currency VARCHAR(3) NOT NULL DEFAULT 'USD',
            billing_cycle VARCHAR(20) NOT NULL DEFAULT 'monthly',
            max_users INTEGER NOT NULL,
            max_agents INTEGER NOT NULL,
            max_departments INTEGER NOT NULL,
            allowed_features JSONB NOT NULL DEFAULT '[]'::jsonb,
            chat_history_retention_days INTEGER NOT NULL DEFAULT 30,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE subscriptions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID UNIQUE NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
            plan_id UUID NOT NULL REFERENCES plans(id) ON DELETE RESTRICT,
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            current_period_start TIMESTAMPTZ NOT NULL DEFAULT now(),
            current_period_end TIMESTAMPTZ NOT NULL,
            trial_ends_at TIMESTAMPTZ,
            cancel_at_period_end BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # ==========================================================================
    # Departments
    # ==========================================================================
    op.execute('''
        CREATE TABLE departments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
            name VARCHAR(100) NOT NULL,
            description VARCHAR(500),
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_departments_company_name UNIQUE (company_id, name)
        )
    ''')
    op.execute('CREATE INDEX idx_departments_company_active ON departments(company_id, is_active)')

    op.execute('''
        CREATE TABLE user_departments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            department_id UUID NOT NULL REFERENCES departments(id) ON DELETE CASCADE,
            CONSTRAINT uq_user_department UNIQUE (user_id, department_id)
        )
    ''')

    # ==========================================================================
    # Chats, assignments, messages
    # ==========================================================================
    op.execute('''
        CREATE TABLE chats (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
            department_id UUID REFERENCES departments(id) ON DELETE RESTRICT,
            visitor_id VARCHAR(100) NOT NULL,
            visitor_name VARCHAR(255),
            visitor_email VARCHAR(255),
            visitor_phone VARCHAR(50),
            visitor_ip VARCHAR(64),
            visitor_user_agent VARCHAR(500),
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            priority VARCHAR(20) NOT NULL DEFAULT 'normal',
            rating INTEGER CHECK (rating BETWEEN 1 AND 5),
            rating_comment TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            closed_at TIMESTAMPTZ
        )
    ''')
    op.execute('CREATE INDEX idx_chats_company_status ON chats(company_id, status)')
    op.execute('CREATE INDEX idx_chats_company_created ON chats(company_id, created_at)')

    op.execute('''
        CREATE TABLE chat_assignments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            chat_id UUID NOT NULL REFERENCES chats(id) ON DELETE CASCADE,
            agent_id UUID NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
            assigned_by UUID REFERENCES users(id) ON DELETE SET NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            assigned_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            unassigned_at TIMESTAMPTZ
        )
    ''')
    op.execute('CREATE INDEX idx_chat_assignments_chat ON chat_assignments(chat_id)')
    op.execute(
        'CREATE INDEX idx_chat_assignments_agent_active ON chat_assignments(agent_id, is_active)'
    )
    # At most one active assignment per chat
    op.execute('''
        CREATE UNIQUE INDEX uq_chat_assignments_one_active
        ON chat_assignments(chat_id) WHERE is_active
    ''')

    op.execute('''
        CREATE TABLE messages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            chat_id UUID NOT NULL REFERENCES chats(id) ON DELETE CASCADE,
            sender_type VARCHAR(20) NOT NULL DEFAULT 'visitor',
            sender_id UUID REFERENCES users(id) ON DELETE SET NULL,
            content TEXT NOT NULL,
            message_type VARCHAR(20) NOT NULL DEFAULT 'text',
            is_read BOOLEAN NOT NULL DEFAULT false,
            read_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_messages_chat_created ON messages(chat_id, created_at)')

    # ==========================================================================
    # Analytics
    # ==========================================================================
    op.execute('''
        CREATE TABLE analytics_events (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
            user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            event_type VARCHAR(100) NOT NULL,
            event_data JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute(
        'CREATE INDEX idx_analytics_company_type ON analytics_events(company_id, event_type)'
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    for table in (
        'analytics_events',
        'messages',
        'chat_assignments',
        'chats',
        'user_departments',
        'departments',
        'subscriptions',
        'plans',
        'refresh_tokens',
        'users',
        'role_permissions',
        'permissions',
        'roles',
        'companies',
    ):
        op.execute(f'DROP TABLE IF EXISTS {table} CASCADE')
