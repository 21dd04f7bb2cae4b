"""Postgres schema for accounts, admins, settings and the audit log."""

from __future__ import annotations

from psycopg_pool import ConnectionPool

SCHEMA_SQL = r"""
CREATE TABLE IF NOT EXISTS accounts (
    account_id TEXT PRIMARY KEY,
    phone TEXT NOT NULL,
    email TEXT,
    username TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','approved','rejected')),
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    balance NUMERIC(14, 2) NOT NULL DEFAULT 0,
    rejection_reason TEXT,
    last_login TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    CONSTRAINT accounts_phone_key UNIQUE (phone),
    CONSTRAINT accounts_email_key UNIQUE (email)
);
CREATE INDEX IF NOT EXISTS idx_accounts_status_created ON accounts (status, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_accounts_created ON accounts (created_at DESC);

CREATE TABLE IF NOT EXISTS admins (
    admin_id TEXT PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'admin' CHECK (role IN ('admin','super_admin')),
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    last_login TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    description TEXT,
    updated_at TIMESTAMPTZ NOT NULL,
    updated_by TEXT REFERENCES admins(admin_id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS audit_log (
    audit_id BIGSERIAL PRIMARY KEY,
    account_id TEXT,
    event_type TEXT NOT NULL,
    actor TEXT,
    metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_audit_log_created ON audit_log (created_at DESC, audit_id DESC);
"""


def apply_schema(pool: ConnectionPool) -> None:
    """Create all tables idempotently, serialised through a transaction advisory lock."""
    statements = [s.strip() for s in SCHEMA_SQL.split(";") if s.strip()]
    with pool.connection() as conn:
        conn.execute("SELECT pg_advisory_xact_lock(734190)")
        for stmt in statements:
            conn.execute(stmt)
        conn.commit()
