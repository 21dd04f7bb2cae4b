"""Database repository for accounts, admins, settings and audit data."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Tuple

from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.account import Account, AccountStatus, AdminPrincipal, AdminRole, Setting
from .domain.contracts import AccountStats, AuditEvent, RegisterAccountInput
from .errors import DuplicateIdentity

_ACCOUNT_COLUMNS = (
    "account_id, phone, email, username, password_hash, status, is_active, balance, "
    "created_at, updated_at, last_login, rejection_reason"
)
_ADMIN_COLUMNS = "admin_id, username, email, password_hash, role, is_active, created_at, last_login"

# Columns an account update may touch; anything else is a programming error.
_MUTABLE_ACCOUNT_FIELDS = frozenset(
    {"status", "is_active", "balance", "rejection_reason", "last_login"}
)


class AccountRepository:
    """Postgres-backed persistence for the approval workflow.

    Every account mutation is a single ``UPDATE ... RETURNING`` statement so a
    concurrent reader sees either the old row or the new one, never a mix.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    # -- accounts -----------------------------------------------------------------

    def insert_account(self, payload: RegisterAccountInput) -> Account:
        """Persist a new pending account, mapping unique violations to ``DuplicateIdentity``."""
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO accounts (account_id, phone, email, username, password_hash,
                                              status, is_active, balance, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s, %s, TRUE, 0, %s, %s)
                        RETURNING {_ACCOUNT_COLUMNS}
                        """,
                        (
                            account_id,
                            payload.phone,
                            payload.email,
                            payload.username or payload.phone,
                            payload.password_hash,
                            AccountStatus.pending.value,
                            now,
                            now,
                        ),
                    )
                    row = cur.fetchone()
                    conn.commit()
        except pg_errors.UniqueViolation as exc:
            constraint = getattr(exc.diag, "constraint_name", "") or ""
            if "email" in constraint:
                raise DuplicateIdentity("Email already registered") from exc
            raise DuplicateIdentity("Phone number already registered") from exc
        return self._map_account(row)

    def get_account(self, account_id: str) -> Account | None:
        return self._fetch_account("account_id = %s", (account_id,))

    def find_account_by_phone(self, phone: str) -> Account | None:
        return self._fetch_account("phone = %s", (phone,))

    def find_account_by_email(self, email: str) -> Account | None:
        return self._fetch_account("email = %s", (email.lower(),))

    def update_account(self, account_id: str, **fields: Any) -> Account | None:
        """Apply ``fields`` to one account atomically and return the new row."""
        unknown = set(fields) - _MUTABLE_ACCOUNT_FIELDS
        if unknown:
            raise ValueError(f"unsupported account fields: {sorted(unknown)}")
        if not fields:
            return self.get_account(account_id)

        assignments = [(name, self._to_db(value)) for name, value in fields.items()]
        assignments.append(("updated_at", datetime.now(timezone.utc)))
        sets = ", ".join(f"{name} = %s" for name, _ in assignments)
        params = [value for _, value in assignments] + [account_id]
        return self._update_returning(
            f"UPDATE accounts SET {sets} WHERE account_id = %s RETURNING {_ACCOUNT_COLUMNS}",
            params,
        )

    def toggle_account_active(self, account_id: str) -> Account | None:
        """Flip ``is_active`` in place so concurrent toggles never lose a write."""
        return self._update_returning(
            f"""
            UPDATE accounts
            SET is_active = NOT is_active, updated_at = %s
            WHERE account_id = %s
            RETURNING {_ACCOUNT_COLUMNS}
            """,
            (datetime.now(timezone.utc), account_id),
        )

    def delete_account(self, account_id: str) -> bool:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    "DELETE FROM accounts WHERE account_id = %s RETURNING account_id",
                    (account_id,),
                )
                row = cur.fetchone()
                conn.commit()
        return row is not None

    def list_accounts(
        self,
        *,
        status: AccountStatus | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Account], int]:
        """Return one page of accounts, newest first, with the unpaged total."""
        where_sql = "WHERE status = %s" if status else ""
        filter_params: list[Any] = [status.value] if status else []

        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT COUNT(*) FROM accounts {where_sql}", filter_params)
                total = int(cur.fetchone()[0])
                cur.execute(
                    f"""
                    SELECT {_ACCOUNT_COLUMNS}
                    FROM accounts
                    {where_sql}
                    ORDER BY created_at DESC, account_id DESC
                    LIMIT %s OFFSET %s
                    """,
                    [*filter_params, limit, offset],
                )
                rows = cur.fetchall()
        return [self._map_account(row) for row in rows], total

    def account_stats(self, *, registered_since: datetime) -> AccountStats:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    SELECT
                        COUNT(*),
                        COUNT(*) FILTER (WHERE status = 'pending'),
                        COUNT(*) FILTER (WHERE status = 'approved'),
                        COUNT(*) FILTER (WHERE status = 'rejected'),
                        COUNT(*) FILTER (WHERE is_active),
                        COUNT(*) FILTER (WHERE created_at >= %s)
                    FROM accounts
                    """,
                    (registered_since,),
                )
                row = cur.fetchone()
        return AccountStats(*(int(value) for value in row))

    def _fetch_account(self, clause: str, params: tuple) -> Account | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE {clause}", params)
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_account(row)

    def _update_returning(self, query: str, params: Any) -> Account | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                row = cur.fetchone()
                conn.commit()
        return self._map_account(row) if row else None

    @staticmethod
    def _to_db(value: Any) -> Any:
        if isinstance(value, AccountStatus):
            return value.value
        return value

    def _map_account(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            phone=row[1],
            email=row[2],
            username=row[3],
            password_hash=row[4],
            status=AccountStatus(row[5]),
            is_active=bool(row[6]),
            balance=Decimal(row[7]),
            created_at=row[8],
            updated_at=row[9],
            last_login=row[10],
            rejection_reason=row[11],
        )

    # -- admins -------------------------------------------------------------------

    def insert_admin(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        role: AdminRole,
    ) -> AdminPrincipal:
        admin_id = str(uuid.uuid4())
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO admins (admin_id, username, email, password_hash, role, is_active, created_at)
                    VALUES (%s, %s, %s, %s, %s, TRUE, %s)
                    RETURNING {_ADMIN_COLUMNS}
                    """,
                    (
                        admin_id,
                        username.lower(),
                        email.lower(),
                        password_hash,
                        role.value,
                        datetime.now(timezone.utc),
                    ),
                )
                row = cur.fetchone()
                conn.commit()
        return self._map_admin(row)

    def get_admin(self, admin_id: str) -> AdminPrincipal | None:
        return self._fetch_admin("admin_id = %s", (admin_id,))

    def find_admin_by_username(self, username: str) -> AdminPrincipal | None:
        return self._fetch_admin("username = %s", (username.lower(),))

    def find_admin_by_email(self, email: str) -> AdminPrincipal | None:
        return self._fetch_admin("email = %s", (email.lower(),))

    def touch_admin_login(self, admin_id: str) -> None:
        with self._pool.connection() as conn:
            conn.execute(
                "UPDATE admins SET last_login = %s WHERE admin_id = %s",
                (datetime.now(timezone.utc), admin_id),
            )
            conn.commit()

    def _fetch_admin(self, clause: str, params: tuple) -> AdminPrincipal | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {_ADMIN_COLUMNS} FROM admins WHERE {clause}", params)
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_admin(row)

    def _map_admin(self, row: tuple) -> AdminPrincipal:
        return AdminPrincipal(
            admin_id=row[0],
            username=row[1],
            email=row[2],
            password_hash=row[3],
            role=AdminRole(row[4]),
            is_active=bool(row[5]),
            created_at=row[6],
            last_login=row[7],
        )

    # -- settings -----------------------------------------------------------------

    def get_setting(self, key: str) -> Setting | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    "SELECT key, value, description, updated_at, updated_by FROM settings WHERE key = %s",
                    (key,),
                )
                row = cur.fetchone()
                if not row:
                    return None
        return Setting(*row)

    def list_settings(self) -> list[Setting]:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    "SELECT key, value, description, updated_at, updated_by FROM settings ORDER BY key"
                )
                rows = cur.fetchall()
        return [Setting(*row) for row in rows]

    def upsert_setting(
        self,
        *,
        key: str,
        value: str,
        description: str | None,
        updated_by: str | None,
    ) -> Setting:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    """
                    INSERT INTO settings (key, value, description, updated_at, updated_by)
                    VALUES (%s, %s, %s, %s, %s)
                    ON CONFLICT (key) DO UPDATE
                    SET value = EXCLUDED.value,
                        description = COALESCE(EXCLUDED.description, settings.description),
                        updated_at = EXCLUDED.updated_at,
                        updated_by = EXCLUDED.updated_by
                    RETURNING key, value, description, updated_at, updated_by
                    """,
                    (key, value, description, datetime.now(timezone.utc), updated_by),
                )
                row = cur.fetchone()
                conn.commit()
        return Setting(*row)

    # -- audit log ----------------------------------------------------------------

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        event_type: str,
        actor: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit trail entry capturing account workflow activity."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO audit_log (account_id, event_type, actor, metadata)
                    VALUES (%s, %s, %s, %s)
                    """,
                    (account_id, event_type, actor, Json(metadata or {})),
                )
                conn.commit()

    def list_audit_events(
        self,
        *,
        account_id: str | None = None,
        event_type: str | None = None,
        limit: int = 50,
        cursor: Tuple[datetime, int] | None = None,
    ) -> tuple[list[AuditEvent], Optional[Tuple[datetime, int]]]:
        """Return audit entries newest first with optional filters and cursor pagination."""
        limit = max(1, min(limit, 100))
        clauses = ["TRUE"]
        params: list[Any] = []

        if account_id:
            clauses.append("account_id = %s")
            params.append(account_id)
        if event_type:
            clauses.append("event_type = %s")
            params.append(event_type)
        if cursor:
            clauses.append("(created_at, audit_id) < (%s, %s)")
            params.extend(cursor)

        where_sql = " AND ".join(clauses)
        query = f"""
            SELECT audit_id, account_id, event_type, actor, metadata, created_at
            FROM audit_log
            WHERE {where_sql}
            ORDER BY created_at DESC, audit_id DESC
            LIMIT %s
        """
        params.append(limit)

        records: list[AuditEvent] = []
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                for row in cur.fetchall():
                    records.append(
                        AuditEvent(
                            audit_id=row[0],
                            account_id=row[1],
                            event_type=row[2],
                            actor=row[3],
                            metadata=row[4] or {},
                            created_at=row[5],
                        )
                    )

        next_cursor: Tuple[datetime, int] | None = None
        if len(records) == limit:
            last = records[-1]
            next_cursor = (last.created_at, last.audit_id)
        return records, next_cursor
