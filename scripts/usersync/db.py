"""Database helpers: connection pool and the application user store."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

import psycopg2
import psycopg2.extras
import psycopg2.pool
from psycopg2 import sql

from scripts.usersync.config import DatabaseConfig
from scripts.usersync.errors import AmbiguousMatchError, LookupFailure
from scripts.usersync.models import AppUser

logger = logging.getLogger("usersync.db")

USER_COLUMNS = ["id", "google_id", "email", "name", "picture", "role"]
UPDATABLE_COLUMNS = frozenset(["google_id", "email", "name", "picture", "role"])
INSERT_ONLY_COLUMNS = frozenset(["google_id", "role"])


class Database:
    """Thin wrapper around a ThreadedConnectionPool."""

    def __init__(self, config: DatabaseConfig) -> None:
        try:
            self._pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=config.min_connections,
                maxconn=config.max_connections,
                dsn=config.url,
            )
        except psycopg2.Error as exc:
            raise LookupFailure(f"Cannot connect to the user database: {exc}") from exc

    def close(self) -> None:
        self._pool.closeall()

    @contextmanager
    def connection(self) -> Generator:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Generator:
        """Yield a dict cursor inside an auto-commit/rollback transaction."""
        with self.connection() as conn:
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise


class UserStore:
    """Application users keyed by internal id, looked up by email or Firebase uid."""

    def __init__(self, db: Database, table: str = "users") -> None:
        self.db = db
        self.table = sql.Identifier(table)
        self._columns = sql.SQL(", ").join(sql.Identifier(c) for c in USER_COLUMNS)

    @contextmanager
    def _cursor(self, action: str) -> Generator:
        try:
            with self.db.transaction() as cur:
                yield cur
        except psycopg2.Error as exc:
            raise LookupFailure(f"User store {action} failed: {exc}") from exc

    def _get_unique(self, column: str, value: str) -> Optional[AppUser]:
        query = sql.SQL("SELECT {cols} FROM {table} WHERE {col} = %s LIMIT 2").format(
            cols=self._columns, table=self.table, col=sql.Identifier(column)
        )
        with self._cursor(f"lookup by {column}") as cur:
            cur.execute(query, (value,))
            rows = cur.fetchall()
        if len(rows) > 1:
            raise AmbiguousMatchError(column, value, len(rows))
        return AppUser.from_row(rows[0]) if rows else None

    def get_by_email(self, email: str) -> Optional[AppUser]:
        """Exact-match lookup. More than one match raises AmbiguousMatchError."""
        return self._get_unique("email", email)

    def get_by_google_id(self, google_id: str) -> Optional[AppUser]:
        return self._get_unique("google_id", google_id)

    def update(self, user_id: str, fields: dict[str, Any]) -> None:
        """Partial update of the given columns only."""
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")
        if not fields:
            return

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(col)) for col in fields
        )
        query = sql.SQL("UPDATE {table} SET {assignments}, updated_at = NOW() WHERE id = %s").format(
            table=self.table, assignments=assignments
        )
        with self._cursor("update") as cur:
            cur.execute(query, (*fields.values(), user_id))
            if cur.rowcount == 0:
                raise LookupFailure(f"User {user_id} disappeared during update")

    def upsert(self, fields: dict[str, Any]) -> AppUser:
        """Insert a user, or refresh the one already linked to the same google_id.

        role is written on insert only; an existing user keeps the role it has.
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot upsert columns: {sorted(unknown)}")
        if not fields.get("google_id"):
            raise ValueError("upsert requires google_id")
        if len(fields) < 2:
            raise ValueError("upsert requires at least one column besides google_id")

        cols = list(fields)
        refreshed = [
            sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(c))
            for c in cols
            if c not in INSERT_ONLY_COLUMNS
        ]
        refreshed.append(sql.SQL("updated_at = NOW()"))
        query = sql.SQL(
            "INSERT INTO {table} ({cols}) VALUES ({values}) "
            "ON CONFLICT (google_id) DO UPDATE SET {updates} "
            "RETURNING {returning}"
        ).format(
            table=self.table,
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in cols),
            values=sql.SQL(", ").join(sql.Placeholder() for _ in cols),
            updates=sql.SQL(", ").join(refreshed),
            returning=self._columns,
        )
        with self._cursor("upsert") as cur:
            cur.execute(query, tuple(fields[c] for c in cols))
            row = cur.fetchone()
        return AppUser.from_row(row)
