"""Unit tests for UserStore against a mocked Database cursor."""

from contextlib import contextmanager
from unittest.mock import MagicMock

import psycopg2
import pytest

from scripts.usersync.db import UserStore
from scripts.usersync.errors import AmbiguousMatchError, LookupFailure


class FakeDatabase:
    def __init__(self, cursor) -> None:
        self.cursor = cursor

    @contextmanager
    def transaction(self):
        yield self.cursor


def _row(**overrides):
    row = {"id": "u1", "google_id": "g1", "email": "a@x.com", "name": "A", "picture": None, "role": "user"}
    row.update(overrides)
    return row


def test_get_by_email_returns_none_when_no_row() -> None:
    cur = MagicMock()
    cur.fetchall.return_value = []

    assert UserStore(FakeDatabase(cur)).get_by_email("a@x.com") is None
    assert cur.execute.call_args[0][1] == ("a@x.com",)


def test_get_by_email_maps_the_row() -> None:
    cur = MagicMock()
    cur.fetchall.return_value = [_row()]

    user = UserStore(FakeDatabase(cur)).get_by_email("a@x.com")

    assert user.id == "u1"
    assert user.google_id == "g1"


def test_get_by_email_with_two_matches_is_ambiguous() -> None:
    cur = MagicMock()
    cur.fetchall.return_value = [_row(), _row(id="u2")]

    with pytest.raises(AmbiguousMatchError) as exc_info:
        UserStore(FakeDatabase(cur)).get_by_email("a@x.com")
    assert exc_info.value.field == "email"


def test_database_errors_become_lookup_failures() -> None:
    cur = MagicMock()
    cur.execute.side_effect = psycopg2.OperationalError("server closed the connection")

    with pytest.raises(LookupFailure):
        UserStore(FakeDatabase(cur)).get_by_google_id("g1")


def test_update_passes_values_then_id() -> None:
    cur = MagicMock()
    cur.rowcount = 1

    UserStore(FakeDatabase(cur)).update("u1", {"google_id": "abc"})

    assert cur.execute.call_args[0][1] == ("abc", "u1")


def test_update_rejects_unknown_columns() -> None:
    with pytest.raises(ValueError):
        UserStore(FakeDatabase(MagicMock())).update("u1", {"password": "x"})


def test_update_of_missing_row_fails() -> None:
    cur = MagicMock()
    cur.rowcount = 0

    with pytest.raises(LookupFailure):
        UserStore(FakeDatabase(cur)).update("gone", {"role": "admin"})


def test_upsert_returns_the_stored_user() -> None:
    cur = MagicMock()
    cur.fetchone.return_value = _row(id="u9", google_id="abc", email="n@x.com", name="")

    user = UserStore(FakeDatabase(cur)).upsert(
        {"google_id": "abc", "email": "n@x.com", "name": "", "picture": None, "role": "user"}
    )

    assert user.id == "u9"
    assert cur.execute.call_args[0][1] == ("abc", "n@x.com", "", None, "user")


def test_upsert_requires_google_id() -> None:
    with pytest.raises(ValueError):
        UserStore(FakeDatabase(MagicMock())).upsert({"email": "n@x.com"})


def test_upsert_conflict_refreshes_profile_but_not_role() -> None:
    """An existing row linked to the same google_id keeps its role; only profile columns refresh."""
    cur = MagicMock()
    cur.fetchone.return_value = _row(role="admin")

    UserStore(FakeDatabase(cur)).upsert(
        {"google_id": "g1", "email": "a@x.com", "name": "A", "picture": None, "role": "user"}
    )

    statement = repr(cur.execute.call_args[0][0])
    conflict_clause = statement[statement.index("DO UPDATE SET"):statement.index("RETURNING")]
    assert "Identifier('role')" not in conflict_clause
    assert "Identifier('google_id')" not in conflict_clause
    assert "Identifier('email')" in conflict_clause
    assert "updated_at = NOW()" in conflict_clause
