"""Unit tests for FirebaseIdentitySource over a mocked firebase_admin.auth."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from firebase_admin import exceptions

from scripts.usersync.errors import LookupFailure
from scripts.usersync.identity_source import FirebaseIdentitySource


def _user(uid, email=None, display_name=None, photo_url=None):
    return SimpleNamespace(uid=uid, email=email, display_name=display_name, photo_url=photo_url)


@patch("scripts.usersync.identity_source.auth")
def test_list_users_maps_records_and_token(mock_auth) -> None:
    app = MagicMock()
    mock_auth.list_users.return_value = SimpleNamespace(
        users=[_user("abc", "a@x.com", "Ann", "https://p/a.png"), _user("def")],
        next_page_token="tok-2",
    )

    page = FirebaseIdentitySource(app).list_users(1000, None)

    mock_auth.list_users.assert_called_once_with(page_token=None, max_results=1000, app=app)
    assert [r.id for r in page.records] == ["abc", "def"]
    assert page.records[0].display_name == "Ann"
    assert page.records[1].email is None
    assert page.next_token == "tok-2"


@patch("scripts.usersync.identity_source.auth")
def test_last_page_has_no_token(mock_auth) -> None:
    mock_auth.list_users.return_value = SimpleNamespace(users=[], next_page_token="")

    page = FirebaseIdentitySource(MagicMock()).list_users(1000, "tok-2")

    assert page.next_token is None


@patch("scripts.usersync.identity_source.auth")
def test_firebase_errors_become_lookup_failures(mock_auth) -> None:
    mock_auth.list_users.side_effect = exceptions.UnknownError("backend unavailable")

    with pytest.raises(LookupFailure):
        FirebaseIdentitySource(MagicMock()).list_users()
