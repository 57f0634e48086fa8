"""Shared fakes for the identity source, user store and permission store."""

from __future__ import annotations

import itertools

import pytest

from scripts.usersync.models import AppUser, IdentityPage, IdentityRecord


class FakeIdentitySource:
    """Serves pre-built pages, chained by tokens "page-1", "page-2", ..."""

    def __init__(self, pages: list[list[IdentityRecord]]) -> None:
        self.pages = pages
        self.calls: list[tuple[int, str | None]] = []

    def list_users(self, page_size: int = 1000, page_token: str | None = None) -> IdentityPage:
        self.calls.append((page_size, page_token))
        index = 0 if page_token is None else int(page_token.split("-")[1])
        next_token = f"page-{index + 1}" if index + 1 < len(self.pages) else None
        return IdentityPage(records=list(self.pages[index]), next_token=next_token)


class FakeUserStore:
    """In-memory user store that records every call and applies writes."""

    def __init__(self, users: list[AppUser] | None = None) -> None:
        self.users: dict[str, AppUser] = {u.id: u for u in users or []}
        self.calls: list[tuple] = []
        self._ids = itertools.count(1)

    @property
    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("update", "upsert")]

    def get_by_email(self, email: str) -> AppUser | None:
        self.calls.append(("get_by_email", email))
        return next((u for u in self.users.values() if u.email == email), None)

    def get_by_google_id(self, google_id: str) -> AppUser | None:
        self.calls.append(("get_by_google_id", google_id))
        return next((u for u in self.users.values() if u.google_id == google_id), None)

    def update(self, user_id: str, fields: dict) -> None:
        self.calls.append(("update", user_id, dict(fields)))
        current = self.users[user_id]
        self.users[user_id] = AppUser(
            id=current.id,
            email=fields.get("email", current.email),
            name=fields.get("name", current.name),
            google_id=fields.get("google_id", current.google_id),
            picture=fields.get("picture", current.picture),
            role=fields.get("role", current.role),
        )

    def upsert(self, fields: dict) -> AppUser:
        self.calls.append(("upsert", dict(fields)))
        linked = next((u for u in self.users.values() if u.google_id == fields["google_id"]), None)
        if linked is not None:
            # Same conflict rule as the SQL upsert: role is kept on an existing row.
            user = AppUser(
                id=linked.id,
                email=fields.get("email", linked.email),
                name=fields.get("name", linked.name),
                google_id=linked.google_id,
                picture=fields.get("picture", linked.picture),
                role=linked.role,
            )
            self.users[user.id] = user
            return user
        user = AppUser(id=f"new-{next(self._ids)}", **fields)
        self.users[user.id] = user
        return user


class FakePermissionStore:
    def __init__(self, collections: dict[str, dict[str, dict]] | None = None) -> None:
        self.collections = collections or {}

    def get_collection(self, name: str) -> list[tuple[str, dict]]:
        return list(self.collections.get(name, {}).items())

    def get_document(self, collection: str, doc_id: str) -> dict | None:
        return self.collections.get(collection, {}).get(doc_id)


@pytest.fixture
def user_store() -> FakeUserStore:
    return FakeUserStore()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the config layer reads and disable .env loading."""
    for name in (
        "GOOGLE_APPLICATION_CREDENTIALS",
        "FIREBASE_CREDENTIALS_DIR",
        "FIREBASE_SERVICE_ACCOUNT_BASE64",
        "FIREBASE_SERVICE_ACCOUNT",
        "FIREBASE_PRIVATE_KEY",
        "FIREBASE_CLIENT_EMAIL",
        "FIREBASE_PROJECT_ID",
        "FIREBASE_DEV_PROJECT_ID",
        "NODE_ENV",
        "DATABASE_URL",
        "RECONCILE_PAGE_SIZE",
        "DEFAULT_USER_ROLE",
        "USERS_TABLE",
        "COLLECTION",
        "DOC_ID",
        "CREDENTIALS_MODULE",
        "LOG_LEVEL",
        "LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("scripts.usersync.config.load_dotenv", lambda: None)
    return monkeypatch
