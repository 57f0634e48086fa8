"""Value types for identities, application users and permission documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class IdentityRecord:
    """A Firebase Auth user as seen by the reconciler."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class IdentityPage:
    records: list[IdentityRecord]
    next_token: Optional[str] = None


@dataclass(frozen=True)
class AppUser:
    """A row of the application's users table."""

    id: str
    email: str
    name: str = ""
    google_id: Optional[str] = None
    picture: Optional[str] = None
    role: str = Role.USER.value

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AppUser":
        return cls(
            id=str(row["id"]),
            email=row.get("email") or "",
            name=row.get("name") or "",
            google_id=row.get("google_id"),
            picture=row.get("picture"),
            role=row.get("role") or Role.USER.value,
        )


# ----------------------------------------------------------------------
# Permission documents
# ----------------------------------------------------------------------

NO_EMAIL = "<no-email>"


@dataclass(frozen=True)
class SingleUserSidebar:
    """A per-user permission document: ``{email, sidebar: {key: bool}}``."""

    doc_id: str
    email: str
    sidebar: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MultiUserSidebarMap:
    """A shared permission document mapping each email to its sidebar map."""

    doc_id: str
    entries: dict[str, dict[str, Any]] = field(default_factory=dict)


PermissionRecord = Union[SingleUserSidebar, MultiUserSidebarMap]


def _has_boolean_member(value: Any) -> bool:
    return isinstance(value, dict) and any(isinstance(v, bool) for v in value.values())


def classify_permission_document(
    doc_id: str, data: Optional[dict[str, Any]], keyed_by_email: bool = False
) -> PermissionRecord:
    """Turn a raw Firestore payload into a PermissionRecord.

    Collection documents are read as one user's sidebar. A single document
    fetched by id is read as an email -> sidebar map, keeping only fields
    whose value is a map with at least one boolean member.
    """
    data = data or {}
    if keyed_by_email:
        entries = {k: dict(v) for k, v in data.items() if _has_boolean_member(v)}
        return MultiUserSidebarMap(doc_id=doc_id, entries=entries)

    sidebar = data.get("sidebar")
    return SingleUserSidebar(
        doc_id=doc_id,
        email=data.get("email") or NO_EMAIL,
        sidebar=dict(sidebar) if isinstance(sidebar, dict) else {},
    )
