"""Read-only inspection of Firestore sidebar permission documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

import firebase_admin
from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPIError

from scripts.usersync.errors import LookupFailure
from scripts.usersync.models import (
    MultiUserSidebarMap,
    PermissionRecord,
    SingleUserSidebar,
    classify_permission_document,
)

logger = logging.getLogger("usersync.permissions")

DEFAULT_COLLECTION = "userPermissions"

# Sidebar entries in the order the web app's sidebar shows them.
CANONICAL_KEYS = (
    "settings",
    "projects-summary",
    "dashboard",
    "financial-dashboard",
    "document-search",
    "n8n-vector-search",
    "ai-search",
    "projects/info-center",
)

SEPARATOR = "-----"


class FirestorePermissionStore:
    def __init__(self, app: firebase_admin.App) -> None:
        self.client = firestore.client(app=app)

    def get_collection(self, name: str) -> list[tuple[str, dict[str, Any]]]:
        try:
            return [(snap.id, snap.to_dict() or {}) for snap in self.client.collection(name).stream()]
        except GoogleAPIError as exc:
            raise LookupFailure(f"Reading collection {name} failed: {exc}") from exc

    def get_document(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        try:
            snap = self.client.collection(collection).document(doc_id).get()
        except GoogleAPIError as exc:
            raise LookupFailure(f"Reading {collection}/{doc_id} failed: {exc}") from exc
        if not snap.exists:
            return None
        return snap.to_dict() or {}


def order_capability_keys(keys: Iterable[str]) -> tuple[list[str], list[str]]:
    """Split keys into (known keys in canonical order, extra keys sorted)."""
    present = set(keys)
    known = [k for k in CANONICAL_KEYS if k in present]
    extra = sorted(present.difference(CANONICAL_KEYS))
    return known, extra


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_sidebar(sidebar: dict[str, Any], mark_extra: bool = False) -> list[str]:
    known, extra = order_capability_keys(sidebar)
    lines = [f"  {k}: {_format_value(sidebar[k])}" for k in known]
    if extra and mark_extra:
        lines.append("  (extra keys)")
    lines.extend(f"  {k}: {_format_value(sidebar[k])}" for k in extra)
    return lines


@dataclass
class InspectionResult:
    found: bool = True
    records: list[PermissionRecord] = field(default_factory=list)


class PermissionInspector:
    """Prints permission documents for an operator. Never writes."""

    def __init__(self, store, out: Callable[[str], None] = print) -> None:
        self.store = store
        self.out = out

    def inspect_collection(self, collection: str = DEFAULT_COLLECTION) -> InspectionResult:
        self.out(f"Querying collection: {collection}")
        docs = self.store.get_collection(collection)
        if not docs:
            self.out("No documents found in collection.")
            return InspectionResult()

        records = [classify_permission_document(doc_id, data) for doc_id, data in docs]
        for record in records:
            self._print_single(record)
        self.out(SEPARATOR)
        self.out(f"Total documents: {len(records)}")
        logger.debug("Inspected %d documents", len(records), extra={"collection": collection})
        return InspectionResult(records=records)

    def inspect_document(self, collection: str, doc_id: str) -> InspectionResult:
        self.out(f"Reading document {collection}/{doc_id}")
        data = self.store.get_document(collection, doc_id)
        if data is None:
            self.out("Document not found")
            return InspectionResult(found=False)

        record = classify_permission_document(doc_id, data, keyed_by_email=True)
        self._print_multi(record)
        return InspectionResult(records=[record])

    def _print_single(self, record: SingleUserSidebar) -> None:
        self.out(SEPARATOR)
        self.out(f"docId: {record.doc_id}")
        self.out(f"email: {record.email}")
        self.out("sidebar:")
        for line in render_sidebar(record.sidebar, mark_extra=True):
            self.out(line)

    def _print_multi(self, record: MultiUserSidebarMap) -> None:
        self.out("Document fields:")
        for email, sidebar in record.entries.items():
            self.out(SEPARATOR)
            self.out(f"email (map key): {email}")
            self.out("sidebar:")
            for line in render_sidebar(sidebar):
                self.out(line)
