"""Firebase Auth -> application user reconciliation.

For every Firebase identity with an email, make sure exactly one
application user with that email carries the identity's uid in google_id.
Matching is by exact email. Users are created or updated, never deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict

from scripts.usersync.config import MAX_PAGE_SIZE
from scripts.usersync.identity_source import iter_identity_pages
from scripts.usersync.models import IdentityRecord, Role

logger = logging.getLogger("usersync.reconciler")


@dataclass
class ReconcileResult:
    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class Reconciler:
    def __init__(
        self,
        identity_source,
        user_store,
        page_size: int = MAX_PAGE_SIZE,
        default_role: str = Role.USER.value,
        dry_run: bool = False,
    ) -> None:
        self.identity_source = identity_source
        self.user_store = user_store
        self.page_size = page_size
        self.default_role = default_role
        self.dry_run = dry_run

    def reconcile(self) -> ReconcileResult:
        """Walk every identity page and repair or create the matching users.

        Store and listing failures propagate; the run stops at the first one.
        """
        result = ReconcileResult()
        logger.info("Listing Firebase users", extra={"dry_run": self.dry_run})

        for page in iter_identity_pages(self.identity_source, self.page_size):
            for record in page.records:
                result.processed += 1
                self._reconcile_one(record, result)

        logger.info(
            "Reconciliation complete. Processed %d Firebase users",
            result.processed,
            extra={"counts": result.as_dict()},
        )
        return result

    def _reconcile_one(self, record: IdentityRecord, result: ReconcileResult) -> None:
        if not record.email:
            logger.debug("Skipping identity without email", extra={"uid": record.id})
            result.skipped += 1
            return

        existing = self.user_store.get_by_email(record.email)

        if existing is None:
            logger.info(
                "No user for email=%s, creating with googleId=%s",
                record.email,
                record.id,
                extra={"uid": record.id, "email": record.email},
            )
            if not self.dry_run:
                self.user_store.upsert({
                    "google_id": record.id,
                    "email": record.email,
                    "name": record.display_name or "",
                    "picture": record.photo_url or None,
                    "role": self.default_role,
                })
            result.created += 1
            return

        if existing.google_id == record.id:
            result.unchanged += 1
            return

        logger.info(
            "Updating user for email=%s: setting googleId=%s",
            record.email,
            record.id,
            extra={"uid": record.id, "email": record.email},
        )
        if not self.dry_run:
            self.user_store.update(existing.id, {"google_id": record.id})
        result.updated += 1
