"""Firebase Auth as a paginated identity source."""

from __future__ import annotations

import logging
from typing import Iterator, Optional

import firebase_admin
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError

from scripts.usersync.config import MAX_PAGE_SIZE
from scripts.usersync.errors import LookupFailure
from scripts.usersync.models import IdentityPage, IdentityRecord

logger = logging.getLogger("usersync.identity_source")


class FirebaseIdentitySource:
    """Lists Firebase Auth users one page at a time."""

    def __init__(self, app: firebase_admin.App) -> None:
        self.app = app

    def list_users(self, page_size: int = MAX_PAGE_SIZE, page_token: Optional[str] = None) -> IdentityPage:
        try:
            page = auth.list_users(page_token=page_token, max_results=page_size, app=self.app)
        except (FirebaseError, ValueError) as exc:
            raise LookupFailure(f"Listing Firebase users failed: {exc}") from exc

        records = [
            IdentityRecord(
                id=u.uid,
                email=u.email,
                display_name=u.display_name,
                photo_url=u.photo_url,
            )
            for u in page.users
        ]
        return IdentityPage(records=records, next_token=page.next_page_token or None)


def iter_identity_pages(source, page_size: int = MAX_PAGE_SIZE) -> Iterator[IdentityPage]:
    """Yield pages until the source stops returning a continuation token.

    Each page is requested only after the previous one has been consumed.
    """
    token: Optional[str] = None
    while True:
        page = source.list_users(page_size, token)
        logger.debug("Fetched %d identities", len(page.records))
        yield page
        token = page.next_token
        if not token:
            return
