"""CLI entry point: reconcile, list-users, promote-admin, inspect-permissions."""

from __future__ import annotations

import argparse
import importlib
import logging
import os
import sys

from scripts.usersync.config import load_config, load_credential_config
from scripts.usersync.db import Database, UserStore
from scripts.usersync.identity_source import FirebaseIdentitySource, iter_identity_pages
from scripts.usersync.logging_config import configure_logging
from scripts.usersync.models import Role
from scripts.usersync.permissions import DEFAULT_COLLECTION, FirestorePermissionStore, PermissionInspector
from scripts.usersync.reconciler import Reconciler

logger = logging.getLogger("usersync.cli")

CREDENTIALS_MODULE = "scripts.usersync.credentials"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NO_BOOTSTRAP = 2


def _load_resolver_class(module_path: str):
    """Import the credential bootstrap module. Returns None if it cannot be found."""
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        logger.error("Could not import credential bootstrap %s: %s", module_path, exc)
        return None
    resolver_cls = getattr(module, "CredentialResolver", None)
    if resolver_cls is None:
        logger.error("CredentialResolver not found in %s", module_path)
    return resolver_cls


def cmd_reconcile(args: argparse.Namespace) -> int:
    """Link every Firebase user to an application user by email."""
    from scripts.usersync.credentials import CredentialResolver

    db = None
    try:
        config = load_config()
        resolver = CredentialResolver(config.credentials)
        db = Database(config.database)
        reconciler = Reconciler(
            FirebaseIdentitySource(resolver.resolve()),
            UserStore(db, config.database.users_table),
            page_size=config.sync.page_size,
            default_role=config.sync.default_role,
            dry_run=args.dry_run,
        )
        result = reconciler.reconcile()
    except Exception as exc:
        logger.error("Reconciliation error: %s", exc, exc_info=True)
        return EXIT_FAILURE
    finally:
        if db is not None:
            db.close()

    print(f"Reconciliation complete. Processed {result.processed} Firebase users.")
    return EXIT_OK


def cmd_list_users(args: argparse.Namespace) -> int:
    """Print uid, email and display name for every Firebase user."""
    from scripts.usersync.credentials import CredentialResolver

    total = 0
    try:
        resolver = CredentialResolver(load_credential_config())
        source = FirebaseIdentitySource(resolver.resolve())
        for page in iter_identity_pages(source):
            for record in page.records:
                print(record.id, record.email or "<no-email>", record.display_name or "<no-name>")
                total += 1
    except Exception as exc:
        logger.error("Error listing Firebase users: %s", exc, exc_info=True)
        return EXIT_FAILURE

    print(f"\nTotal users: {total}")
    return EXIT_OK


def cmd_promote_admin(args: argparse.Namespace) -> int:
    """Give the application user linked to a Firebase uid the admin role."""
    db = None
    try:
        config = load_config()
        db = Database(config.database)
        store = UserStore(db, config.database.users_table)
        existing = store.get_by_google_id(args.uid)
        if existing is not None:
            store.update(existing.id, {"role": Role.ADMIN.value})
            logger.info("Promoted existing user %s to admin", existing.id, extra={"uid": args.uid})
            print(f"Promoted user {existing.id} ({existing.email or '<no-email>'}) to admin")
        else:
            created = store.upsert({
                "google_id": args.uid,
                "email": "",
                "name": "",
                "picture": None,
                "role": Role.ADMIN.value,
            })
            logger.info("Created admin user %s", created.id, extra={"uid": args.uid})
            print(f"Created admin user {created.id} linked to uid {args.uid}")
    except Exception as exc:
        logger.error("Promote admin failed: %s", exc, exc_info=True)
        return EXIT_FAILURE
    finally:
        if db is not None:
            db.close()
    return EXIT_OK


def cmd_inspect_permissions(args: argparse.Namespace) -> int:
    """Show sidebar permission documents. A missing document is not an error."""
    collection = os.environ.get("COLLECTION") or args.collection or DEFAULT_COLLECTION
    doc_id = os.environ.get("DOC_ID") or args.doc_id or None

    resolver_cls = _load_resolver_class(os.environ.get("CREDENTIALS_MODULE", CREDENTIALS_MODULE))
    if resolver_cls is None:
        return EXIT_NO_BOOTSTRAP

    try:
        resolver = resolver_cls(load_credential_config())
        inspector = PermissionInspector(FirestorePermissionStore(resolver.resolve()))
        if doc_id:
            inspector.inspect_document(collection, doc_id)
        else:
            inspector.inspect_collection(collection)
    except Exception as exc:
        logger.error(
            "Error checking user permissions: %s",
            exc,
            exc_info=True,
            extra={"collection": collection, "doc_id": doc_id},
        )
        return EXIT_FAILURE
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usersync",
        description="Firebase user reconciliation and permission inspection",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile_parser = subparsers.add_parser(
        "reconcile", help="Link Firebase Auth users to application users by email"
    )
    reconcile_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Look up users and report changes without writing",
    )
    reconcile_parser.set_defaults(func=cmd_reconcile)

    list_parser = subparsers.add_parser("list-users", help="List Firebase Auth users")
    list_parser.set_defaults(func=cmd_list_users)

    promote_parser = subparsers.add_parser(
        "promote-admin", help="Grant the admin role to the user linked to a Firebase uid"
    )
    promote_parser.add_argument("--uid", required=True, help="Firebase Auth uid")
    promote_parser.set_defaults(func=cmd_promote_admin)

    inspect_parser = subparsers.add_parser(
        "inspect-permissions", help="Print sidebar permission documents"
    )
    inspect_parser.add_argument(
        "collection",
        nargs="?",
        default=None,
        help=f"Collection name (default: {DEFAULT_COLLECTION}, env COLLECTION overrides)",
    )
    inspect_parser.add_argument(
        "doc_id",
        nargs="?",
        default=None,
        help="Read a single email-keyed document (env DOC_ID overrides)",
    )
    inspect_parser.set_defaults(func=cmd_inspect_permissions)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    try:
        configure_logging(
            os.environ.get("LOG_LEVEL", "INFO"),
            os.environ.get("LOG_FORMAT", "json"),
            command=args.command,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
