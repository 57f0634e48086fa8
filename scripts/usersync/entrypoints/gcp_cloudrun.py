"""GCP Cloud Run Job entry point for user reconciliation.

The USERSYNC_COMMAND env var picks the command to run.

Usage:
  USERSYNC_COMMAND=reconcile python -m scripts.usersync.entrypoints.gcp_cloudrun
  USERSYNC_COMMAND=list-users python -m scripts.usersync.entrypoints.gcp_cloudrun
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from scripts.usersync.cli import cmd_list_users, cmd_reconcile
from scripts.usersync.logging_config import configure_logging

logger = logging.getLogger("usersync.cloudrun")

COMMANDS = {
    "reconcile": cmd_reconcile,
    "list-users": cmd_list_users,
}


def main() -> None:
    command = os.environ.get("USERSYNC_COMMAND", "reconcile")
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"), os.environ.get("LOG_FORMAT", "json"), command=command)
    handler = COMMANDS.get(command)
    if handler is None:
        logger.error("Unknown USERSYNC_COMMAND %r, expected one of %s", command, sorted(COMMANDS))
        sys.exit(1)

    logger.info("Cloud Run Job started for command=%s", command)
    args = argparse.Namespace(
        dry_run=os.environ.get("RECONCILE_DRY_RUN", "").lower() == "true",
    )
    sys.exit(handler(args))


if __name__ == "__main__":
    main()
