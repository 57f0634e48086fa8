"""Configuration via environment variables with cloud secret support.

Environment access happens only here. Everything downstream receives the
frozen dataclasses built by load_config() / load_credential_config().
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from scripts.usersync.secrets import resolve_database_url, secret_from_env

# Project used by the development-only fallback that relies on ambient
# gcloud credentials.
DEV_PROJECT_ID = "gorkemapp"
DEFAULT_FALLBACK_DIR = os.path.join("dist", "credentials")
MAX_PAGE_SIZE = 1000


@dataclass(frozen=True)
class IndividualKeyFields:
    project_id: str
    client_email: str
    private_key: str  # may still contain literal "\n" sequences


@dataclass(frozen=True)
class CredentialConfig:
    """One optional field per credential source, in priority order."""

    application_default_credentials_path: Optional[str] = None
    fallback_credentials_directory: Optional[str] = None
    base64_encoded_service_account: Optional[str] = None
    service_account_json: Optional[str] = None
    individual_key_fields: Optional[IndividualKeyFields] = None
    development_mode: bool = False
    dev_project_id: str = DEV_PROJECT_ID


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    min_connections: int = 1
    max_connections: int = 4
    users_table: str = "users"


@dataclass(frozen=True)
class SyncConfig:
    page_size: int = MAX_PAGE_SIZE
    default_role: str = "user"


@dataclass(frozen=True)
class UserSyncConfig:
    credentials: CredentialConfig
    database: DatabaseConfig
    sync: SyncConfig = field(default_factory=SyncConfig)


def load_credential_config() -> CredentialConfig:
    """Build the credential config from the environment. Never raises for missing sources."""
    load_dotenv()

    individual = None
    private_key = secret_from_env("FIREBASE_PRIVATE_KEY")
    client_email = os.environ.get("FIREBASE_CLIENT_EMAIL")
    project_id = os.environ.get("FIREBASE_PROJECT_ID")
    if private_key and client_email and project_id:
        individual = IndividualKeyFields(
            project_id=project_id,
            client_email=client_email,
            private_key=private_key,
        )

    return CredentialConfig(
        application_default_credentials_path=os.environ.get("GOOGLE_APPLICATION_CREDENTIALS") or None,
        fallback_credentials_directory=os.environ.get(
            "FIREBASE_CREDENTIALS_DIR",
            os.path.join(os.getcwd(), DEFAULT_FALLBACK_DIR),
        ),
        base64_encoded_service_account=secret_from_env("FIREBASE_SERVICE_ACCOUNT_BASE64"),
        service_account_json=secret_from_env("FIREBASE_SERVICE_ACCOUNT"),
        individual_key_fields=individual,
        development_mode=os.environ.get("NODE_ENV", "") == "development",
        dev_project_id=os.environ.get("FIREBASE_DEV_PROJECT_ID", DEV_PROJECT_ID),
    )


def load_config() -> UserSyncConfig:
    """Load credential, database and sync settings from the environment."""
    load_dotenv()

    database = DatabaseConfig(
        url=resolve_database_url(),
        min_connections=int(os.environ.get("DB_MIN_CONNECTIONS", "1")),
        max_connections=int(os.environ.get("DB_MAX_CONNECTIONS", "4")),
        users_table=os.environ.get("USERS_TABLE", "users"),
    )

    page_size = int(os.environ.get("RECONCILE_PAGE_SIZE", str(MAX_PAGE_SIZE)))
    sync = SyncConfig(
        page_size=max(1, min(page_size, MAX_PAGE_SIZE)),
        default_role=os.environ.get("DEFAULT_USER_ROLE", "user"),
    )

    return UserSyncConfig(
        credentials=load_credential_config(),
        database=database,
        sync=sync,
    )
