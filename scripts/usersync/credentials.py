"""Firebase Admin credential resolution.

Sources are tried in a fixed priority order and the first that resolves
wins:

  1. GOOGLE_APPLICATION_CREDENTIALS file
  2. first *.json file in the fallback credentials directory
  3. base64-encoded service account JSON
  4. raw service account JSON (malformed JSON is an error, not a fall-through)
  5. individual project id / client email / private key fields
  6. development mode: project id only, ambient gcloud credentials

Nothing is resolved until a command first needs Firebase, so a
misconfigured environment only fails the commands that actually use it.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials
from google.auth.exceptions import DefaultCredentialsError

from scripts.usersync.config import CredentialConfig
from scripts.usersync.errors import ConfigurationError, CredentialsNotFoundError

logger = logging.getLogger("usersync.credentials")

SOURCE_APPLICATION_DEFAULT = "application_default_path"
SOURCE_FALLBACK_FILE = "fallback_file"
SOURCE_BASE64 = "service_account_base64"
SOURCE_JSON = "service_account_json"
SOURCE_INDIVIDUAL_KEYS = "individual_keys"
SOURCE_DEVELOPMENT = "development"


@dataclass(frozen=True)
class CredentialSource:
    """The source picked by select_credential_source().

    ``info`` is a file path for the application-default source, a parsed
    service account dict for the certificate sources, and None for the
    development fallback.
    """

    name: str
    info: Any = None
    options: dict[str, Any] = field(default_factory=dict)


def _first_json_file(directory: str) -> Optional[dict[str, Any]]:
    if not os.path.isdir(directory):
        return None
    try:
        names = sorted(f for f in os.listdir(directory) if f.endswith(".json"))
        if not names:
            return None
        path = os.path.join(directory, names[0])
        with open(path, encoding="utf-8") as fh:
            parsed = json.load(fh)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable fallback credentials in %s: %s", directory, exc)
        return None
    if not isinstance(parsed, dict):
        logger.warning("Ignoring fallback credentials %s: not a JSON object", path)
        return None
    logger.debug("Found fallback credentials file %s", path)
    return parsed


def _parse_service_account(raw: str, what: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{what} must be a valid JSON string") from exc
    if not isinstance(parsed, dict):
        raise ConfigurationError(f"{what} must be a JSON object")
    return parsed


def select_credential_source(config: CredentialConfig) -> CredentialSource:
    """Pick the highest-priority source present in ``config``.

    Raises ConfigurationError when the chosen source is malformed and
    CredentialsNotFoundError when nothing is configured.
    """
    if config.application_default_credentials_path:
        return CredentialSource(SOURCE_APPLICATION_DEFAULT, config.application_default_credentials_path)

    if config.fallback_credentials_directory:
        parsed = _first_json_file(config.fallback_credentials_directory)
        if parsed is not None:
            return CredentialSource(SOURCE_FALLBACK_FILE, parsed)

    if config.base64_encoded_service_account:
        try:
            # `base64` wraps its output at 76 columns
            compact = "".join(config.base64_encoded_service_account.split())
            decoded = base64.b64decode(compact, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT_BASE64 is not valid base64") from exc
        return CredentialSource(
            SOURCE_BASE64, _parse_service_account(decoded, "FIREBASE_SERVICE_ACCOUNT_BASE64")
        )

    if config.service_account_json:
        return CredentialSource(
            SOURCE_JSON, _parse_service_account(config.service_account_json, "FIREBASE_SERVICE_ACCOUNT")
        )

    keys = config.individual_key_fields
    if keys:
        return CredentialSource(
            SOURCE_INDIVIDUAL_KEYS,
            {
                "type": "service_account",
                "project_id": keys.project_id,
                "client_email": keys.client_email,
                "private_key": keys.private_key.replace("\\n", "\n"),
                "token_uri": "https://oauth2.googleapis.com/token",
            },
        )

    if config.development_mode:
        return CredentialSource(SOURCE_DEVELOPMENT, options={"projectId": config.dev_project_id})

    raise CredentialsNotFoundError()


class CredentialResolver:
    """Lazily initialises one Firebase Admin app and hands it out.

    resolve() is idempotent: after the first success the cached app is
    returned without looking at the config again.
    """

    def __init__(self, config: CredentialConfig, app_name: str = "[DEFAULT]") -> None:
        self.config = config
        self.app_name = app_name
        self._app: Optional[firebase_admin.App] = None

    @property
    def resolved(self) -> bool:
        return self._app is not None

    def resolve(self) -> firebase_admin.App:
        if self._app is not None:
            return self._app

        try:
            self._app = firebase_admin.get_app(self.app_name)
            logger.debug("Reusing initialised Firebase app %s", self.app_name)
            return self._app
        except ValueError:
            pass

        logger.info(
            "Initialising Firebase Admin",
            extra={"source": ",".join(self._available_sources()) or "none"},
        )
        source = select_credential_source(self.config)
        try:
            self._app = self._initialize(source)
        except ConfigurationError as exc:
            if source.name != SOURCE_FALLBACK_FILE:
                raise
            logger.warning("Skipping fallback credentials file: %s", exc)
            source = select_credential_source(replace(self.config, fallback_credentials_directory=None))
            self._app = self._initialize(source)
        logger.info("Firebase Admin initialised", extra={"source": source.name})
        return self._app

    def _available_sources(self) -> list[str]:
        cfg = self.config
        present = {
            SOURCE_APPLICATION_DEFAULT: cfg.application_default_credentials_path,
            SOURCE_BASE64: cfg.base64_encoded_service_account,
            SOURCE_JSON: cfg.service_account_json,
            SOURCE_INDIVIDUAL_KEYS: cfg.individual_key_fields,
        }
        return [name for name, value in present.items() if value]

    def _initialize(self, source: CredentialSource) -> firebase_admin.App:
        if source.name == SOURCE_DEVELOPMENT:
            return self._initialize_development(source)

        try:
            cred = credentials.Certificate(source.info)
        except (ValueError, OSError) as exc:
            raise ConfigurationError(f"Invalid credentials from {source.name}: {exc}") from exc
        return firebase_admin.initialize_app(cred, source.options or None, name=self.app_name)

    def _initialize_development(self, source: CredentialSource) -> firebase_admin.App:
        project_id = source.options.get("projectId")
        logger.info("Development mode, trying application default credentials for project %s", project_id)
        try:
            cred = credentials.ApplicationDefault()
            cred.get_credential()
            return firebase_admin.initialize_app(cred, source.options, name=self.app_name)
        except (DefaultCredentialsError, ValueError) as exc:
            logger.warning("Application default credentials failed: %s", exc)
        raise CredentialsNotFoundError()
