"""Secret references for credential and database settings.

A setting may hold its plaintext value or a reference into a cloud secret
manager, so service account JSON and private keys never need to sit in a
plain environment variable:

  - "aws-secret://name"          -> AWS Secrets Manager
  - "aws-secret://name#key"      -> one key of a JSON secret
  - "gcp-secret://name"          -> GCP Secret Manager, latest version
  - "gcp-secret://projects/..."  -> GCP Secret Manager, full resource name
"""

from __future__ import annotations

import json
import logging
import os
from typing import Optional

from scripts.usersync.errors import ConfigurationError

logger = logging.getLogger("usersync.secrets")

_AWS_PREFIX = "aws-secret://"
_GCP_PREFIX = "gcp-secret://"


def resolve_secret(value: str) -> str:
    """Return the plaintext for a literal value or a secret reference."""
    if value.startswith(_AWS_PREFIX):
        return _resolve_aws_secret(value[len(_AWS_PREFIX):])
    if value.startswith(_GCP_PREFIX):
        return _resolve_gcp_secret(value[len(_GCP_PREFIX):])
    return value


def secret_from_env(name: str) -> Optional[str]:
    """Read an environment variable and resolve it. Empty values count as unset."""
    raw = os.environ.get(name, "")
    if not raw:
        return None
    return resolve_secret(raw)


def _resolve_aws_secret(ref: str) -> str:
    import boto3

    secret_name, _, json_key = ref.partition("#")
    client = boto3.client(
        "secretsmanager", region_name=os.environ.get("AWS_REGION", "us-east-1")
    )
    logger.debug("Fetching AWS secret %s", secret_name)
    secret_string = client.get_secret_value(SecretId=secret_name)["SecretString"]

    if not json_key:
        return secret_string
    try:
        return str(json.loads(secret_string)[json_key])
    except (ValueError, KeyError) as exc:
        raise ConfigurationError(
            f"AWS secret {secret_name} has no JSON key {json_key!r}"
        ) from exc


def _resolve_gcp_secret(ref: str) -> str:
    from google.cloud import secretmanager

    if ref.startswith("projects/"):
        name = ref
    else:
        project = (
            os.environ.get("GCP_PROJECT_ID")
            or os.environ.get("FIREBASE_PROJECT_ID")
            or _gcp_project_from_metadata()
        )
        name = f"projects/{project}/secrets/{ref}/versions/latest"

    logger.debug("Fetching GCP secret %s", name)
    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": name})
    return response.payload.data.decode("UTF-8")


def _gcp_project_from_metadata() -> str:
    """Project id from the metadata server (Cloud Run, GCE)."""
    import requests

    try:
        resp = requests.get(
            "http://metadata.google.internal/computeMetadata/v1/project/project-id",
            headers={"Metadata-Flavor": "Google"},
            timeout=2,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ConfigurationError(
            "Cannot determine GCP project for secret lookup. Set GCP_PROJECT_ID."
        ) from exc
    return resp.text


def resolve_database_url() -> str:
    """DATABASE_URL if set, else a DSN assembled from the PG_* variables."""
    url = os.environ.get("DATABASE_URL", "")
    if url:
        return resolve_secret(url)

    host = os.environ.get("PG_HOST", "localhost")
    port = os.environ.get("PG_PORT", "5432")
    user = os.environ.get("PG_USER", "docmanager")
    password = resolve_secret(os.environ.get("PG_PASSWORD", "localdev-change-me"))
    database = os.environ.get("PG_DATABASE", "docmanager")

    return f"postgresql://{user}:{password}@{host}:{port}/{database}"
