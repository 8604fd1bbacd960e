"""
Parameter and secret store loading.

Parameters under a path are read recursively (decrypted) from AWS Systems
Manager; the last path segment becomes the setting name. An optional
Secrets Manager secret holding a JSON object is returned under ``secrets``.
A missing or unreadable secret is logged and skipped; a parameter store
failure propagates because the service cannot start without it.
"""

import json
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shared.errors import DependencyError
from shared.logging import get_logger

logger = get_logger("media.parameter_store")


def normalize_parameter_name(name: str) -> Optional[str]:
    """Return the last non-empty segment of a parameter path."""
    parts = [part for part in name.split("/") if part]
    return parts[-1] if parts else None


def load_parameters(
    path: str,
    region: Optional[str] = None,
    secret_id: Optional[str] = None,
    ssm_client: Any = None,
    secrets_client: Any = None,
) -> Dict[str, Any]:
    """Load parameters under ``path`` and merge the optional secret."""
    ssm = ssm_client or boto3.client("ssm", region_name=region)

    parameters: Dict[str, Any] = {}
    try:
        paginator = ssm.get_paginator("get_parameters_by_path")
        for page in paginator.paginate(Path=path, Recursive=True, WithDecryption=True):
            for parameter in page.get("Parameters", []):
                key = normalize_parameter_name(parameter.get("Name", ""))
                if key:
                    parameters[key] = parameter.get("Value")
    except (BotoCoreError, ClientError) as e:
        logger.error("Failed to load parameters", path=path, error=str(e))
        raise DependencyError("parameter-store", "Unable to load configuration", details={"path": path})

    logger.info("Loaded parameters", path=path, count=len(parameters))

    if secret_id:
        parameters["secrets"] = _load_secret(secret_id, region, secrets_client)

    return parameters


def _load_secret(secret_id: str, region: Optional[str], secrets_client: Any) -> Dict[str, Any]:
    client = secrets_client or boto3.client("secretsmanager", region_name=region)
    try:
        secret = client.get_secret_value(SecretId=secret_id)
    except (BotoCoreError, ClientError) as e:
        logger.warning("Failed to fetch secret value, continuing without secrets", error=str(e))
        return {}

    secret_string = secret.get("SecretString")
    if not secret_string:
        return {}
    try:
        value = json.loads(secret_string)
    except ValueError:
        logger.warning("Secret value is not JSON, ignoring", secret_id=secret_id)
        return {}
    return value if isinstance(value, dict) else {}
