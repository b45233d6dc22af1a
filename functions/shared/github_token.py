"""
GitHub token lookup.

Prefers Secrets Manager (GITHUB_TOKEN_SECRET_ARN) and falls back to the
GITHUB_TOKEN environment variable.
"""

import json
import logging
import os
from typing import Optional

from botocore.exceptions import ClientError

from .aws_clients import get_secretsmanager
from .constants import GITHUB_TOKEN_SECRET_ARN

logger = logging.getLogger(__name__)

_cached_token: Optional[str] = None


def get_github_token(secret_arn: Optional[str] = None) -> Optional[str]:
    """Retrieve the GitHub token, caching it for the execution context."""
    global _cached_token

    if _cached_token:
        return _cached_token

    secret_arn = secret_arn or GITHUB_TOKEN_SECRET_ARN
    if not secret_arn:
        _cached_token = os.environ.get("GITHUB_TOKEN")
        if not _cached_token:
            logger.warning("Neither GITHUB_TOKEN_SECRET_ARN nor GITHUB_TOKEN configured")
        return _cached_token

    try:
        response = get_secretsmanager().get_secret_value(SecretId=secret_arn)
        secret_string = response["SecretString"]

        # Either {"token": "ghp_..."} or the plain token string
        try:
            secret = json.loads(secret_string)
            _cached_token = secret.get("token") if isinstance(secret, dict) else None
            _cached_token = _cached_token or secret_string
        except json.JSONDecodeError:
            _cached_token = secret_string

    except ClientError as e:
        logger.error(f"Failed to retrieve GitHub token: {e}")
        return os.environ.get("GITHUB_TOKEN")

    return _cached_token


def reset_token_cache() -> None:
    """Forget the cached token. Used in tests."""
    global _cached_token
    _cached_token = None
