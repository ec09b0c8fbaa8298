"""
Factory module for creating S3 client instances.
"""

import logging
from typing import Any, Mapping, Optional, Tuple
from urllib.parse import urlsplit

# Suppress boto3/botocore logging BEFORE importing any boto3-related modules
logging.getLogger('botocore').setLevel(logging.WARNING)
logging.getLogger('botocore.credentials').setLevel(logging.WARNING)
logging.getLogger('boto3').setLevel(logging.WARNING)
logging.getLogger('aioboto3').setLevel(logging.WARNING)
logging.getLogger('aiobotocore').setLevel(logging.WARNING)
logging.getLogger('urllib3').setLevel(logging.WARNING)
logging.getLogger('s3transfer').setLevel(logging.WARNING)

import aioboto3

from common.credentials import resolve_config
from common.errors import ConfigurationError
from storage.base import S3Client
from storage.config import S3Config

logger = logging.getLogger(__name__)


def parse_endpoint(endpoint: str) -> Tuple[str, bool]:
    """Split an endpoint URL into the handle's endpoint URL and its TLS flag.

    TLS is used iff the scheme is https. The port is kept only when the URL
    spells it out.

    Returns:
        Tuple of (scheme://host[:port], use_ssl)

    Raises:
        ConfigurationError: If the endpoint does not parse or has no host
    """
    try:
        parts = urlsplit(endpoint)
        port = parts.port
    except (ValueError, TypeError, AttributeError) as e:
        raise ConfigurationError(f"Invalid endpoint {endpoint!r}: {e}") from e

    hostname = parts.hostname
    if not hostname:
        raise ConfigurationError(f"Invalid endpoint {endpoint!r}: no host")

    use_ssl = parts.scheme == "https"
    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None:
        host = f"{host}:{port}"
    return f"{'https' if use_ssl else 'http'}://{host}", use_ssl


def _check_credentials(config: S3Config) -> None:
    """Reject credential shapes botocore cannot sign with."""
    if bool(config.access_key_id) != bool(config.secret_access_key):
        raise ConfigurationError("Access key ID and secret access key must be given together")
    if config.session_token and not config.access_key_id:
        raise ConfigurationError("Session token given without access key ID and secret access key")


def create_client(config: S3Config, client: Any = None) -> S3Client:
    """Create an S3 client bound to the configured endpoint.

    No request is sent here; connectivity shows on the first operation.

    Args:
        config: Resolved connection settings
        client: Already opened S3 handle to use instead of building one

    Returns:
        S3Client (open it with ``async with``)

    Raises:
        ConfigurationError: Unparseable endpoint or invalid credential shape
    """
    endpoint_url, use_ssl = parse_endpoint(config.endpoint)
    _check_credentials(config)

    session = aioboto3.Session(
        aws_access_key_id=config.access_key_id or None,
        aws_secret_access_key=config.secret_access_key or None,
        aws_session_token=config.session_token or None,
        region_name=config.region or None,
    )
    return S3Client(config, endpoint_url, use_ssl, session=session, client=client)


async def create_client_from_secret(
    secret: Mapping[str, str], sts_session: Optional[aioboto3.Session] = None
) -> S3Client:
    """Resolve credentials from a secret bundle and create the client for them."""
    config = await resolve_config(secret, session=sts_session)
    return create_client(config)
