"""
Async S3 client for provisioning, emptying and removing volume buckets and prefixes.
"""

import logging
from typing import Any, Optional

import aioboto3
from botocore import UNSIGNED
from botocore.config import Config
from botocore.exceptions import ClientError

from common.errors import ConfigurationError
from configuration import (
    CONNECT_TIMEOUT_SECONDS,
    MAX_POOL_CONNECTIONS,
    MAX_RETRIES,
    METADATA_NAME,
    READ_TIMEOUT_SECONDS,
    RETRY_MODE,
)
from persistence.fsmeta import FSMeta
from storage.config import S3Config
from storage.eviction import ContentEvictor, EvictionReport

logger = logging.getLogger(__name__)

# Error codes S3 implementations use for a missing bucket on HEAD
_NOT_FOUND_CODES = ("404", "NoSuchBucket", "NotFound")


def normalize_prefix(prefix: str) -> str:
    """Strip trailing slashes so "vol-a/" and "vol-a" name the same prefix."""
    return prefix.rstrip("/")


def marker_key(prefix: str) -> str:
    return prefix + "/"


def metadata_key(prefix: str) -> str:
    prefix = normalize_prefix(prefix)
    return f"{prefix}/{METADATA_NAME}" if prefix else METADATA_NAME


class S3Client:
    """Storage client bound to exactly one endpoint and one set of credentials.

    The client holds no listing or object cache. The underlying aiobotocore
    handle is opened by the async context manager; no request is sent
    before the first real operation.
    """

    def __init__(
        self,
        config: S3Config,
        endpoint_url: str,
        use_ssl: bool,
        session: Optional[aioboto3.Session] = None,
        client: Any = None,
    ):
        """Initialize the client.

        Args:
            config: Resolved connection settings
            endpoint_url: scheme://host[:port] of the storage endpoint
            use_ssl: Whether the endpoint is reached over TLS
            session: aioboto3 session carrying the static credentials
            client: Already opened S3 handle (skips the context manager setup)
        """
        self.config = config
        self.endpoint_url = endpoint_url
        self.use_ssl = use_ssl
        self.session = session
        self.client = client
        self._client_context = None
        self._config = self._create_config()
        self._evictor = ContentEvictor(client) if client is not None else None

        logger.info(f"Initialized S3 client for {endpoint_url} (region={config.region or 'default'})")

    @property
    def anonymous(self) -> bool:
        return not self.config.access_key_id and not self.config.secret_access_key

    def _create_config(self) -> Config:
        """Create the botocore config shared by every request of this client."""
        options = dict(
            max_pool_connections=MAX_POOL_CONNECTIONS,
            connect_timeout=CONNECT_TIMEOUT_SECONDS,
            read_timeout=READ_TIMEOUT_SECONDS,
            retries={
                'max_attempts': MAX_RETRIES,
                'mode': RETRY_MODE,
            },
            # Most S3-compatible stores only serve path-style requests
            s3={'addressing_style': 'path'},
        )
        if self.anonymous:
            options['signature_version'] = UNSIGNED
        return Config(**options)

    async def __aenter__(self):
        """Async context manager entry."""
        if self.client is None:
            self._client_context = self.session.client(
                "s3",
                endpoint_url=self.endpoint_url,
                use_ssl=self.use_ssl,
                region_name=self.config.region or None,
                config=self._config,
            )
            self.client = await self._client_context.__aenter__()
            self._evictor = ContentEvictor(self.client)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._client_context is not None:
            await self._client_context.__aexit__(exc_type, exc_val, exc_tb)
            self._client_context = None
            self.client = None
            self._evictor = None

    def _ensure_client(self) -> Any:
        if self.client is None:
            raise RuntimeError("Storage client not initialized. Use async context manager.")
        return self.client

    # =========================================================================
    # Bucket / prefix lifecycle
    # =========================================================================

    async def bucket_exists(self, bucket_name: str) -> bool:
        """Return True iff the backend reports the bucket present.

        Errors other than "not found" (access denied, network, ...) propagate.
        """
        client = self._ensure_client()
        try:
            await client.head_bucket(Bucket=bucket_name)
            return True
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', '')
            status_code = e.response.get('ResponseMetadata', {}).get('HTTPStatusCode', 0)
            if status_code == 404 or error_code in _NOT_FOUND_CODES:
                return False
            raise

    async def create_bucket(self, bucket_name: str) -> None:
        """Create the bucket in the configured region.

        "Already exists" errors are not suppressed.
        """
        client = self._ensure_client()
        kwargs = {"Bucket": bucket_name}
        # us-east-1 is the implicit location and must not be sent as a constraint
        if self.config.region and self.config.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.config.region}
        await client.create_bucket(**kwargs)
        logger.info(f"Created bucket {bucket_name}")

    async def create_prefix(self, bucket_name: str, prefix: str) -> None:
        """Write the zero-length directory marker of a prefix; no-op for an empty prefix."""
        prefix = normalize_prefix(prefix)
        if not prefix:
            return
        client = self._ensure_client()
        await client.put_object(Bucket=bucket_name, Key=marker_key(prefix), Body=b"")
        logger.info(f"Created prefix {bucket_name}/{prefix}")

    async def remove_prefix(self, bucket_name: str, prefix: str) -> EvictionReport:
        """Evict everything under the prefix, then remove its marker.

        The bucket itself is left in place. An empty prefix evicts the whole
        bucket's contents.

        Raises:
            EvictionError: Objects may remain; the marker was not removed
        """
        client = self._ensure_client()
        prefix = normalize_prefix(prefix)
        list_prefix = marker_key(prefix) if prefix else ""
        report = await self._evictor.evict(bucket_name, list_prefix)
        if prefix:
            await client.delete_object(Bucket=bucket_name, Key=marker_key(prefix))
        logger.info(f"Removed prefix {bucket_name}/{prefix}")
        return report

    async def remove_bucket(self, bucket_name: str) -> EvictionReport:
        """Evict every object of the bucket, then remove the bucket.

        Raises:
            EvictionError: Objects may remain; the bucket was not removed
        """
        client = self._ensure_client()
        report = await self._evictor.evict(bucket_name, "")
        await client.delete_bucket(Bucket=bucket_name)
        logger.info(f"Removed bucket {bucket_name}")
        return report

    # =========================================================================
    # Volume metadata
    # =========================================================================

    async def set_fs_meta(self, meta: FSMeta) -> None:
        """Store the volume descriptor next to the volume's files."""
        client = self._ensure_client()
        body = meta.to_json().encode("utf-8")
        await client.put_object(
            Bucket=meta.bucket_name,
            Key=metadata_key(meta.prefix),
            Body=body,
            ContentType="application/json",
        )
        logger.debug(f"Stored metadata of {meta.bucket_name}/{meta.prefix}")

    async def get_fs_meta(self, bucket_name: str, prefix: str) -> FSMeta:
        """Load the volume descriptor stored under a prefix.

        Raises:
            ConfigurationError: The stored record is not a valid descriptor
        """
        client = self._ensure_client()
        response = await client.get_object(Bucket=bucket_name, Key=metadata_key(prefix))
        data = await response["Body"].read()
        try:
            return FSMeta.from_json(data)
        except (ValueError, TypeError, KeyError) as e:
            raise ConfigurationError(
                f"Invalid metadata {metadata_key(prefix)} in bucket {bucket_name}: {e}"
            ) from e
