"""
Content eviction: delete every object under a bucket or prefix.

Two tiers:

1. Bulk path. A producer task streams the recursive listing into an
   unbounded queue while the consumer batches identities into
   DeleteObjects calls (governance bypass requested). Any listing error,
   per-object failure or transport failure makes the whole pass a failure.
2. One-by-one path. A fresh listing is deleted object by object (exact
   version ids) with at most ``parallelism`` deletes in flight. Failures
   are counted, never abort siblings, and are reported once every
   dispatched delete has finished.

The caller only removes the marker or bucket after one tier fully succeeds.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from common.errors import BulkDeleteError, EvictionError, ListingError, PartialEvictionError
from common.inflight_semaphore import InflightSemaphore
from configuration import BULK_DELETE_BATCH_SIZE, DELETE_PARALLELISM, LIST_OBJECT_VERSIONS

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class DeletionUnit:
    """An object key plus the version id it had when listed."""

    key: str
    version_id: str = ""

    def identifier(self) -> Dict[str, str]:
        ident = {"Key": self.key}
        if self.version_id:
            ident["VersionId"] = self.version_id
        return ident


class BulkDeleteStatus(enum.Enum):
    SUCCESS = "success"
    LISTING_ERROR = "listing-error"
    PARTIAL_DELETE_ERROR = "partial-delete-error"
    TRANSPORT_ERROR = "transport-error"


@dataclass
class BulkDeleteResult:
    """Outcome of one bulk pass."""

    status: BulkDeleteStatus
    deleted: int = 0
    failed: int = 0
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status is BulkDeleteStatus.SUCCESS


@dataclass(frozen=True)
class EvictionReport:
    """Summary of a successful eviction."""

    scope: str
    path: str
    deleted: int


class EvictionTally:
    """Attempted/failed counters shared by concurrent delete tasks."""

    def __init__(self):
        self.attempted = 0
        self.failed = 0
        self._lock = asyncio.Lock()

    async def record(self, success: bool) -> None:
        async with self._lock:
            self.attempted += 1
            if not success:
                self.failed += 1


# Marks the end of the listing stream in the producer/consumer queue
_END_OF_LISTING = object()


def scope_of(bucket: str, prefix: str) -> str:
    return f"{bucket}/{prefix}" if prefix else bucket


class ContentEvictor:
    """Empties a bucket or prefix through a shared S3 client handle."""

    def __init__(
        self,
        client: Any,
        parallelism: int = None,
        batch_size: int = None,
        list_versions: bool = None,
    ):
        """Initialize the evictor.

        Args:
            client: aiobotocore S3 client (safe for concurrent use)
            parallelism: Max in-flight deletes of the fallback (default: from configuration)
            batch_size: Max identities per DeleteObjects call (default: from configuration)
            list_versions: List object versions instead of latest objects (default: from configuration)
        """
        self.client = client
        self.parallelism = DELETE_PARALLELISM if parallelism is None else parallelism
        self.batch_size = BULK_DELETE_BATCH_SIZE if batch_size is None else batch_size
        self.list_versions = LIST_OBJECT_VERSIONS if list_versions is None else list_versions
        if self.parallelism < 1:
            raise ValueError(f"parallelism must be at least 1, got {self.parallelism}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")

    async def evict(self, bucket: str, prefix: str = "") -> EvictionReport:
        """Delete every object under ``bucket``/``prefix``.

        Returns:
            EvictionReport of the tier that succeeded

        Raises:
            EvictionError: Both tiers failed; carries the bulk path error first
        """
        scope = scope_of(bucket, prefix)

        result = await self.bulk_delete(bucket, prefix)
        if result.ok:
            logger.info(f"Removed {result.deleted} objects of path {scope} with bulk delete")
            return EvictionReport(scope=scope, path="bulk", deleted=result.deleted)

        logger.warning(
            f"Bulk delete of path {scope} failed ({result.status.value}) with: {result.error}, "
            f"will try removing objects one by one"
        )

        try:
            deleted = await self.delete_one_by_one(bucket, prefix)
        except (ListingError, PartialEvictionError) as fallback_error:
            logger.error(f"One-by-one removal of path {scope} failed too: {fallback_error}")
            raise EvictionError(scope, result.error, fallback_error) from result.error

        logger.info(f"Removed {deleted} objects of path {scope} one by one")
        return EvictionReport(scope=scope, path="one-by-one", deleted=deleted)

    # =========================================================================
    # Listing
    # =========================================================================

    async def iter_objects(self, bucket: str, prefix: str = "") -> AsyncIterator[DeletionUnit]:
        """Stream every object (or object version) under a prefix, page by page."""
        if self.list_versions:
            paginator = self.client.get_paginator("list_object_versions")
            async for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for entry in page.get("Versions", []) + page.get("DeleteMarkers", []):
                    yield DeletionUnit(entry["Key"], entry.get("VersionId") or "")
        else:
            paginator = self.client.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for entry in page.get("Contents", []):
                    yield DeletionUnit(entry["Key"])

    async def _produce(self, bucket: str, prefix: str, queue: asyncio.Queue) -> Optional[Exception]:
        """Feed the listing into the queue; return the enumeration error, if any."""
        listing_error = None
        try:
            async for unit in self.iter_objects(bucket, prefix):
                queue.put_nowait(unit)
        except Exception as e:
            logger.error(f"Error listing objects of path {scope_of(bucket, prefix)}: {e}")
            listing_error = e
        finally:
            queue.put_nowait(_END_OF_LISTING)
        return listing_error

    # =========================================================================
    # Bulk path
    # =========================================================================

    async def bulk_delete(self, bucket: str, prefix: str = "") -> BulkDeleteResult:
        """Run one streaming DeleteObjects pass and classify its outcome."""
        scope = scope_of(bucket, prefix)
        queue: asyncio.Queue = asyncio.Queue()
        producer = asyncio.create_task(self._produce(bucket, prefix, queue))
        deleted = 0
        failed = 0

        try:
            listing_done = False
            while not listing_done:
                batch: List[DeletionUnit] = []
                item = await queue.get()
                # Take whatever else is already listed, up to one request's worth
                while item is not _END_OF_LISTING:
                    batch.append(item)
                    if len(batch) >= self.batch_size or queue.empty():
                        break
                    item = queue.get_nowait()
                if item is _END_OF_LISTING:
                    listing_done = True
                    listing_error = await producer
                    if listing_error is not None:
                        return BulkDeleteResult(
                            BulkDeleteStatus.LISTING_ERROR, deleted, failed, ListingError(scope, listing_error)
                        )

                if batch:
                    try:
                        response = await self.client.delete_objects(
                            Bucket=bucket,
                            Delete={"Objects": [u.identifier() for u in batch], "Quiet": True},
                            BypassGovernanceRetention=True,
                        )
                    except Exception as e:
                        logger.error(f"DeleteObjects request for path {scope} failed: {e}")
                        return BulkDeleteResult(BulkDeleteStatus.TRANSPORT_ERROR, deleted, failed, e)

                    errors = response.get("Errors", [])
                    for err in errors:
                        logger.error(
                            f"Failed to remove object {err.get('Key')}, "
                            f"error: {err.get('Code')} {err.get('Message')}"
                        )
                    failed += len(errors)
                    deleted += len(batch) - len(errors)

            if failed:
                return BulkDeleteResult(
                    BulkDeleteStatus.PARTIAL_DELETE_ERROR, deleted, failed, BulkDeleteError(scope, failed)
                )
            return BulkDeleteResult(BulkDeleteStatus.SUCCESS, deleted, failed)
        finally:
            if not producer.done():
                producer.cancel()
                await asyncio.gather(producer, return_exceptions=True)

    # =========================================================================
    # One-by-one path
    # =========================================================================

    async def _delete_unit(
        self, bucket: str, unit: DeletionUnit, semaphore: InflightSemaphore, tally: EvictionTally
    ) -> None:
        try:
            kwargs = {"Bucket": bucket, "Key": unit.key}
            if unit.version_id:
                kwargs["VersionId"] = unit.version_id
            await self.client.delete_object(**kwargs)
            await tally.record(True)
        # CancelledError is not an Exception and still aborts the task
        except Exception as e:
            logger.error(f"Failed to remove object {unit.key}, error: {e}")
            await tally.record(False)
        finally:
            await semaphore.release()

    async def delete_one_by_one(self, bucket: str, prefix: str = "") -> int:
        """Delete a fresh listing object by object with bounded parallelism.

        Returns:
            Number of objects deleted

        Raises:
            ListingError: The fresh listing failed
            PartialEvictionError: At least one object could not be deleted
        """
        scope = scope_of(bucket, prefix)
        semaphore = InflightSemaphore(self.parallelism)
        tally = EvictionTally()
        pending: Set[asyncio.Task] = set()
        listing_error = None

        try:
            try:
                async for unit in self.iter_objects(bucket, prefix):
                    await semaphore.acquire()
                    task = asyncio.create_task(self._delete_unit(bucket, unit, semaphore, tally))
                    pending.add(task)
                    task.add_done_callback(pending.discard)
            except Exception as e:
                logger.error(f"Error listing objects of path {scope}: {e}")
                listing_error = e

            await asyncio.gather(*pending)
        except asyncio.CancelledError:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise

        await semaphore.wait_idle()
        logger.debug(f"One-by-one removal of path {scope} finished: {semaphore!r}")

        if listing_error is not None:
            raise ListingError(scope, listing_error)
        if tally.failed:
            raise PartialEvictionError(scope, tally.failed, tally.attempted)
        return tally.attempted
