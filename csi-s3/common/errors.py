"""
Exception hierarchy for the csi-s3 object storage client.
"""

from typing import Dict, Optional, Type


class StorageError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(StorageError):
    """Invalid endpoint, secret bundle, credential shape or environment binding."""


# =============================================================================
# FEDERATION
# =============================================================================

class FederationError(StorageError):
    """Web identity federation failed.

    Unrecognised backend errors are raised as this class directly, with the
    backend code and message kept verbatim.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}" if code else message)


class MalformedPolicyDocumentError(FederationError):
    pass


class PackedPolicyTooLargeError(FederationError):
    pass


class IDPRejectedClaimError(FederationError):
    pass


class IDPCommunicationError(FederationError):
    pass


class InvalidIdentityTokenError(FederationError):
    pass


class ExpiredTokenError(InvalidIdentityTokenError):
    pass


class RegionDisabledError(FederationError):
    pass


# STS error codes -> exception classes
FEDERATION_ERRORS: Dict[str, Type[FederationError]] = {
    "MalformedPolicyDocument": MalformedPolicyDocumentError,
    "PackedPolicyTooLarge": PackedPolicyTooLargeError,
    "IDPRejectedClaim": IDPRejectedClaimError,
    "IDPCommunicationError": IDPCommunicationError,
    "InvalidIdentityToken": InvalidIdentityTokenError,
    "ExpiredTokenException": ExpiredTokenError,
    "RegionDisabledException": RegionDisabledError,
}


def federation_error(code: str, message: str) -> FederationError:
    """Build the named federation error for an STS error code."""
    return FEDERATION_ERRORS.get(code, FederationError)(code, message)


# =============================================================================
# EVICTION
# =============================================================================

class ListingError(StorageError):
    """Enumerating the objects under a bucket or prefix failed."""

    def __init__(self, scope: str, cause: Exception):
        self.scope = scope
        self.cause = cause
        super().__init__(f"Failed to list objects of path {scope}: {cause}")


class BulkDeleteError(StorageError):
    """The bulk delete call reported at least one per-object failure."""

    def __init__(self, scope: str, failed: int):
        self.scope = scope
        self.failed = failed
        super().__init__(f"Failed to remove all objects of path {scope} ({failed} failed)")


class PartialEvictionError(StorageError):
    """Some single-object deletes of the fallback path failed."""

    def __init__(self, scope: str, failed: int, total: int):
        self.scope = scope
        self.failed = failed
        self.total = total
        super().__init__(f"Failed to remove {failed} objects out of total {total} of path {scope}")


class EvictionError(StorageError):
    """Both the bulk path and the one-by-one fallback failed.

    The message and ``__cause__`` are those of the bulk path error; the
    fallback error is kept as ``fallback_error`` for diagnostics.
    """

    def __init__(self, scope: str, primary_error: Exception, fallback_error: Optional[Exception] = None):
        self.scope = scope
        self.primary_error = primary_error
        self.fallback_error = fallback_error
        super().__init__(str(primary_error))
