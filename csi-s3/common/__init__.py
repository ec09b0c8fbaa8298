"""
Common utilities for the csi-s3 client.
"""

from .errors import ConfigurationError, EvictionError, FederationError, StorageError
from .inflight_semaphore import InflightSemaphore

__all__ = ['ConfigurationError', 'EvictionError', 'FederationError', 'InflightSemaphore', 'StorageError']
