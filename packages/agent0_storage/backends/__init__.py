"""Durable storage backends for registration and feedback documents."""

from .arweave import ArweaveBackend
from .base import BaseStorageBackend, is_quota_failure
from .interfaces import StorageBackend
from .ipfs import IpfsBackend

__all__ = [
    "ArweaveBackend",
    "BaseStorageBackend",
    "IpfsBackend",
    "StorageBackend",
    "is_quota_failure",
]
