"""Storage clients for archived container logs."""

from .base import LogStream, StorageClient, StorageObject
from .local import LocalStorageClient

__all__ = ["LogStream", "StorageClient", "StorageObject", "LocalStorageClient"]
