"""Storage client implementations."""

from lakeview.config import Config
from lakeview.executor import WorkerPool
from lakeview.storage.base import MAX_PAGE_SIZE, AsyncStorageClient
from lakeview.storage.gcs import GcsAsyncStorageClient
from lakeview.storage.models import EPOCH_ZERO, File, Page
from lakeview.storage.providers import GcsClientProvider, S3ClientProvider
from lakeview.storage.s3 import S3AsyncStorageClient


def create_storage_client(config: Config, pool: WorkerPool | None = None) -> AsyncStorageClient:
    """Get the storage client for the backend present in the configuration."""
    config.filesystem.validate()
    if config.filesystem.s3 is not None:
        return S3AsyncStorageClient(S3ClientProvider(config.filesystem.s3, config.http), pool)
    return GcsAsyncStorageClient(GcsClientProvider(config.filesystem.gcs, config.http), pool)


__all__ = [
    "AsyncStorageClient",
    "EPOCH_ZERO",
    "File",
    "GcsAsyncStorageClient",
    "GcsClientProvider",
    "MAX_PAGE_SIZE",
    "Page",
    "S3AsyncStorageClient",
    "S3ClientProvider",
    "create_storage_client",
]
