"""Asynchronous listing and reading of S3 and GCS object stores."""

from lakeview.exceptions import (
    ConfigurationError,
    InvalidStorageUriError,
    NotFoundError,
    RateLimitError,
    StorageError,
    TransportError,
)

__all__ = [
    "ConfigurationError",
    "InvalidStorageUriError",
    "NotFoundError",
    "RateLimitError",
    "StorageError",
    "TransportError",
]
