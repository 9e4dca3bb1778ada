"""Errors raised by storage clients and their providers."""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConfigurationError(StorageError):
    """Backend configuration is invalid or credentials cannot be loaded."""
    pass


class InvalidStorageUriError(StorageError, ValueError):
    """URI does not match any supported storage scheme."""
    pass


class NotFoundError(StorageError):
    """Requested object does not exist."""
    pass


class TransportError(StorageError):
    """Network or HTTP failure that outlived the retry budget."""
    pass


class RateLimitError(TransportError):
    """Backend is throttling requests."""
    pass
