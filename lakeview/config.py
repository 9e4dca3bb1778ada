"""Configuration management using TOML."""

import re
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from lakeview.exceptions import ConfigurationError
from lakeview.transport import (
    HTTP_CLIENT_DEFAULT_TIMEOUT_SECONDS,
    HTTP_CLIENT_MAX_ATTEMPTS,
    HTTP_CLIENT_RETRY_DELAY_SECONDS,
)

# https://cloud.google.com/compute/docs/naming-resources#resource-name-format
RESOURCE_NAME_PATTERN = re.compile(r"^[a-z]([-a-z0-9]*[a-z0-9])$")


def _check_resource_name(kind: str, value: str | None) -> None:
    if value is not None and not RESOURCE_NAME_PATTERN.match(value):
        raise ConfigurationError(f"Invalid {kind}: {value!r}")


def _check_path(kind: str, value: str | None) -> None:
    if value is not None and not value.strip():
        raise ConfigurationError(f"Invalid {kind}: {value!r}")


@dataclass(frozen=True)
class HttpConfig:
    """Retry and timeout settings for the HTTP transport."""

    max_attempts: int = HTTP_CLIENT_MAX_ATTEMPTS
    retry_delay_ms: int = int(HTTP_CLIENT_RETRY_DELAY_SECONDS * 1000)
    timeout_seconds: float = HTTP_CLIENT_DEFAULT_TIMEOUT_SECONDS

    @property
    def retry_delay(self) -> float:
        return self.retry_delay_ms / 1000

    def validate(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(f"http.max_attempts must be at least 1, got {self.max_attempts}")
        if self.retry_delay_ms < 0:
            raise ConfigurationError(f"http.retry_delay_ms must not be negative, got {self.retry_delay_ms}")


@dataclass(frozen=True)
class S3Config:
    """Configuration for an S3-compatible backend."""

    region: str | None = None
    endpoint: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    # AWS shared credentials file (INI), read from `profile`
    credentials_file: str | None = None
    profile: str = "default"

    def validate(self) -> None:
        """Validate S3 configuration."""
        _check_resource_name("AWS region", self.region)
        _check_path("AWS credentials file path", self.credentials_file)
        if bool(self.access_key) != bool(self.secret_key):
            raise ConfigurationError("S3 access_key and secret_key must be set together")


@dataclass(frozen=True)
class GcsConfig:
    """Configuration for a GCS backend."""

    project_id: str | None = None
    service_account_key_path: str | None = None
    impersonate_service_account: str | None = None

    def validate(self) -> None:
        """Validate GCS configuration."""
        _check_resource_name("GCP project ID", self.project_id)
        _check_path("GCP service account key path", self.service_account_key_path)
        if self.service_account_key_path is not None and not self.impersonate_service_account:
            raise ConfigurationError(
                "GCP service account key path requires impersonate_service_account"
            )


@dataclass(frozen=True)
class FileSystemConfig:
    """Backend selection: exactly one of s3/gcs is expected."""

    s3: S3Config | None = None
    gcs: GcsConfig | None = None

    def validate(self) -> None:
        if (self.s3 is None) == (self.gcs is None):
            raise ConfigurationError("Config should have exactly one of filesystem.s3 / filesystem.gcs")


@dataclass(frozen=True)
class Config:
    """Complete configuration."""

    filesystem: FileSystemConfig
    http: HttpConfig = field(default_factory=HttpConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Build configuration from parsed TOML data."""
        fs_data = data.get("filesystem", {})
        try:
            s3 = S3Config(**fs_data["s3"]) if "s3" in fs_data else None
            gcs = GcsConfig(**fs_data["gcs"]) if "gcs" in fs_data else None
            http = HttpConfig(**data.get("http", {}))
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration key: {e}") from e
        return cls(filesystem=FileSystemConfig(s3=s3, gcs=gcs), http=http)

    @classmethod
    def from_file(cls, config_path: str | Path = "config.toml") -> "Config":
        """Load configuration from TOML file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e

        return cls.from_dict(data)

    def validate(self) -> None:
        """Validate the selected backend and HTTP settings."""
        self.filesystem.validate()
        self.http.validate()
        if self.filesystem.s3 is not None:
            self.filesystem.s3.validate()
        if self.filesystem.gcs is not None:
            self.filesystem.gcs.validate()
