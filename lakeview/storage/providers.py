"""Lazily built, process-wide client handles for each backend."""

import configparser
import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import requests
from google.auth import default as google_auth_default
from google.auth import load_credentials_from_file
from google.auth.exceptions import DefaultCredentialsError
from google.auth.impersonated_credentials import Credentials as ImpersonatedCredentials
from google.auth.transport.requests import AuthorizedSession
from google.cloud.storage import Client
from requests_aws4auth import AWS4Auth

from lakeview.config import GcsConfig, HttpConfig, S3Config
from lakeview.exceptions import ConfigurationError
from lakeview.transport import mount_retry_adapter

logger = logging.getLogger(__name__)

DEFAULT_AWS_REGION = "us-east-1"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
# upper bound accepted by the IAM credentials API
IMPERSONATED_TOKEN_LIFETIME_SECONDS = 3600


class ClientProvider(ABC):
    """Builds a backend client once and hands the same instance to every caller.

    The first call to ``get_client`` constructs the client under a lock; callers
    racing with it wait and then see the finished client. A failed construction
    is remembered and the same exception is raised on every later call.
    """

    def __init__(self, http_config: HttpConfig | None = None):
        self.http_config = http_config or HttpConfig()
        self._lock = threading.Lock()
        self._client: Any = None
        self._error: Exception | None = None

    @abstractmethod
    def _create_client(self) -> Any:
        """Build the backend client, raising ConfigurationError for bad settings."""
        raise NotImplementedError

    def _new_session(self, session: requests.Session) -> requests.Session:
        self.http_config.validate()
        return mount_retry_adapter(
            session,
            max_attempts=self.http_config.max_attempts,
            retry_delay=self.http_config.retry_delay,
            timeout=self.http_config.timeout_seconds,
        )

    def get_client(self) -> Any:
        client = self._client
        if client is not None:
            return client
        with self._lock:
            if self._client is None and self._error is None:
                try:
                    self._client = self._create_client()
                except Exception as e:
                    self._error = e
            if self._error is not None:
                raise self._error
            return self._client


@dataclass(frozen=True)
class S3Client:
    """Signed HTTP session bound to an S3 endpoint."""

    session: requests.Session
    endpoint: str
    region: str

    def bucket_url(self, bucket: str) -> str:
        return f"{self.endpoint}/{bucket}"


class S3ClientProvider(ClientProvider):
    """Provides the shared S3 client."""

    def __init__(self, config: S3Config, http_config: HttpConfig | None = None):
        super().__init__(http_config)
        self.config = config

    def _read_credentials_file(self) -> tuple[str, str, str | None]:
        path = self.config.credentials_file
        parser = configparser.ConfigParser()
        try:
            with open(path) as f:
                parser.read_file(f)
        except (OSError, configparser.Error) as e:
            raise ConfigurationError(f"Error reading AWS credentials file {path}") from e

        if not parser.has_section(self.config.profile):
            raise ConfigurationError(f"Profile '{self.config.profile}' not found in {path}")
        section = parser[self.config.profile]
        try:
            return (
                section["aws_access_key_id"],
                section["aws_secret_access_key"],
                section.get("aws_session_token"),
            )
        except KeyError as e:
            raise ConfigurationError(f"Missing {e} in profile '{self.config.profile}' of {path}") from e

    def _resolve_credentials(self) -> tuple[str, str, str | None]:
        """Credentials file first, then inline keys, then the environment."""
        if self.config.credentials_file is not None:
            return self._read_credentials_file()
        if self.config.access_key:
            return self.config.access_key, self.config.secret_key, None

        access_key = os.environ.get("AWS_ACCESS_KEY_ID")
        secret_key = os.environ.get("AWS_SECRET_ACCESS_KEY")
        if not (access_key and secret_key):
            raise ConfigurationError(
                "No AWS credentials found: set credentials_file, access_key/secret_key "
                "or AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY"
            )
        return access_key, secret_key, os.environ.get("AWS_SESSION_TOKEN")

    def _create_client(self) -> S3Client:
        logger.debug("Instantiating S3 storage client")
        self.config.validate()

        region = self.config.region or DEFAULT_AWS_REGION
        endpoint = (self.config.endpoint or f"https://s3.{region}.amazonaws.com").rstrip("/")
        access_key, secret_key, session_token = self._resolve_credentials()

        session = self._new_session(requests.Session())
        session.auth = AWS4Auth(access_key, secret_key, region, "s3", session_token=session_token)
        # Disable automatic redirect following
        session.max_redirects = 0
        return S3Client(session=session, endpoint=endpoint, region=region)


class GcsClientProvider(ClientProvider):
    """Provides the shared GCS client."""

    def __init__(self, config: GcsConfig, http_config: HttpConfig | None = None):
        super().__init__(http_config)
        self.config = config

    def _load_credentials(self) -> tuple[Any, str | None]:
        key_path = self.config.service_account_key_path
        if key_path is None:
            # https://cloud.google.com/docs/authentication/provide-credentials-adc
            try:
                return google_auth_default(scopes=[CLOUD_PLATFORM_SCOPE])
            except DefaultCredentialsError as e:
                raise ConfigurationError("No Application Default Credentials available") from e

        try:
            credentials, project = load_credentials_from_file(key_path, scopes=[CLOUD_PLATFORM_SCOPE])
        except (OSError, DefaultCredentialsError) as e:
            raise ConfigurationError(f"Error reading service account JSON key file {key_path}") from e

        target = self.config.impersonate_service_account
        logger.debug("Impersonating service account %s", target)
        credentials = ImpersonatedCredentials(
            source_credentials=credentials,
            target_principal=target,
            target_scopes=[CLOUD_PLATFORM_SCOPE],
            lifetime=IMPERSONATED_TOKEN_LIFETIME_SECONDS,
        )
        return credentials, project

    def _create_client(self) -> Client:
        logger.debug("Instantiating GCS storage client")
        self.config.validate()

        credentials, project = self._load_credentials()
        session = self._new_session(AuthorizedSession(credentials))
        return Client(
            project=self.config.project_id or project,
            credentials=credentials,
            _http=session,
        )
