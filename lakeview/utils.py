"""Storage URI parsing helpers."""

import re
from enum import Enum

from lakeview.exceptions import InvalidStorageUriError

PATH_SEPARATOR = "/"

# typical s3 path: "s3://bucket-name/path/to/object"
S3_PATH_PATTERN = re.compile(r"^s3://([^/]+)(?:/(.*))?$")
# gcs path: "gs://bucket-name/path/to/object"
GCS_PATH_PATTERN = re.compile(r"^gs://([^/]+)(?:/(.*))?$")


class Backend(Enum):
    """Object store backends, keyed by URI scheme."""

    S3 = "s3"
    GCS = "gs"

    @property
    def pattern(self) -> re.Pattern:
        return S3_PATH_PATTERN if self is Backend.S3 else GCS_PATH_PATTERN


def _match(uri: str) -> tuple[Backend, re.Match]:
    """Match a URI against the known schemes."""
    matches = [
        (backend, m)
        for backend in Backend
        if (m := backend.pattern.match(uri or "")) is not None
    ]
    if len(matches) != 1:
        raise InvalidStorageUriError(
            f"Invalid storage URI '{uri}': expected s3://<bucket>/<key> or gs://<bucket>/<key>"
        )
    return matches[0]


def classify_backend(uri: str) -> Backend:
    """Return the backend a URI belongs to."""
    backend, _ = _match(uri)
    return backend


def extract_bucket(uri: str) -> str:
    """Return the bucket name, everything up to the first '/' after the scheme."""
    _, m = _match(uri)
    return m.group(1)


def extract_key(uri: str) -> str:
    """Return the object key without any leading separators."""
    _, m = _match(uri)
    return (m.group(2) or "").lstrip(PATH_SEPARATOR)


def normalize_prefix(prefix: str | None) -> str:
    """Drop leading separators and make sure a non-root prefix ends with one.

    Without the trailing separator a listing of "tables" would also return
    siblings such as "tables_old/".
    """
    prefix = (prefix or "").lstrip(PATH_SEPARATOR)
    if prefix and not prefix.endswith(PATH_SEPARATOR):
        prefix += PATH_SEPARATOR
    return prefix


def extract_prefix(uri: str) -> str:
    """Return the normalized key prefix of a directory URI."""
    return normalize_prefix(extract_key(uri))


def construct_uri(backend: Backend, bucket: str, key: str = "") -> str:
    """Build a storage URI from its parts."""
    if not bucket:
        raise InvalidStorageUriError("Bucket name must not be empty")
    return f"{backend.value}://{bucket}/{key.lstrip(PATH_SEPARATOR)}"
