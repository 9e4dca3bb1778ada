"""S3-compatible storage client using requests + AWS4Auth."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO
from urllib.parse import quote
from xml.etree import ElementTree

import requests

from lakeview.exceptions import NotFoundError, RateLimitError, TransportError
from lakeview.executor import WorkerPool
from lakeview.storage.base import MAX_PAGE_SIZE, AsyncStorageClient
from lakeview.storage.models import EPOCH_ZERO, File, Page
from lakeview.storage.providers import S3ClientProvider
from lakeview.utils import PATH_SEPARATOR, extract_bucket, extract_key

logger = logging.getLogger(__name__)

S3_NAMESPACE = {"s3": "http://s3.amazonaws.com/doc/2006-03-01/"}
REDIRECT_STATUS_CODES = (301, 302, 307, 308)
DOWNLOAD_CHUNK_SIZE = 64 * 1024


def parse_s3_timestamp(value: str) -> datetime:
    """Parse an S3 ISO-8601 timestamp such as 2024-01-31T10:00:00.000Z."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class S3Object:
    """Metadata of an existing object, as returned by HEAD."""

    bucket: str
    key: str
    content_length: int | None = None


class S3AsyncStorageClient(AsyncStorageClient):
    """Async storage client for S3-compatible object stores."""

    def __init__(self, client_provider: S3ClientProvider, pool: WorkerPool | None = None):
        super().__init__(pool)
        self.client_provider = client_provider

    @staticmethod
    def _is_throttled(resp: requests.Response) -> bool:
        return resp.status_code == 429 or (
            resp.status_code == 503 and b"SlowDown" in (resp.content or b"")
        )

    def _check_response(self, resp: requests.Response, target: str) -> None:
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            if resp.status_code == 404:
                raise NotFoundError(f"S3 object not found: {target}") from e
            if self._is_throttled(resp):
                raise RateLimitError(f"S3 throttled request for {target}: {resp.status_code}") from e
            raise TransportError(f"S3 request for {target} failed: {resp.status_code}") from e

        if resp.status_code in REDIRECT_STATUS_CODES:
            location = resp.headers.get("Location", "unknown")
            raise TransportError(f"S3 request for {target} redirected to: {location}")

    def _request(self, method: str, url: str, target: str, **kwargs) -> requests.Response:
        session = self.client_provider.get_client().session
        try:
            resp = session.request(method, url, allow_redirects=False, **kwargs)
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise TransportError(f"S3 {method} {target} failed: {e}") from e
        try:
            self._check_response(resp, target)
        except BaseException:
            resp.close()
            raise
        return resp

    def _object_url(self, bucket: str, key: str) -> str:
        return f"{self.client_provider.get_client().bucket_url(bucket)}/{quote(key, safe='/~')}"

    def _fetch_page(self, bucket: str, prefix: str, continuation_token: str | None) -> Page:
        params = {
            "list-type": "2",
            "prefix": prefix,
            "delimiter": PATH_SEPARATOR,
            "max-keys": str(MAX_PAGE_SIZE),
        }
        if continuation_token:
            params["continuation-token"] = continuation_token

        target = f"s3://{bucket}/{prefix}"
        resp = self._request(
            "GET", self.client_provider.get_client().bucket_url(bucket), target, params=params
        )

        try:
            root = ElementTree.fromstring(resp.content)
        except ElementTree.ParseError as e:
            raise TransportError(f"Malformed S3 listing response for {target}") from e

        files: list[File] = []
        for common_prefix in root.findall("s3:CommonPrefixes", S3_NAMESPACE):
            name = common_prefix.findtext("s3:Prefix", default="", namespaces=S3_NAMESPACE)
            entry = self._make_file(name, prefix, EPOCH_ZERO, is_directory=True)
            if entry is not None:
                files.append(entry)

        for content in root.findall("s3:Contents", S3_NAMESPACE):
            key = content.findtext("s3:Key", default="", namespaces=S3_NAMESPACE)
            last_modified = content.findtext("s3:LastModified", namespaces=S3_NAMESPACE)
            entry = self._make_file(
                key,
                prefix,
                parse_s3_timestamp(last_modified) if last_modified else EPOCH_ZERO,
                is_directory=False,
            )
            if entry is not None:
                files.append(entry)

        # Check for more pages
        is_truncated = root.findtext("s3:IsTruncated", namespaces=S3_NAMESPACE) == "true"
        next_token = root.findtext("s3:NextContinuationToken", namespaces=S3_NAMESPACE)
        if is_truncated and not next_token:
            raise TransportError(f"S3 listing of {target} is truncated but has no continuation token")

        return Page(continuation_token=next_token if is_truncated else None, files=files)

    def _stat(self, uri: str) -> S3Object:
        bucket, key = extract_bucket(uri), extract_key(uri)
        if not key:
            raise NotFoundError(f"S3 URI does not name an object: {uri}")

        resp = self._request("HEAD", self._object_url(bucket, key), uri)
        length = resp.headers.get("Content-Length")
        return S3Object(bucket=bucket, key=key, content_length=int(length) if length else None)

    def _get(self, obj: S3Object) -> requests.Response:
        return self._request(
            "GET", self._object_url(obj.bucket, obj.key), f"s3://{obj.bucket}/{obj.key}", stream=True
        )

    def _download(self, obj: S3Object) -> bytes:
        resp = self._get(obj)
        try:
            chunks = [chunk for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE) if chunk]
        except (requests.exceptions.ChunkedEncodingError, requests.exceptions.ConnectionError) as e:
            raise TransportError(f"Download of s3://{obj.bucket}/{obj.key} failed: {e}") from e
        finally:
            resp.close()
        return b"".join(chunks)

    def _open(self, obj: S3Object) -> BinaryIO:
        resp = self._get(obj)
        resp.raw.decode_content = True
        return resp.raw
