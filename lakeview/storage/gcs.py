"""GCS storage client using google-cloud-storage."""

import logging
from contextlib import contextmanager
from typing import BinaryIO, Iterator

import google.auth.exceptions
import requests
from google.api_core.exceptions import GoogleAPICallError, NotFound, TooManyRequests
from google.cloud.storage import Blob

from lakeview.exceptions import NotFoundError, RateLimitError, TransportError
from lakeview.executor import WorkerPool
from lakeview.storage.base import MAX_PAGE_SIZE, AsyncStorageClient
from lakeview.storage.models import EPOCH_ZERO, File, Page
from lakeview.storage.providers import GcsClientProvider
from lakeview.utils import PATH_SEPARATOR, extract_bucket, extract_key

logger = logging.getLogger(__name__)


@contextmanager
def translate_gcs_errors(target: str) -> Iterator[None]:
    """Map SDK and transport exceptions onto the storage error types."""
    try:
        yield
    except NotFound as e:
        raise NotFoundError(f"GCS object not found: {target}") from e
    except TooManyRequests as e:
        raise RateLimitError(f"GCS throttled request for {target}") from e
    except GoogleAPICallError as e:
        raise TransportError(f"GCS request for {target} failed: {e}") from e
    except (
        requests.exceptions.RequestException,
        google.auth.exceptions.TransportError,
        google.auth.exceptions.RefreshError,
    ) as e:
        raise TransportError(f"GCS request for {target} failed: {e}") from e


class GcsAsyncStorageClient(AsyncStorageClient):
    """Async storage client for Google Cloud Storage.

    Retries are left to the transport, so every SDK call passes ``retry=None``.
    """

    def __init__(self, client_provider: GcsClientProvider, pool: WorkerPool | None = None):
        super().__init__(pool)
        self.client_provider = client_provider

    def _fetch_page(self, bucket: str, prefix: str, continuation_token: str | None) -> Page:
        client = self.client_provider.get_client()
        target = f"gs://{bucket}/{prefix}"

        with translate_gcs_errors(target):
            iterator = client.list_blobs(
                bucket,
                prefix=prefix,
                delimiter=PATH_SEPARATOR,
                page_token=continuation_token,
                page_size=MAX_PAGE_SIZE,
                retry=None,
            )
            page = next(iterator.pages, None)
            blobs = list(page) if page is not None else []
            prefixes = page.prefixes if page is not None else ()
            next_token = iterator.next_page_token

        files: list[File] = []
        for name in prefixes:
            entry = self._make_file(name, prefix, EPOCH_ZERO, is_directory=True)
            if entry is not None:
                files.append(entry)
        for blob in blobs:
            entry = self._make_file(blob.name, prefix, blob.updated or EPOCH_ZERO, is_directory=False)
            if entry is not None:
                files.append(entry)

        return Page(continuation_token=next_token, files=files)

    def _stat(self, uri: str) -> Blob:
        bucket, key = extract_bucket(uri), extract_key(uri)
        if not key:
            raise NotFoundError(f"GCS URI does not name an object: {uri}")

        client = self.client_provider.get_client()
        with translate_gcs_errors(uri):
            blob = client.bucket(bucket).get_blob(key, retry=None)
        if blob is None:
            raise NotFoundError(f"Blob not found: {uri}")
        return blob

    def _download(self, blob: Blob) -> bytes:
        with translate_gcs_errors(f"gs://{blob.bucket.name}/{blob.name}"):
            return blob.download_as_bytes(retry=None)

    def _open(self, blob: Blob) -> BinaryIO:
        with translate_gcs_errors(f"gs://{blob.bucket.name}/{blob.name}"):
            return blob.open("rb", retry=None)
