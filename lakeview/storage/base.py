"""Asynchronous storage client interface."""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, BinaryIO

from lakeview.executor import WorkerPool, get_worker_pool
from lakeview.storage.models import File, Page
from lakeview.utils import PATH_SEPARATOR, extract_bucket, extract_prefix, normalize_prefix

logger = logging.getLogger(__name__)

# upper bound of entries returned by one listing call, on every backend
MAX_PAGE_SIZE = 1000


class AsyncStorageClient(ABC):
    """Lists and reads objects without blocking the caller.

    Every public method returns a ``concurrent.futures.Future`` right away; the
    backend call itself runs on the shared worker pool. Backends implement the
    blocking ``_fetch_page``, ``_stat``, ``_download`` and ``_open`` hooks.
    """

    def __init__(self, pool: WorkerPool | None = None):
        self.pool = pool or get_worker_pool()

    @abstractmethod
    def _fetch_page(self, bucket: str, prefix: str, continuation_token: str | None) -> Page:
        """List direct children of prefix, one page at a time."""
        raise NotImplementedError

    @abstractmethod
    def _stat(self, uri: str) -> Any:
        """Look up object metadata, raising NotFoundError if it is absent."""
        raise NotImplementedError

    @abstractmethod
    def _download(self, handle: Any) -> bytes:
        """Fetch the whole content of a looked-up object."""
        raise NotImplementedError

    @abstractmethod
    def _open(self, handle: Any) -> BinaryIO:
        """Open a readable byte stream on a looked-up object."""
        raise NotImplementedError

    @staticmethod
    def _relative_name(name: str, prefix: str) -> str:
        return name[len(prefix):] if name.startswith(prefix) else name

    def _make_file(self, name: str, prefix: str, last_modified_at, is_directory: bool) -> File | None:
        """Build a File named relative to prefix; None for the prefix marker itself."""
        filename = self._relative_name(name, prefix)
        if not filename or filename == PATH_SEPARATOR:
            return None
        return File(filename=filename, last_modified_at=last_modified_at, is_directory=is_directory)

    def list_page(
        self, bucket: str, prefix: str, continuation_token: str | None = None
    ) -> "Future[Page]":
        """Fetch one page of the directory listing of prefix.

        Pass the token of the previous page to continue; None or "" starts over.
        """
        prefix = normalize_prefix(prefix)
        logger.debug("Listing %s/%s (token=%s)", bucket, prefix, continuation_token)
        return self.pool.submit(self._fetch_page, bucket, prefix, continuation_token or None)

    def list_page_by_uri(self, uri: str, continuation_token: str | None = None) -> "Future[Page]":
        return self.list_page(extract_bucket(uri), extract_prefix(uri), continuation_token)

    def _list_all(self, bucket: str, prefix: str) -> list[File]:
        files: list[File] = []
        token = None
        while True:
            page = self._fetch_page(bucket, prefix, token)
            files.extend(page.files)
            if not page.has_next:
                return files
            token = page.continuation_token

    def list_all_files(self, uri: str) -> "Future[list[File]]":
        """List every entry directly under a directory URI, walking all pages in order."""
        return self.pool.submit(self._list_all, extract_bucket(uri), extract_prefix(uri))

    def read_as_bytes(self, uri: str) -> "Future[bytes]":
        logger.debug("Reading %s", uri)
        return self.pool.then(self.pool.submit(self._stat, uri), self._download)

    def read_as_stream(self, uri: str) -> "Future[BinaryIO]":
        logger.debug("Opening %s", uri)
        return self.pool.then(self.pool.submit(self._stat, uri), self._open)
