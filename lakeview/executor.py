"""Shared worker pool for storage I/O."""

import concurrent.futures
import logging
import os
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

# more threads than cores, most operations wait on network I/O
IO_WORKLOAD_NUM_THREAD_MULTIPLIER = 5
THREAD_NAME_PREFIX = "metadata-extractor"


def default_max_workers() -> int:
    """Pool size for an I/O bound workload."""
    return (os.cpu_count() or 1) * IO_WORKLOAD_NUM_THREAD_MULTIPLIER


class WorkerPool:
    """Bounded thread pool that logs task failures before handing them to the future."""

    def __init__(
        self,
        max_workers: int | None = None,
        thread_name_prefix: str = THREAD_NAME_PREFIX,
    ):
        self.max_workers = max_workers or default_max_workers()
        self.thread_name_prefix = thread_name_prefix
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix=thread_name_prefix,
        )

    def __repr__(self) -> str:
        cls = self.__class__
        return (
            f"<{cls.__module__}.{cls.__qualname__} at {id(self):#x}:"
            f" max_workers={self.max_workers}, prefix={self.thread_name_prefix!r}>"
        )

    @staticmethod
    def _run(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception:
            logger.exception(
                "Uncaught exception in a thread (%s)", threading.current_thread().name
            )
            raise

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> concurrent.futures.Future:
        """Run fn on the pool and return its future."""
        return self._executor.submit(self._run, fn, *args, **kwargs)

    def then(
        self, future: concurrent.futures.Future, fn: Callable[[Any], Any]
    ) -> concurrent.futures.Future:
        """Chain fn onto future.

        fn receives the result of future and runs on the pool. If future fails,
        the returned future fails with the same exception and fn is never called.
        """
        chained: concurrent.futures.Future = concurrent.futures.Future()

        def _relay(source: concurrent.futures.Future) -> None:
            if source.cancelled():
                chained.cancel()
                return
            if not chained.set_running_or_notify_cancel():
                return
            error = source.exception()
            if error is not None:
                chained.set_exception(error)
                return
            try:
                stage = self.submit(fn, source.result())
            except RuntimeError as e:
                # pool shut down between the two stages
                chained.set_exception(e)
                return
            stage.add_done_callback(_copy)

        def _copy(stage: concurrent.futures.Future) -> None:
            error = stage.exception()
            if error is not None:
                chained.set_exception(error)
            else:
                chained.set_result(stage.result())

        future.add_done_callback(_relay)
        return chained

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


_worker_pool: WorkerPool | None = None
_worker_pool_lock = threading.Lock()


def get_worker_pool() -> WorkerPool:
    """Return the process-wide worker pool, creating it on first use."""
    global _worker_pool
    if _worker_pool is None:
        with _worker_pool_lock:
            if _worker_pool is None:
                _worker_pool = WorkerPool()
                logger.debug("Created %r", _worker_pool)
    return _worker_pool
