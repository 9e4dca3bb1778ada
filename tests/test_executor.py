import logging
import threading

import pytest

from lakeview import executor
from lakeview.exceptions import NotFoundError
from lakeview.executor import WorkerPool, default_max_workers, get_worker_pool


def test_default_pool_size_oversubscribes_cpus(monkeypatch):
    monkeypatch.setattr(executor.os, "cpu_count", lambda: 4)
    assert default_max_workers() == 20
    monkeypatch.setattr(executor.os, "cpu_count", lambda: None)
    assert default_max_workers() == 5


def test_threads_are_named(pool):
    name = pool.submit(lambda: threading.current_thread().name).result(timeout=5)
    assert name.startswith("metadata-extractor")


def test_task_failure_is_logged_and_kept_on_future(pool, caplog):
    def boom():
        raise RuntimeError("kaboom")

    with caplog.at_level(logging.ERROR, logger="lakeview.executor"):
        future = pool.submit(boom)
        with pytest.raises(RuntimeError, match="kaboom"):
            future.result(timeout=5)

    assert "Uncaught exception in a thread (metadata-extractor" in caplog.text
    # the pool keeps working afterwards
    assert pool.submit(lambda: 42).result(timeout=5) == 42


def test_then_runs_continuation_on_pool(pool):
    first = pool.submit(lambda: 20)
    chained = pool.then(first, lambda value: (value + 1, threading.current_thread().name))
    value, thread_name = chained.result(timeout=5)
    assert value == 21
    assert thread_name.startswith("metadata-extractor")


def test_then_propagates_first_failure_without_running_continuation(pool):
    called = []

    def missing():
        raise NotFoundError("gone")

    chained = pool.then(pool.submit(missing), called.append)
    chained = pool.then(chained, called.append)
    with pytest.raises(NotFoundError, match="gone"):
        chained.result(timeout=5)
    assert called == []


def test_then_propagates_continuation_failure(pool):
    def fail(_):
        raise ValueError("bad value")

    with pytest.raises(ValueError, match="bad value"):
        pool.then(pool.submit(lambda: 1), fail).result(timeout=5)


def test_get_worker_pool_is_process_wide(monkeypatch):
    monkeypatch.setattr(executor, "_worker_pool", None)
    first = get_worker_pool()
    try:
        assert get_worker_pool() is first
        assert isinstance(first, WorkerPool)
    finally:
        first.shutdown()
