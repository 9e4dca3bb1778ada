import pytest

from lakeview.executor import WorkerPool


@pytest.fixture
def pool():
    worker_pool = WorkerPool(max_workers=4)
    yield worker_pool
    worker_pool.shutdown()


class StubProvider:
    """Hands out a fixed client, standing in for a ClientProvider."""

    def __init__(self, client):
        self.client = client
        self.calls = 0

    def get_client(self):
        self.calls += 1
        return self.client


@pytest.fixture
def stub_provider():
    return StubProvider
