"""
Shared test fixtures for jsworker tests.
"""
import io

import pytest

from jsworker.core.bridge.registry import WorkerRegistry
from jsworker.core.worker import Worker, WorkerConfig


@pytest.fixture
def registry():
    return WorkerRegistry()


@pytest.fixture
def make_worker(registry):
    workers = []

    def _make(on_message=None, on_sync_message=None, **config_kwargs):
        worker = Worker(
            on_message=on_message,
            on_sync_message=on_sync_message,
            config=WorkerConfig(**config_kwargs),
            registry=registry,
        )
        workers.append(worker)
        return worker

    yield _make

    for worker in workers:
        if not worker.disposed:
            worker.dispose()


@pytest.fixture
def worker(make_worker):
    return make_worker()


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def echo_script():
    return """
$recv(function (msg) {
  $send("async:" + msg);
});
$recvSync(function (msg) {
  return msg;
});
"""
