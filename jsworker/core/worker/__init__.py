from jsworker.core.worker.base import WorkerConfig, set_worker_config, get_worker_config
from jsworker.core.worker.worker import Worker

__all__ = ["WorkerConfig", "set_worker_config", "get_worker_config", "Worker"]
