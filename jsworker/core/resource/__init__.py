from jsworker.core.resource.heap import HeapStatistics

__all__ = ["HeapStatistics"]
