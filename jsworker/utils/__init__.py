from jsworker.utils.rwlock import ReadWriteLock

__all__ = ["ReadWriteLock"]
