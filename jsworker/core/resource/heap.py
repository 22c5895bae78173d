"""
Heap statistics snapshot for one worker context.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict

# Engines report "no limit" as -1 or as a huge sentinel value.
_UNLIMITED_THRESHOLD = 2 ** 62


@dataclass(frozen=True)
class HeapStatistics:
    total_heap_size: int = 0
    total_heap_size_executable: int = 0
    total_physical_size: int = 0
    total_available_size: int = 0
    used_heap_size: int = 0
    heap_size_limit: int = 0  # 0 means no limit
    malloced_memory: int = 0
    does_zap_garbage: bool = False

    @classmethod
    def from_memory_usage(cls, usage: Dict[str, Any]) -> "HeapStatistics":
        """Build a snapshot from QuickJS memory usage counters.

        Guarantees non-negative fields and
        ``used_heap_size <= total_heap_size <= heap_size_limit`` when a limit is set.
        """
        total = max(int(usage.get("malloc_size", 0)), 0)
        used = min(max(int(usage.get("memory_used_size", 0)), 0), total)
        executable = max(
            int(usage.get("js_func_code_size", 0)) + int(usage.get("js_func_pc2line_size", 0)), 0
        )
        limit = int(usage.get("malloc_limit", 0))
        if limit <= 0 or limit >= _UNLIMITED_THRESHOLD:
            limit = 0
        elif limit < total:
            limit = total
        available = limit - total if limit else 0
        return cls(
            total_heap_size=total,
            total_heap_size_executable=min(executable, total),
            total_physical_size=total,
            total_available_size=available,
            used_heap_size=used,
            heap_size_limit=limit,
            malloced_memory=total,
            does_zap_garbage=False,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
