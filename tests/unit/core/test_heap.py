"""
Unit tests for HeapStatistics.
"""
from jsworker.core.resource.heap import HeapStatistics


def test_from_memory_usage_without_limit():
    stats = HeapStatistics.from_memory_usage({
        "malloc_size": 1000,
        "memory_used_size": 800,
        "malloc_limit": -1,
        "js_func_code_size": 50,
        "js_func_pc2line_size": 10,
    })
    assert stats.total_heap_size == 1000
    assert stats.used_heap_size == 800
    assert stats.total_heap_size_executable == 60
    assert stats.heap_size_limit == 0
    assert stats.total_available_size == 0
    assert stats.does_zap_garbage is False


def test_from_memory_usage_with_limit():
    stats = HeapStatistics.from_memory_usage({
        "malloc_size": 1000,
        "memory_used_size": 900,
        "malloc_limit": 4096,
    })
    assert stats.heap_size_limit == 4096
    assert stats.total_available_size == 3096


def test_huge_limit_means_unlimited():
    stats = HeapStatistics.from_memory_usage({"malloc_size": 10, "malloc_limit": 2 ** 63 - 1})
    assert stats.heap_size_limit == 0


def test_invariants_hold_for_inconsistent_counters():
    stats = HeapStatistics.from_memory_usage({
        "malloc_size": 100,
        "memory_used_size": 500,
        "malloc_limit": 50,
        "js_func_code_size": 400,
    })
    assert stats.used_heap_size <= stats.total_heap_size <= stats.heap_size_limit
    assert stats.total_heap_size_executable <= stats.total_heap_size
    assert stats.total_available_size == 0


def test_missing_counters_default_to_zero():
    stats = HeapStatistics.from_memory_usage({})
    assert stats.to_dict() == HeapStatistics().to_dict()
