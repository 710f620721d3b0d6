"""
Heap snapshots - write the state of the Python heap to a JSON file.

The snapshot is a diagnostic aid for leak failures: process memory,
collector statistics, the most common live object types and, when a
suspect object is given, what still refers to it.
"""

from __future__ import annotations

import gc
import json
import os
import sys
import time
import tracemalloc
from collections import Counter
from pathlib import Path
from typing import Any

import psutil

TOP_TYPES = 25
TOP_ALLOCATIONS = 25
MAX_REFERRERS = 20
MAX_REPR = 200


def dump_heap(
    path: str | os.PathLike,
    live: bool = True,
    suspect: Any = None,
) -> Path:
    """Write a heap snapshot to ``path``, replacing an existing file.

    Args:
        path: Target file.
        live: Run a full collection first so only reachable objects count.
        suspect: Optional object whose referrers should be listed.

    Returns:
        The path that was written.

    Raises:
        OSError: If the file cannot be written.
    """
    path = Path(path)

    if live:
        gc.collect()

    snapshot = {
        "timestamp": time.time(),
        "pid": os.getpid(),
        "python": sys.version,
        "process": _process_memory(),
        "gc": {
            "counts": list(gc.get_count()),
            "thresholds": list(gc.get_threshold()),
            "stats": gc.get_stats(),
            "tracked_objects": len(gc.get_objects()),
        },
        "types": _type_histogram(),
        "allocations": _top_allocations(),
    }

    if suspect is not None:
        snapshot["suspect"] = _describe_suspect(suspect)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot, f, indent=2, default=str)

    return path


def _process_memory() -> dict[str, Any]:
    process = psutil.Process()
    memory = process.memory_info()
    return {
        "rss_mb": round(memory.rss / (1024 * 1024), 1),
        "vms_mb": round(memory.vms / (1024 * 1024), 1),
        "threads": process.num_threads(),
    }


def _type_histogram() -> list[dict[str, Any]]:
    counts = Counter(type(obj).__qualname__ for obj in gc.get_objects())
    return [
        {"type": name, "count": count}
        for name, count in counts.most_common(TOP_TYPES)
    ]


def _top_allocations() -> list[dict[str, Any]]:
    # only available when the process runs with tracemalloc enabled
    if not tracemalloc.is_tracing():
        return []

    stats = tracemalloc.take_snapshot().statistics("lineno")
    return [
        {"location": str(stat.traceback), "size_kb": round(stat.size / 1024, 1), "count": stat.count}
        for stat in stats[:TOP_ALLOCATIONS]
    ]


def _describe_suspect(suspect: Any) -> dict[str, Any]:
    referrers = []
    for referrer in gc.get_referrers(suspect)[:MAX_REFERRERS]:
        referrers.append({
            "type": type(referrer).__qualname__,
            "repr": _short_repr(referrer),
        })

    return {
        "type": type(suspect).__qualname__,
        "repr": _short_repr(suspect),
        "refcount": sys.getrefcount(suspect),
        "referrers": referrers,
    }


def _short_repr(obj: Any) -> str:
    try:
        text = repr(obj)
    except Exception as e:
        text = f"<repr failed: {e!r}>"
    return text if len(text) <= MAX_REPR else text[:MAX_REPR] + "..."
