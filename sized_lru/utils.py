from __future__ import annotations

import contextlib
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

from .cache import CacheStats
from .sizing import nbytes

_CACHE_COUNTERS = ("hit_count", "miss_count", "put_count", "create_count", "eviction_count")


@contextlib.contextmanager
def timed(stats: "Stats", key: str) -> Iterator[None]:
    """
    Context manager to accumulate wall-clock timing into stats.timers[key].
    """
    t0 = time.perf_counter()
    try:
        yield
    finally:
        stats.add_time(key, time.perf_counter() - t0)


@dataclass
class Stats:
    """
    Instrumentation for a cache under load.

    Two sources feed it:
      - ``on_removed`` is a drop-in ``on_removed`` callback for an LRUCache and
        classifies every removal (eviction, overwrite, explicit remove, or a
        created value that lost a race) together with the bytes it released.
      - ``observe`` folds the change in a cache's counters since the previous
        observation into ``counters`` and returns that window's delta, so a
        run can report interval hit rates rather than lifetime ones.

    Worker threads update this concurrently; every access goes through the lock.
    """
    timers: Dict[str, float] = field(default_factory=dict)
    counters: Dict[str, int] = field(default_factory=dict)
    bytes_released: Dict[str, int] = field(default_factory=dict)

    _last: Optional[CacheStats] = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def inc(self, key: str, n: int = 1) -> None:
        with self._lock:
            self.counters[key] = self.counters.get(key, 0) + n

    def add_time(self, key: str, seconds: float) -> None:
        with self._lock:
            self.timers[key] = self.timers.get(key, 0.0) + float(seconds)

    def on_removed(self, evicted: bool, key: Any, old_value: Any, new_value: Any) -> None:
        if evicted:
            kind = "evicted"
        elif new_value is not None:
            kind = "replaced"
        else:
            # remove(), or a create() result discarded because the key was cached meanwhile
            kind = "dropped"
        released = nbytes(old_value)
        with self._lock:
            self.counters[kind] = self.counters.get(kind, 0) + 1
            self.bytes_released[kind] = self.bytes_released.get(kind, 0) + released

    def observe(self, snap: CacheStats) -> Dict[str, int]:
        with self._lock:
            prev = self._last
            delta = {
                name: getattr(snap, name) - (getattr(prev, name) if prev is not None else 0)
                for name in _CACHE_COUNTERS
            }
            for name, n in delta.items():
                self.counters[name] = self.counters.get(name, 0) + n
            self._last = snap
        lookups = delta["hit_count"] + delta["miss_count"]
        delta["window_hit_rate"] = (100 * delta["hit_count"]) // lookups if lookups else 0
        return delta

    def summary(self) -> str:
        snap = self.to_dict()
        lines = ["== Stats =="]
        if snap["counters"]:
            lines.append("-- counters --")
            for k, v in sorted(snap["counters"].items()):
                lines.append(f"{k}: {v}")
        if snap["bytes_released"]:
            lines.append("-- released --")
            for k, v in sorted(snap["bytes_released"].items()):
                lines.append(f"{k}: {v/1e6:.3f} MB")
        if snap["timers"]:
            lines.append("-- timers --")
            for k, v in sorted(snap["timers"].items()):
                lines.append(f"{k}: {v:.3f} s")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Serialize stats for JSON logging."""
        with self._lock:
            return {
                "counters": dict(self.counters),
                "timers": dict(self.timers),
                "bytes_released": dict(self.bytes_released),
            }
