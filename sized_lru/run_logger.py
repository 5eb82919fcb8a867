from __future__ import annotations

import json
import time
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from torch.utils.tensorboard import SummaryWriter

from .cache import CacheStats
from .utils import Stats


class RunLogger:
    """
    Records how a cache behaves over a run.

    Each ``log_cache`` call appends one line to ``metrics.jsonl``:

        {"step": ..., "time": ..., "cache": CacheStats.as_dict(),
         "window": <delta since the previous call>, "timers": {...}}

    and mirrors the numbers to TensorBoard under ``cache/*`` (lifetime values,
    plus ``cache/fill`` = size / capacity), ``window/*`` and ``timers/*``.
    ``close`` stores the final human-readable summary as TensorBoard text.
    """

    def __init__(self, run_dir: str | Path, *, config: Optional[object] = None):
        self.run_dir = Path(run_dir)
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.jsonl_path = self.run_dir / "metrics.jsonl"
        self.writer = SummaryWriter(log_dir=str(self.run_dir / "tb"))

        if config is not None:
            payload = asdict(config) if is_dataclass(config) else dict(vars(config))
            with open(self.run_dir / "config.json", "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, sort_keys=True)

    def log_cache(self, step: int, snap: CacheStats, stats: Optional[Stats] = None) -> Dict[str, Any]:
        window = stats.observe(snap) if stats is not None else {}
        timers = stats.to_dict()["timers"] if stats is not None else {}
        record = {
            "step": int(step),
            "time": time.time(),
            "cache": snap.as_dict(),
            "window": window,
            "timers": timers,
        }
        with open(self.jsonl_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")

        for name, value in record["cache"].items():
            self.writer.add_scalar(f"cache/{name}", value, step)
        self.writer.add_scalar("cache/fill", snap.size / snap.capacity, step)
        for name, value in window.items():
            self.writer.add_scalar(f"window/{name}", value, step)
        for name, seconds in timers.items():
            self.writer.add_scalar(f"timers/{name}", seconds, step)
        return record

    def close(self, summary: Optional[str] = None) -> None:
        if summary:
            self.writer.add_text("summary", f"```\n{summary}\n```")
        self.writer.flush()
        self.writer.close()

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
