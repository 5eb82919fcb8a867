from __future__ import annotations

from dataclasses import dataclass


@dataclass
class BenchConfig:
    # Cache
    capacity: int = 64            # entries, or bytes when sizing == "bytes"
    sizing: str = "entries"       # "entries" | "bytes"

    # Workload
    n_keys: int = 256
    locality: str = "episode"     # "episode" | "markov" | "uniform"
    episode_len: int = 20
    p_stay: float = 0.9
    steps: int = 2000             # total get() calls across all threads
    threads: int = 4
    seed: int = 0

    # Simulated creation cost
    create_delay_ms: float = 1.0
    value_nbytes: int = 4096

    # Logging
    log_every: int = 200
    run_dir: str = ""             # if set, write JSONL + TensorBoard here

    def validate(self) -> None:
        if self.capacity <= 0:
            raise ValueError("capacity must be > 0")
        if self.sizing not in ("entries", "bytes"):
            raise ValueError("sizing must be one of: entries, bytes")
        if self.locality not in ("episode", "markov", "uniform"):
            raise ValueError("locality must be one of: episode, markov, uniform")
        if self.threads <= 0:
            raise ValueError("threads must be > 0")
        if self.steps <= 0:
            raise ValueError("steps must be > 0")
