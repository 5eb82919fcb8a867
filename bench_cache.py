#!/usr/bin/env python3
from __future__ import annotations

import argparse
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List

from sized_lru.cache import LRUCache
from sized_lru.config import BenchConfig
from sized_lru.run_logger import RunLogger
from sized_lru.sizing import nbytes_size_of, unit_size
from sized_lru.synthetic import KeyStream, SlowLoader, drive
from sized_lru.utils import Stats, timed


def parse_args(argv: List[str] | None = None) -> BenchConfig:
    d = BenchConfig()
    ap = argparse.ArgumentParser(description="Benchmark LRUCache under concurrent, correlated access.")
    ap.add_argument("--capacity", type=int, default=d.capacity)
    ap.add_argument("--sizing", type=str, default=d.sizing, choices=["entries", "bytes"])

    ap.add_argument("--n_keys", type=int, default=d.n_keys)
    ap.add_argument("--locality", type=str, default=d.locality, choices=list(KeyStream.LOCALITIES))
    ap.add_argument("--episode_len", type=int, default=d.episode_len)
    ap.add_argument("--p_stay", type=float, default=d.p_stay)
    ap.add_argument("--steps", type=int, default=d.steps, help="Total get() calls across all threads.")
    ap.add_argument("--threads", type=int, default=d.threads)
    ap.add_argument("--seed", type=int, default=d.seed)

    ap.add_argument("--create_delay_ms", type=float, default=d.create_delay_ms)
    ap.add_argument("--value_nbytes", type=int, default=d.value_nbytes)

    ap.add_argument("--log_every", type=int, default=d.log_every)
    ap.add_argument("--run_dir", type=str, default=d.run_dir, help="If set, write JSONL + TensorBoard here.")

    cfg = BenchConfig(**vars(ap.parse_args(argv)))
    cfg.validate()
    return cfg


def make_streams(cfg: BenchConfig) -> List[KeyStream]:
    # One independent stream per worker thread.
    return [
        KeyStream(
            cfg.n_keys,
            locality=cfg.locality,
            episode_len=cfg.episode_len,
            p_stay=cfg.p_stay,
            seed=cfg.seed + 1 + w,
        )
        for w in range(cfg.threads)
    ]


def build_cache(cfg: BenchConfig, stats: Stats) -> LRUCache[int, Any]:
    loader = SlowLoader(delay_s=cfg.create_delay_ms / 1000.0, nbytes=cfg.value_nbytes)

    def create(key: int) -> Any:
        with timed(stats, "create"):
            return loader(key)

    size_of = nbytes_size_of if cfg.sizing == "bytes" else unit_size
    return LRUCache(cfg.capacity, size_of=size_of, create=create, on_removed=stats.on_removed)


def main(argv: List[str] | None = None) -> LRUCache[int, Any]:
    cfg = parse_args(argv)
    stats = Stats()
    cache = build_cache(cfg, stats)
    streams = make_streams(cfg)
    logger = RunLogger(cfg.run_dir, config=cfg) if cfg.run_dir else None

    log_every = max(1, cfg.log_every)
    done = 0
    with ThreadPoolExecutor(max_workers=cfg.threads) as pool:
        while done < cfg.steps:
            chunk = min(log_every, cfg.steps - done)
            per_worker = [chunk // cfg.threads + (1 if w < chunk % cfg.threads else 0) for w in range(cfg.threads)]
            futs = [
                pool.submit(drive, cache, streams[w].take(n), stats)
                for w, n in enumerate(per_worker)
                if n > 0
            ]
            for fut in futs:
                fut.result()
            done += chunk

            snap = cache.stats()
            if logger is not None:
                window = logger.log_cache(done, snap, stats)["window"]
            else:
                window = stats.observe(snap)
            print(
                f"step={done:6d} entries={snap.entries} size={snap.size}/{snap.capacity} "
                f"hit_rate={snap.hit_rate}% window_hit_rate={window['window_hit_rate']}% "
                f"evictions={snap.eviction_count}"
            )

    if logger is not None:
        logger.close(stats.summary())

    print()
    print(stats.summary())
    print(cache)
    return cache


if __name__ == "__main__":
    main()
