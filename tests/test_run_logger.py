from __future__ import annotations

import json

from sized_lru.cache import LRUCache
from sized_lru.config import BenchConfig
from sized_lru.run_logger import RunLogger
from sized_lru.utils import Stats


def test_run_logger_records_cache_stats(tmp_path):
    cfg = BenchConfig(capacity=2, steps=10)
    stats = Stats()
    cache: LRUCache[int, int] = LRUCache(2, create=lambda k: k * 10)

    with RunLogger(tmp_path / "run", config=cfg) as logger:
        for k in (1, 1, 2):
            cache.get(k)
        logger.log_cache(1, cache.stats(), stats)
        for k in (3, 3):
            cache.get(k)
        record = logger.log_cache(2, cache.stats(), stats)

    assert record["window"]["hit_count"] == 1
    assert record["window"]["miss_count"] == 1
    assert record["window"]["eviction_count"] == 1

    config = json.loads((tmp_path / "run" / "config.json").read_text())
    assert config["capacity"] == 2
    assert config["steps"] == 10

    rows = [json.loads(line) for line in (tmp_path / "run" / "metrics.jsonl").read_text().splitlines()]
    assert [r["step"] for r in rows] == [1, 2]
    assert rows[0]["cache"]["hit_count"] == 1
    assert rows[0]["cache"]["hit_rate"] == 33
    assert rows[1]["cache"]["entries"] == 2
    assert (tmp_path / "run" / "tb").is_dir()


def test_run_logger_without_stats(tmp_path):
    cache: LRUCache[str, str] = LRUCache(3)
    cache.put("a", "b")
    logger = RunLogger(tmp_path)
    record = logger.log_cache(5, cache.stats())
    logger.close("final summary")
    assert record["window"] == {}
    assert record["cache"]["put_count"] == 1
    assert not (tmp_path / "config.json").exists()
