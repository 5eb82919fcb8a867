from __future__ import annotations

import json

import pytest

import bench_cache


def test_bench_entries_mode(capsys):
    cache = bench_cache.main(
        ["--capacity", "8", "--n_keys", "32", "--steps", "120", "--threads", "3",
         "--create_delay_ms", "0", "--log_every", "40", "--value_nbytes", "16"]
    )
    out = capsys.readouterr().out
    s = cache.stats()
    assert s.hit_count + s.miss_count == 120
    assert s.size <= 8
    assert "== Stats ==" in out
    assert out.count("step=") == 3
    assert out.strip().endswith(str(cache))


def test_bench_bytes_mode_with_run_dir(tmp_path):
    run_dir = tmp_path / "bench"
    cache = bench_cache.main(
        ["--capacity", "256", "--sizing", "bytes", "--value_nbytes", "64", "--steps", "50",
         "--threads", "2", "--create_delay_ms", "0", "--log_every", "25", "--locality", "markov",
         "--run_dir", str(run_dir)]
    )
    assert cache.size <= 256
    assert len(cache) <= 4
    rows = [json.loads(line) for line in (run_dir / "metrics.jsonl").read_text().splitlines()]
    assert [r["_step"] for r in rows] == [25, 50]
    assert rows[-1]["cache"]["capacity"] == 256


def test_bench_rejects_bad_config():
    with pytest.raises(ValueError):
        bench_cache.parse_args(["--capacity", "0"])
