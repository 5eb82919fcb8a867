from __future__ import annotations

import pytest
import torch

from sized_lru.cache import LRUCache
from sized_lru.synthetic import KeyStream, SlowLoader, drive
from sized_lru.utils import Stats


def test_episode_stream_repeats_keys_per_episode():
    keys = KeyStream(1000, locality="episode", episode_len=5, seed=3).take(20)
    for start in range(0, 20, 5):
        assert len(set(keys[start:start + 5])) == 1
    assert all(0 <= k < 1000 for k in keys)


def test_episode_stream_is_independent_of_batch_size():
    whole = KeyStream(50, locality="episode", episode_len=4, seed=7).take(30)
    s = KeyStream(50, locality="episode", episode_len=4, seed=7)
    assert s.take(7) + s.take(23) == whole


@pytest.mark.parametrize("locality", KeyStream.LOCALITIES)
def test_streams_are_deterministic_per_seed(locality):
    a = KeyStream(50, locality=locality, episode_len=3, p_stay=0.5, seed=7).take(30)
    b = KeyStream(50, locality=locality, episode_len=3, p_stay=0.5, seed=7).take(30)
    assert a == b
    assert all(0 <= k < 50 for k in a)


def test_markov_p_stay_one_never_moves():
    s = KeyStream(100, locality="markov", p_stay=1.0, seed=1)
    first = s.take(25)
    assert len(set(first + s.take(25))) == 1


def test_markov_p_stay_zero_matches_fresh_draws():
    s = KeyStream(10_000, locality="markov", p_stay=0.0, seed=2)
    keys = s.take(200)
    # Every position jumps, so long runs of the same key are vanishingly unlikely.
    assert len(set(keys)) > 150


def test_markov_carries_key_across_batches():
    s = KeyStream(100, locality="markov", p_stay=1.0, seed=4)
    cur = s._cur
    assert s.take(3) == [cur, cur, cur]


def test_stream_arguments_validated():
    with pytest.raises(ValueError):
        KeyStream(0)
    with pytest.raises(ValueError):
        KeyStream(10, locality="zipf")
    with pytest.raises(ValueError):
        KeyStream(10, locality="markov", p_stay=1.5)


def test_slow_loader_returns_tagged_tensor():
    loader = SlowLoader(delay_s=0.0, nbytes=16)
    t = loader(258)
    assert t.dtype == torch.uint8
    assert t.numel() == 16
    assert int(t[0]) == 2


def test_drive_counts_lookups_and_empty_results():
    stats = Stats()
    cache: LRUCache[int, str] = LRUCache(2, create=lambda k: None if k == 0 else str(k))
    assert drive(cache, [1, 1, 0, 2, 0], stats) == 2

    s = cache.stats()
    assert s.hit_count == 1
    assert s.miss_count == 4
    assert stats.counters["get_none"] == 2
    assert "get" in stats.timers
