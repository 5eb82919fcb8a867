from __future__ import annotations

import time
from typing import Any, List, Optional

import torch

from .cache import LRUCache
from .utils import Stats, timed


class KeyStream:
    """
    Seeded stream of integer cache keys in [0, n_keys) with tunable locality.

    locality:
      - "episode": the same key repeats for ``episode_len`` consecutive lookups,
        then a fresh key is drawn (bursty reuse, a good case for LRU)
      - "markov": each lookup keeps the previous key with probability ``p_stay``
        and otherwise jumps to a uniformly random key
      - "uniform": independent uniform keys (no locality, the worst case)

    Keys are produced in batches with ``take(n)``. Consecutive batches continue
    the same stream: the last key of one batch carries into the next, and an
    episode cut by a batch boundary resumes in the following batch.
    """

    LOCALITIES = ("episode", "markov", "uniform")

    def __init__(
        self,
        n_keys: int,
        *,
        locality: str = "episode",
        episode_len: int = 20,
        p_stay: float = 0.9,
        seed: int = 0,
    ):
        if n_keys <= 0:
            raise ValueError("n_keys must be > 0")
        if locality not in self.LOCALITIES:
            raise ValueError("locality must be one of: episode, markov, uniform")
        if not 0.0 <= p_stay <= 1.0:
            raise ValueError("p_stay must be in [0, 1]")
        self.n_keys = int(n_keys)
        self.locality = locality
        self.episode_len = max(1, int(episode_len))
        self.p_stay = float(p_stay)
        self.g = torch.Generator(device="cpu")
        self.g.manual_seed(seed)
        self._t = 0
        self._cur = int(self._fresh(1)[0])

    def _fresh(self, n: int) -> torch.Tensor:
        return torch.randint(0, self.n_keys, (n,), generator=self.g)

    def take(self, n: int) -> List[int]:
        if n <= 0:
            return []
        if self.locality == "uniform":
            keys = self._fresh(n)
        elif self.locality == "episode":
            keys = self._episode(n)
        else:
            keys = self._markov(n)
        self._cur = int(keys[-1])
        return keys.tolist()

    def _episode(self, n: int) -> torch.Tensor:
        keys = torch.empty(n, dtype=torch.long)
        i = 0
        while i < n:
            offset = self._t % self.episode_len
            if offset == 0:
                self._cur = int(self._fresh(1)[0])
            run = min(self.episode_len - offset, n - i)
            keys[i:i + run] = self._cur
            i += run
            self._t += run
        return keys

    def _markov(self, n: int) -> torch.Tensor:
        jumps = torch.rand(n, generator=self.g) >= self.p_stay
        fresh = self._fresh(n)
        # For each position, the index of the latest jump at or before it (-1: none yet).
        pos = torch.arange(n)
        last_jump = torch.cummax(torch.where(jumps, pos, torch.full_like(pos, -1)), dim=0).values
        carried = torch.full_like(fresh, self._cur)
        return torch.where(last_jump >= 0, fresh[last_jump.clamp(min=0)], carried)


class SlowLoader:
    """
    ``create`` callback that simulates an expensive fetch.

    Sleeps ``delay_s`` and then returns a fresh uint8 CPU tensor of ``nbytes``
    bytes, filled with ``key % 256`` so callers can check which key produced it.
    """
    def __init__(self, delay_s: float = 0.0, nbytes: int = 1024):
        if nbytes <= 0:
            raise ValueError("nbytes must be > 0")
        self.delay_s = float(delay_s)
        self.nbytes = int(nbytes)

    def __call__(self, key: int) -> torch.Tensor:
        if self.delay_s > 0:
            time.sleep(self.delay_s)
        return torch.full((self.nbytes,), int(key) % 256, dtype=torch.uint8)


def drive(cache: LRUCache[int, Any], keys: List[int], stats: Optional[Stats] = None) -> int:
    """Look up every key in order; returns how many lookups produced no value."""
    empty = 0
    for key in keys:
        if stats is not None:
            with timed(stats, "get"):
                value = cache.get(key)
        else:
            value = cache.get(key)
        if value is None:
            empty += 1
    if stats is not None and empty:
        stats.inc("get_none", empty)
    return empty
