from __future__ import annotations

from typing import Any, Hashable

import numpy as np
import torch


def unit_size(key: Hashable, value: Any) -> int:
    """Default size function: every entry costs 1, so capacity counts entries."""
    return 1


def tensor_nbytes(t: torch.Tensor) -> int:
    return int(t.numel() * t.element_size())


def nbytes(obj: Any) -> int:
    """
    Bytes held by tensors / arrays / buffers inside ``obj``.

    Dicts, lists and tuples are walked recursively (dict keys are not counted).
    Any other leaf contributes 0.
    """
    if isinstance(obj, torch.Tensor):
        return tensor_nbytes(obj)
    if isinstance(obj, np.ndarray):
        return int(obj.nbytes)
    if isinstance(obj, (bytes, bytearray)):
        return len(obj)
    if isinstance(obj, memoryview):
        return int(obj.nbytes)
    if isinstance(obj, dict):
        return sum(nbytes(v) for v in obj.values())
    if isinstance(obj, (list, tuple)):
        return sum(nbytes(v) for v in obj)
    return 0


def nbytes_size_of(key: Hashable, value: Any) -> int:
    """``size_of`` callback bounding an LRUCache by payload bytes."""
    return nbytes(value)
