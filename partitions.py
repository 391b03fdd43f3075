from __future__ import annotations

from typing import Sequence

import numpy as np


def continuous_partitions(values: np.ndarray) -> np.ndarray:
    """Candidate thresholds for a real attribute.

    Midpoints between adjacent distinct values in ascending order. A midpoint
    that rounds onto one of its neighbours cannot separate them and is dropped.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.ndim != 1:
        raise ValueError("values must be a 1D array")

    uniq = np.unique(values[np.isfinite(values)])
    if uniq.size <= 1:
        return np.array([], dtype=np.float64)

    lo = uniq[:-1]
    hi = uniq[1:]
    mids = (lo + hi) * 0.5
    keep = (mids != lo) & (mids != hi)
    return np.asarray(mids[keep], dtype=np.float64)


def _partition(values: list, k: int) -> list[list[list]]:
    if k == 1:
        return [[list(values)]]
    if len(values) == k:
        return [[[v] for v in values]]

    first, rest = values[0], values[1:]
    out: list[list[list]] = []

    # Place ``first`` into every block of each k-partition of the rest.
    for row in _partition(rest, k):
        for b in range(len(row)):
            blocks = [list(block) for block in row]
            blocks[b] = [first] + blocks[b]
            out.append(blocks)

    # Or give it a block of its own next to a (k-1)-partition of the rest.
    for row in _partition(rest, k - 1):
        out.append([list(block) for block in row] + [[first]])

    return out


def discrete_partitions(value_set: Sequence) -> list[tuple[tuple, tuple]]:
    """Every split of ``value_set`` into two non-empty blocks.

    Each candidate is ``(left, right)``; rows whose value is in ``left`` go
    to the left child. The enumeration order is fixed, so ties between equal
    gains always resolve to the same candidate.
    """
    values = list(dict.fromkeys(value_set))
    if len(values) < 2:
        return []
    return [(tuple(row[0]), tuple(row[1])) for row in _partition(values, 2)]
