from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from partitions import continuous_partitions, discrete_partitions

# Gains below this are rounding noise from equal class proportions.
GAIN_EPSILON = 1e-12


@dataclass
class GiniResult:
    skip: bool = False
    is_continuous: bool = False
    value: float = 0.0
    index: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.float64))
    gain: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.float64))
    max_part_gain: int = -1
    max_gain_value: float = 0.0
    min_index_part: int = -1
    min_index_value: float = 1.0
    sorted_index: np.ndarray | None = None
    continuous_part: np.ndarray = field(default_factory=lambda: np.array([], dtype=np.float64))
    discrete_part: list[tuple[tuple, tuple]] = field(default_factory=list)

    def max_part_gain_value(self):
        """Threshold (real) or left value subset (nominal) of the best candidate."""
        if self.max_part_gain < 0:
            return None
        if self.is_continuous:
            return float(self.continuous_part[self.max_part_gain])
        return self.discrete_part[self.max_part_gain][0]


def _encode(target: Sequence, classes: Sequence) -> tuple[np.ndarray, int]:
    lookup = {c: i for i, c in enumerate(classes)}
    try:
        codes = np.fromiter((lookup[t] for t in target), dtype=np.int64, count=len(target))
    except KeyError as e:
        raise ValueError(f"class label {e.args[0]!r} is not in the value space") from e
    return codes, len(lookup)


def gini_impurity(counts: np.ndarray) -> float:
    """1 - sum(p_c^2); zero for an empty multiset."""
    counts = np.asarray(counts, dtype=np.float64)
    total = counts.sum()
    if total <= 0:
        return 0.0
    p = counts / total
    return float(1.0 - np.sum(p * p))


def _impurity_rows(counts: np.ndarray) -> np.ndarray:
    totals = counts.sum(axis=1)
    safe = np.where(totals > 0, totals, 1.0)
    p = counts / safe[:, None]
    out = 1.0 - np.sum(p * p, axis=1)
    return np.where(totals > 0, out, 0.0)


def _finish(result: GiniResult, left_counts: np.ndarray, total_counts: np.ndarray) -> GiniResult:
    n = float(total_counts.sum())
    right_counts = total_counts[None, :] - left_counts
    n_left = left_counts.sum(axis=1)
    n_right = right_counts.sum(axis=1)

    index = (n_left / n) * _impurity_rows(left_counts) + (n_right / n) * _impurity_rows(right_counts)
    gain = result.value - index
    gain = np.where(np.abs(gain) < GAIN_EPSILON, 0.0, gain)

    result.index = index
    result.gain = gain

    # First candidate strictly exceeding the running maximum, starting at 0.
    result.max_part_gain = 0
    result.max_gain_value = 0.0
    best = int(np.argmax(gain))
    if gain[best] > 0.0:
        result.max_part_gain = best
        result.max_gain_value = float(gain[best])

    result.min_index_part = int(np.argmin(index))
    result.min_index_value = min(1.0, float(index[result.min_index_part]))
    return result


def compute_continuous(attr: Sequence[float], target: Sequence, classes: Sequence) -> GiniResult:
    """Score every midpoint threshold of a real attribute.

    Rows with ``value < threshold`` form the left child.
    """
    values = np.asarray(attr, dtype=np.float64)
    if values.ndim != 1:
        raise ValueError("attr must be a 1D array")
    if len(target) != values.size:
        raise ValueError("attr and target must have the same length")

    codes, n_classes = _encode(target, classes)
    order = np.argsort(values, kind="stable")
    sorted_values = values[order]
    sorted_codes = codes[order]

    total_counts = np.bincount(sorted_codes, minlength=n_classes).astype(np.float64)
    result = GiniResult(is_continuous=True, value=gini_impurity(total_counts), sorted_index=order)
    result.continuous_part = continuous_partitions(sorted_values)
    if values.size == 0 or result.continuous_part.size == 0:
        return result

    onehot = np.zeros((values.size, n_classes), dtype=np.float64)
    onehot[np.arange(values.size), sorted_codes] = 1.0
    cumulative = np.cumsum(onehot, axis=0)

    n_left = np.searchsorted(sorted_values, result.continuous_part, side="left")
    left_counts = np.zeros((n_left.size, n_classes), dtype=np.float64)
    nonempty = n_left > 0
    left_counts[nonempty] = cumulative[n_left[nonempty] - 1]

    return _finish(result, left_counts, total_counts)


def compute_discrete(
    attr: Sequence,
    value_set: Sequence,
    target: Sequence,
    classes: Sequence,
) -> GiniResult:
    """Score every two-block partition of a nominal attribute's value set."""
    if len(attr) != len(target):
        raise ValueError("attr and target must have the same length")

    codes, n_classes = _encode(target, classes)
    total_counts = np.bincount(codes, minlength=n_classes).astype(np.float64)
    result = GiniResult(is_continuous=False, value=gini_impurity(total_counts))
    result.discrete_part = discrete_partitions(value_set)
    if len(attr) == 0 or not result.discrete_part:
        return result

    attr_values = list(attr)
    left_counts = np.zeros((len(result.discrete_part), n_classes), dtype=np.float64)
    for p, (left, _right) in enumerate(result.discrete_part):
        members = set(left)
        mask = np.fromiter((v in members for v in attr_values), dtype=bool, count=len(attr_values))
        left_counts[p] = np.bincount(codes[mask], minlength=n_classes)

    return _finish(result, left_counts, total_counts)


def find_max_gain(results: Sequence[GiniResult]) -> int:
    """Index of the non-skipped result with the largest positive gain, or -1."""
    best = -1
    best_gain = 0.0
    for i, res in enumerate(results):
        if res.skip:
            continue
        if res.max_gain_value > best_gain:
            best = i
            best_gain = res.max_gain_value
    return best

