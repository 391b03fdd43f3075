from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

MANHATTAN = "manhattan"
EUCLIDEAN = "euclidean"


@dataclass
class Neighbors:
    """Rows paired with their distance to a query, nearest first.

    Rows are the caller's own row objects; nothing is copied.
    """

    rows: list = field(default_factory=list)
    distances: list[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(zip(self.rows, self.distances))

    def row(self, idx: int):
        return self.rows[idx]

    def distance(self, idx: int) -> float:
        return self.distances[idx]

    def add(self, row, distance: float) -> None:
        self.rows.append(row)
        self.distances.append(float(distance))

    def select_range(self, start: int, end: int) -> "Neighbors":
        return Neighbors(self.rows[start:end], self.distances[start:end])

    def select_where(self, idx: int, value) -> "Neighbors":
        out = Neighbors()
        for row, dist in zip(self.rows, self.distances):
            if row[idx] == value:
                out.add(row, dist)
        return out

    def contains(self, row) -> tuple[bool, int]:
        """Identity lookup: (found, position)."""
        for i, r in enumerate(self.rows):
            if r is row:
                return True, i
        return False, -1

    def replace(self, idx: int, row, distance: float) -> None:
        self.rows[idx] = row
        self.distances[idx] = float(distance)


class CandidateSet:
    """Rows plus their numeric attribute matrix, reused across many queries."""

    def __init__(self, rows: Sequence, class_index: int) -> None:
        self.rows = list(rows)
        n_columns = len(self.rows[0]) if self.rows else 0
        if class_index < 0:
            class_index += n_columns
        self.class_index = class_index
        self.attr_indices = [i for i in range(n_columns) if i != class_index]
        if self.rows:
            self.matrix = np.asarray(
                [[float(r[i]) for i in self.attr_indices] for r in self.rows],
                dtype=np.float64,
            )
        else:
            self.matrix = np.zeros((0, 0), dtype=np.float64)

    def __len__(self) -> int:
        return len(self.rows)

    def vector(self, row: Sequence) -> np.ndarray:
        return np.asarray([float(row[i]) for i in self.attr_indices], dtype=np.float64)


class KNNEngine:
    """K nearest neighbours over the non-class attributes.

    The default distance is the plain sum of absolute attribute differences.
    Candidates at distance zero (the query itself or exact duplicates) are
    never returned. Ties keep candidate order.
    """

    def __init__(self, k: int = 5, class_index: int = -1, distance_method: str = MANHATTAN) -> None:
        if k <= 0:
            raise ValueError("k must be positive")
        if distance_method not in {MANHATTAN, EUCLIDEAN}:
            raise ValueError("distance_method must be one of: manhattan, euclidean")
        self.k = k
        self.class_index = class_index
        self.distance_method = distance_method
        self.all_neighbors = Neighbors()

    def candidate_set(self, rows: Sequence) -> CandidateSet:
        return CandidateSet(rows, self.class_index)

    def distances(self, candidates: CandidateSet, query: Sequence) -> np.ndarray:
        if len(candidates) == 0:
            return np.array([], dtype=np.float64)
        diff = candidates.matrix - candidates.vector(query)[None, :]
        if self.distance_method == EUCLIDEAN:
            return np.sqrt(np.sum(diff * diff, axis=1))
        return np.sum(np.abs(diff), axis=1)

    def sorted_neighbors(self, candidates: CandidateSet | Sequence, query: Sequence) -> Neighbors:
        """Every candidate at non-zero distance, nearest first."""
        if not isinstance(candidates, CandidateSet):
            candidates = self.candidate_set(candidates)
        dist = self.distances(candidates, query)
        keep = np.flatnonzero(dist != 0.0)
        order = keep[np.argsort(dist[keep], kind="stable")]
        return Neighbors([candidates.rows[i] for i in order], [float(dist[i]) for i in order])

    def find_neighbors(self, candidates: CandidateSet | Sequence, query: Sequence) -> Neighbors:
        """The first ``min(k, matches)`` entries of ``sorted_neighbors``.

        The full sorted list stays available as ``all_neighbors`` until the
        next search.
        """
        self.all_neighbors = self.sorted_neighbors(candidates, query)
        return self.all_neighbors.select_range(0, min(self.k, len(self.all_neighbors)))
