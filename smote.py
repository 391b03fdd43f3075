from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from data_structures import Claset
from dsv import write_rows
from knn import MANHATTAN, CandidateSet, KNNEngine, Neighbors

logger = logging.getLogger(__name__)

DEFAULT_K = 5
DEFAULT_PERCENT_OVER = 100


@dataclass
class SmoteParams:
    percent_over: int = DEFAULT_PERCENT_OVER
    k: int = DEFAULT_K
    class_index: int = -1
    distance_method: str = MANHATTAN
    random_state: int | None = None
    synthetic_file: str = ""

    def __post_init__(self) -> None:
        if self.k <= 0:
            self.k = DEFAULT_K
        if self.percent_over <= 0:
            self.percent_over = DEFAULT_PERCENT_OVER


def _rows_of(data: Claset | Sequence) -> list:
    if isinstance(data, Claset):
        return data.rows
    return list(data)


class SmoteEngine:
    """Synthetic Minority Over-sampling TEchnique.

    Each synthetic row sits on the segment between a minority row ``p`` and
    one of its nearest minority neighbours ``n``: every attribute is
    ``p + gap * (n - p)`` with a fresh uniform gap, and the class is taken
    from ``p``.
    """

    def __init__(self, params: SmoteParams | None = None, rng: np.random.Generator | None = None) -> None:
        self.params = params or SmoteParams()
        self.rng = rng if rng is not None else np.random.default_rng(self.params.random_state)
        self.knn = KNNEngine(
            k=self.params.k,
            class_index=self.params.class_index,
            distance_method=self.params.distance_method,
        )
        self.synthetics: list[list] = []
        self.n_synthetic = 0

    @property
    def class_index(self) -> int:
        return self.knn.class_index

    def _resolve_class_index(self, n_columns: int) -> int:
        ci = self.params.class_index
        if ci < 0:
            ci += n_columns
        self.knn.class_index = ci
        return ci

    def synthesize(self, p: Sequence, n: Sequence, gap_fn=None) -> list:
        """One synthetic row between ``p`` and ``n``.

        ``gap_fn`` draws the per-attribute gap; uniform on [0, 1) by default.
        """
        ci = self.class_index
        out = list(p)
        for attr in range(len(p)):
            if attr == ci:
                continue
            gap = self.rng.random() if gap_fn is None else gap_fn()
            pv = float(p[attr])
            out[attr] = pv + gap * (float(n[attr]) - pv)
        out[ci] = p[ci]
        return out

    def populate(self, p: Sequence, neighbors: Neighbors, n_synthetic: int) -> int:
        if len(neighbors) == 0:
            logger.warning("row has no neighbour at non-zero distance, skipped")
            return 0
        for _ in range(n_synthetic):
            n = neighbors.row(int(self.rng.integers(len(neighbors))))
            self.synthetics.append(self.synthesize(p, n))
        return n_synthetic

    def resampling(self, minority: Claset | Sequence) -> list[list]:
        """Oversample a set of minority rows; returns the synthetic rows.

        Below 100 percent a random subset of ``round(percent/100 * n)`` rows
        each get one synthetic; otherwise every row gets ``percent // 100``.
        Neighbours are always searched among all minority rows.
        """
        rows = _rows_of(minority)
        self.synthetics = []
        if not rows:
            return self.synthetics

        self._resolve_class_index(len(rows[0]))
        candidates = CandidateSet(rows, self.class_index)

        if self.params.percent_over < 100:
            n_pick = int(round(self.params.percent_over / 100.0 * len(rows)))
            picked = self.rng.choice(len(rows), size=min(n_pick, len(rows)), replace=False)
            sources = [rows[i] for i in picked]
            self.n_synthetic = 1
        else:
            sources = rows
            self.n_synthetic = self.params.percent_over // 100

        for p in sources:
            neighbors = self.knn.find_neighbors(candidates, p)
            self.populate(p, neighbors, self.n_synthetic)

        logger.info("smote: %d synthetic rows from %d minority rows", len(self.synthetics), len(rows))
        if self.params.synthetic_file:
            self.write(self.params.synthetic_file)
        return self.synthetics

    def write(self, path: str, delimiter: str = ",") -> int:
        return write_rows(path, self.synthetics, delimiter=delimiter)
