from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from data_structures import Claset
from dsv import write_rows
from knn import CandidateSet, Neighbors
from smote import SmoteEngine, SmoteParams, _rows_of

logger = logging.getLogger(__name__)


@dataclass
class LnSmoteParams(SmoteParams):
    # Empty means the dataset's minority class.
    class_minor: str = ""
    outliers_file: str = ""


class LnSmoteEngine(SmoteEngine):
    """Local-Neighbourhood SMOTE.

    Like SMOTE, but neighbours come from the whole dataset and each
    synthetic is placed according to the safe levels of ``p`` and the
    chosen neighbour ``n`` (how many minority rows sit in their K nearest
    neighbourhoods). A minority row whose neighbourhood holds no minority
    row on either side is kept aside as an outlier.
    """

    def __init__(self, params: LnSmoteParams | None = None, rng: np.random.Generator | None = None) -> None:
        super().__init__(params or LnSmoteParams(), rng)
        self.class_minor = self.params.class_minor
        self.outliers: list[list] = []
        self._outlier_ids: set[int] = set()
        self._candidates: CandidateSet | None = None

    def _is_minor(self, row: Sequence) -> bool:
        # Plain rows may carry non-string labels.
        return str(row[self.class_index]) == self.class_minor

    def _minor_neighbors(self, neighbors: Neighbors) -> Neighbors:
        out = Neighbors()
        for row, dist in zip(neighbors.rows, neighbors.distances):
            if self._is_minor(row):
                out.add(row, dist)
        return out

    def safe_level(self, neighbors_of_p: Neighbors) -> Neighbors:
        return self._minor_neighbors(neighbors_of_p)

    def safe_level2(self, p: Sequence, n: Sequence) -> Neighbors:
        """Minority rows among the K nearest neighbours of ``n``.

        When ``n`` is minority and ``p`` is one of its neighbours, ``p`` is
        swapped for the next nearest row (the K+1-th) or dropped if there is
        none, so ``p`` does not vouch for itself.
        """
        neighbors = self.knn.find_neighbors(self._candidates, n)
        n_is_minor = self._is_minor(n)
        found, idx = neighbors.contains(p)
        if n_is_minor and found:
            everyone = self.knn.all_neighbors
            if len(everyone) > self.knn.k:
                neighbors.replace(idx, everyone.row(self.knn.k), everyone.distance(self.knn.k))
            else:
                del neighbors.rows[idx]
                del neighbors.distances[idx]
        return self._minor_neighbors(neighbors)

    def random_gap(self, slp: int, sln: int) -> float:
        """Gap drawn from the safe-level ratio ``slp / sln``.

        Equal safe levels give U[0, 1). A safer ``p`` keeps the synthetic
        near ``p`` (U / ratio); a safer ``n`` pushes it toward ``n``
        (1 - U * ratio). With ``sln == 0`` the synthetic duplicates ``p``.
        """
        if sln == 0 and slp > 0:
            return 0.0
        ratio = slp / sln
        u = self.rng.random()
        if ratio == 1.0:
            return u
        if ratio > 1.0:
            return u / ratio
        return 1.0 - u * ratio

    def _add_outlier(self, p: list) -> None:
        if id(p) in self._outlier_ids:
            return
        self._outlier_ids.add(id(p))
        self.outliers.append(p)

    def create_synthetic(self, p: list, neighbors: Neighbors) -> list | None:
        n = neighbors.row(int(self.rng.integers(len(neighbors))))
        slp = len(self.safe_level(neighbors))
        sln = len(self.safe_level2(p, n))
        if slp == 0 and sln == 0:
            self._add_outlier(p)
            return None
        return self.synthesize(p, n, gap_fn=lambda: self.random_gap(slp, sln))

    def prepare(self, dataset: Claset | Sequence) -> list:
        """Index ``dataset`` for neighbour searches and fix the minority label."""
        rows = _rows_of(dataset)
        self.synthetics = []
        self.outliers = []
        self._outlier_ids = set()
        if not rows:
            return rows

        self._resolve_class_index(len(rows[0]))
        if not self.class_minor:
            if not isinstance(dataset, Claset):
                raise ValueError("class_minor is required when resampling plain rows")
            self.class_minor = dataset.minority_class
        self.class_minor = str(self.class_minor)

        self._candidates = CandidateSet(rows, self.class_index)
        self.n_synthetic = max(1, self.params.percent_over // 100)
        return rows

    def resampling(self, dataset: Claset | Sequence) -> list[list]:
        """Oversample the minority class of ``dataset``; returns synthetic rows."""
        rows = self.prepare(dataset)
        if not rows:
            return self.synthetics

        minority = [r for r in rows if self._is_minor(r)]

        for p in minority:
            neighbors = self.knn.find_neighbors(self._candidates, p)
            if len(neighbors) == 0:
                logger.warning("minority row has no neighbour at non-zero distance, skipped")
                continue
            for _ in range(self.n_synthetic):
                synthetic = self.create_synthetic(p, neighbors)
                if synthetic is not None:
                    self.synthetics.append(synthetic)

        logger.info(
            "lnsmote: %d synthetic rows, %d outliers from %d minority rows (class %s)",
            len(self.synthetics),
            len(self.outliers),
            len(minority),
            self.class_minor,
        )
        if self.params.synthetic_file:
            self.write(self.params.synthetic_file)
        if self.params.outliers_file and self.outliers:
            self.write_outliers(self.params.outliers_file)
        return self.synthetics

    def write_outliers(self, path: str, delimiter: str = ",") -> int:
        return write_rows(path, self.outliers, delimiter=delimiter)
