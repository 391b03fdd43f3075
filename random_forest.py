from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from cart import CartParams, CartTree
from classifier_runtime import ClassifierRuntime
from data_structures import Claset
from dsv import DsvWriter
from evaluation import ConfusionMatrix, Stat, positive_label
from mining_errors import EmptyInputError, RetryLimitExceeded, TreeGrowthError

logger = logging.getLogger(__name__)

DEFAULT_N_TREE = 100
DEFAULT_PERCENT_BOOT = 66
DEFAULT_MAX_RETRIES = 10


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


@dataclass
class ForestParams:
    n_tree: int = DEFAULT_N_TREE
    percent_boot: int = DEFAULT_PERCENT_BOOT
    # 0 means round(sqrt(number of attributes)).
    n_random_feature: int = 0
    run_oob: bool = False
    max_retries: int = DEFAULT_MAX_RETRIES
    random_state: int | None = None
    # None means "1" when present in the class value space, else its first label.
    positive_class: str | None = None

    oob_stats_file: str = ""
    perf_file: str = ""
    stat_file: str = ""

    def __post_init__(self) -> None:
        # Out-of-range values fall back to defaults instead of failing.
        if self.n_tree <= 0:
            self.n_tree = DEFAULT_N_TREE
        if not (0 < self.percent_boot <= 100):
            self.percent_boot = DEFAULT_PERCENT_BOOT
        if self.n_random_feature < 0:
            self.n_random_feature = 0
        if self.max_retries <= 0:
            self.max_retries = DEFAULT_MAX_RETRIES


@dataclass(frozen=True)
class BagRecord:
    """Bootstrap row indices of one tree and the rows it never saw."""

    indices: tuple[int, ...]
    oob_indices: tuple[int, ...]
    _members: frozenset = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_members", frozenset(self.indices))

    def __contains__(self, sample_id: int) -> bool:
        return sample_id in self._members


class RandomForest(ClassifierRuntime):
    """Bagged CART ensemble with optional out-of-bag evaluation."""

    def __init__(
        self,
        params: ForestParams | None = None,
        rng: np.random.Generator | None = None,
        oob_writer: DsvWriter | None = None,
    ) -> None:
        self.params = params or ForestParams()
        super().__init__(
            run_oob=self.params.run_oob,
            oob_stats_file=self.params.oob_stats_file,
            perf_file=self.params.perf_file,
            stat_file=self.params.stat_file,
            positive=self.params.positive_class,
            oob_writer=oob_writer,
        )
        self.rng = rng if rng is not None else np.random.default_rng(self.params.random_state)

        self.trees: list[CartTree] = []
        self.bags: list[BagRecord] = []
        self.n_random_feature: int = self.params.n_random_feature
        self.n_sub_sample: int = 0
        self.last_stat: Stat | None = None

    def __len__(self) -> int:
        return len(self.trees)

    def prepare(self, samples: Claset) -> None:
        """Fix bag size and feature subset size for ``samples``."""
        if samples.n_rows == 0:
            raise EmptyInputError("cannot build a forest from an empty dataset")

        self.value_space = samples.class_value_space()

        n_features = samples.n_columns - 1
        if self.params.n_random_feature <= 0:
            self.n_random_feature = max(1, round_half_up(math.sqrt(n_features)))
        else:
            self.n_random_feature = self.params.n_random_feature

        self.n_sub_sample = max(1, round_half_up(samples.n_rows * self.params.percent_boot / 100.0))

    def build(self, samples: Claset) -> "RandomForest":
        self.prepare(samples)
        logger.info(
            "random forest: n_tree=%d n_random_feature=%d percent_boot=%d n_sub_sample=%d",
            self.params.n_tree,
            self.n_random_feature,
            self.params.percent_boot,
            self.n_sub_sample,
        )

        self.trees = []
        self.bags = []
        self.initialize()
        for _ in range(self.params.n_tree):
            self.grow_tree(samples)
        total = self.finalize()
        self.log_stat(total)
        return self

    def grow_tree(self, samples: Claset) -> tuple[ConfusionMatrix | None, Stat, CartTree]:
        """Grow and record one tree, retrying failed growth a bounded number of times."""
        if self.n_sub_sample <= 0:
            self.prepare(samples)

        last_error: TreeGrowthError | None = None
        for attempt in range(1, self.params.max_retries + 1):
            try:
                return self._grow_tree_once(samples)
            except TreeGrowthError as e:
                last_error = e
                logger.warning("tree %d growth failed (attempt %d): %s", len(self.trees), attempt, e)
        raise RetryLimitExceeded(self.params.max_retries, last_error)

    def _grow_tree_once(self, samples: Claset) -> tuple[ConfusionMatrix | None, Stat, CartTree]:
        stat = Stat(id=len(self.trees))
        stat.start()

        bag, oob, bag_idx, oob_idx = samples.random_pick_rows(self.n_sub_sample, True, self.rng)

        tree = CartTree(CartParams(n_random_feature=self.n_random_feature), rng=self.rng)
        tree.build(bag)

        self.trees.append(tree)
        self.bags.append(BagRecord(indices=tuple(bag_idx), oob_indices=tuple(oob_idx)))

        cm = None
        if self.run_oob:
            _, cm, _ = self.classify_set(oob, sample_ids=oob_idx)
            tree.count_oob_error(oob)
            self.add_oob_cm(cm)
            self.compute_stat_from_cm(stat, cm)
            self.add_stat(stat)
            self.compute_stat_total(stat)
            self.log_oob_stat(stat, cm)

        stat.end()
        if self.run_oob:
            self.write_oob_stat(stat)
        logger.debug("tree %d: depth=%d nodes=%d", stat.id, tree.depth(), tree.count_nodes())
        return cm, stat, tree

    def votes(self, row: Sequence, sample_id: int = -1) -> list[str]:
        """One label per tree, skipping trees whose bag holds ``sample_id``.

        A row that every tree saw in its bag is voted on by all trees.
        """
        out: list[str] = []
        for tree, bag in zip(self.trees, self.bags):
            if sample_id >= 0 and sample_id in bag:
                continue
            out.append(tree.classify(row))
        if not out:
            out = [tree.classify(row) for tree in self.trees]
        return out

    def vote_frequencies(self, row: Sequence, value_space: Sequence[str], sample_id: int = -1) -> np.ndarray:
        votes = self.votes(row, sample_id)
        lookup = {v: i for i, v in enumerate(value_space)}
        counts = np.zeros(len(value_space), dtype=np.float64)
        for v in votes:
            i = lookup.get(v)
            if i is not None:
                counts[i] += 1.0
        if votes:
            counts /= len(votes)
        return counts

    def classify_set(
        self,
        samples: Claset,
        sample_ids: Sequence[int] | None = None,
    ) -> tuple[list[str], ConfusionMatrix, list[float]]:
        """Majority vote per row over the training labels.

        Labels that only ``samples`` carries are appended after the training
        labels, so ties resolve the same way for every test file.

        Returns the predictions, one confusion matrix for the whole call and
        the vote share of the positive class for each row.
        """
        if not self.trees:
            raise RuntimeError("Forest must be built before classification")

        value_space = self.voting_space(samples)
        positive = positive_label(value_space, self.positive)
        pos_idx = value_space.index(positive) if positive in value_space else -1
        predicts: list[str] = []
        probs: list[float] = []
        for i, row in enumerate(samples.rows):
            sid = int(sample_ids[i]) if sample_ids is not None else -1
            freq = self.vote_frequencies(row, value_space, sid)
            predicts.append(value_space[int(np.argmax(freq))])
            probs.append(float(freq[pos_idx]) if pos_idx >= 0 else 0.0)

        cm = self.compute_cm(sample_ids, value_space, samples.class_values(), predicts)

        if sample_ids is None:
            stat = Stat(id=len(self.trees))
            stat.start()
            self.compute_stat_from_cm(stat, cm)
            stat.end()
            self.last_stat = stat
            self.write_stat(stat)

        return predicts, cm, probs
