from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from classifier_runtime import ClassifierRuntime
from data_structures import Claset
from dsv import DsvWriter
from evaluation import ConfusionMatrix, Stat, positive_label
from mining_errors import EmptyInputError
from random_forest import DEFAULT_MAX_RETRIES, DEFAULT_PERCENT_BOOT, ForestParams, RandomForest

logger = logging.getLogger(__name__)

DEFAULT_N_STAGE = 200
DEFAULT_N_TREE = 1
DEFAULT_TP_RATE = 0.9
DEFAULT_TN_RATE = 0.7


@dataclass
class CascadeParams:
    n_stage: int = DEFAULT_N_STAGE
    n_tree: int = DEFAULT_N_TREE
    tp_rate: float = DEFAULT_TP_RATE
    tn_rate: float = DEFAULT_TN_RATE
    n_random_feature: int = 0
    percent_boot: int = DEFAULT_PERCENT_BOOT
    max_retries: int = DEFAULT_MAX_RETRIES
    random_state: int | None = None
    positive_class: str | None = None

    oob_stats_file: str = ""
    perf_file: str = ""
    stat_file: str = ""

    def __post_init__(self) -> None:
        if self.n_stage <= 0:
            self.n_stage = DEFAULT_N_STAGE
        if self.n_tree <= 0:
            self.n_tree = DEFAULT_N_TREE
        if not (0.0 < self.tp_rate < 1.0):
            self.tp_rate = DEFAULT_TP_RATE
        if not (0.0 < self.tn_rate < 1.0):
            self.tn_rate = DEFAULT_TN_RATE
        if self.n_random_feature < 0:
            self.n_random_feature = 0
        if not (0 < self.percent_boot <= 100):
            self.percent_boot = DEFAULT_PERCENT_BOOT
        if self.max_retries <= 0:
            self.max_retries = DEFAULT_MAX_RETRIES


@dataclass(frozen=True)
class CascadeStage:
    forest: RandomForest
    weight: float


class CascadedForest(ClassifierRuntime):
    """Sequence of small random forests, each trained on what the previous
    stages still found hard.

    After a stage is grown, rows its last tree classified as true negative
    leave the working set (the first stage archives them in a reservoir).
    From the second stage on, reservoir rows that the cascade now calls
    positive are moved back into the working set.
    """

    def __init__(
        self,
        params: CascadeParams | None = None,
        rng: np.random.Generator | None = None,
        oob_writer: DsvWriter | None = None,
    ) -> None:
        self.params = params or CascadeParams()
        super().__init__(
            run_oob=True,
            oob_stats_file=self.params.oob_stats_file,
            perf_file=self.params.perf_file,
            stat_file=self.params.stat_file,
            positive=self.params.positive_class,
            oob_writer=oob_writer,
        )
        self.rng = rng if rng is not None else np.random.default_rng(self.params.random_state)

        self.stages: list[CascadeStage] = []
        self.reservoir: Claset | None = None
        self.last_stat: Stat | None = None

    @property
    def weights(self) -> list[float]:
        return [s.weight for s in self.stages]

    @property
    def forests(self) -> list[RandomForest]:
        return [s.forest for s in self.stages]

    def build(self, samples: Claset) -> "CascadedForest":
        """Grow the cascade; ``samples`` is the working set and is mutated."""
        if samples.n_rows == 0:
            raise EmptyInputError("cannot build a cascade from an empty dataset")

        logger.info(
            "cascaded forest: n_stage=%d n_tree=%d tp_rate=%.2f tn_rate=%.2f n_rows=%d",
            self.params.n_stage,
            self.params.n_tree,
            self.params.tp_rate,
            self.params.tn_rate,
            samples.n_rows,
        )

        self.stages = []
        self.reservoir = samples.empty_like()
        self.value_space = samples.class_value_space()
        self.initialize()

        for stage_idx in range(self.params.n_stage):
            if samples.n_rows == 0:
                logger.info("working set is empty after %d stages, stopping", stage_idx)
                break
            forest = self._create_forest(samples)
            self._finalize_stage(forest)
            logger.info(
                "stage %d: weight=%.4f trees=%d working=%d reservoir=%d",
                stage_idx,
                self.stages[-1].weight,
                len(forest),
                samples.n_rows,
                self.reservoir.n_rows,
            )

        total = self.finalize()
        self.log_stat(total)
        return self

    def _create_forest(self, samples: Claset) -> RandomForest:
        forest = RandomForest(
            ForestParams(
                n_tree=self.params.n_tree,
                percent_boot=self.params.percent_boot,
                n_random_feature=self.params.n_random_feature,
                run_oob=True,
                max_retries=self.params.max_retries,
                positive_class=self.params.positive_class,
            ),
            rng=self.rng,
        )
        forest.prepare(samples)
        forest.initialize()

        cm: ConfusionMatrix | None = None
        stat: Stat | None = None
        for _ in range(self.params.n_tree):
            cm, stat, _tree = forest.grow_tree(samples)
            if stat.tp_rate > self.params.tp_rate and stat.tn_rate > self.params.tn_rate:
                break
        forest.finalize()

        weight = math.exp(stat.f_measure)
        self.stages.append(CascadeStage(forest=forest, weight=weight))

        self._delete_true_negative(samples, cm)
        self._refill_with_false_positive(samples)
        samples.recount_major_minor()
        return forest

    def _finalize_stage(self, forest: RandomForest) -> None:
        stat = forest.stat_total
        stat.id = len(self.stages) - 1
        self.write_oob_stat(stat)
        self.add_stat(stat)
        self.compute_stat_total(stat)

    def _delete_true_negative(self, samples: Claset, cm: ConfusionMatrix) -> None:
        tn_ids = sorted(cm.tn_ids)
        if len(self.stages) <= 1:
            self.reservoir.push_rows(samples.get_row(i) for i in tn_ids)
        samples.delete_rows(tn_ids)
        self.reservoir.recount_major_minor()

    def _refill_with_false_positive(self, samples: Claset) -> None:
        """Move reservoir rows the cascade now calls positive back into ``samples``."""
        if len(self.stages) <= 1 or self.reservoir.n_rows == 0:
            return
        ids = list(range(self.reservoir.n_rows))
        _, cm, _ = self.classify_by_weight(self.reservoir, sample_ids=ids)
        fp_ids = sorted(cm.fp_ids)
        samples.push_rows(self.reservoir.get_row(i) for i in fp_ids)
        self.reservoir.delete_rows(fp_ids)
        self.reservoir.recount_major_minor()
        logger.debug("moved %d false positives back into the working set", len(fp_ids))

    def classify_by_weight(
        self,
        samples: Claset,
        sample_ids: Sequence[int] | None = None,
    ) -> tuple[list[str], ConfusionMatrix, list[float]]:
        """Weighted soft vote across stages.

        Each stage contributes its per-class vote frequency times its
        weight; the sum is normalised by ``sum(weights) * n_tree`` and the
        first class with the highest score wins. ``probs`` is the mean
        per-stage vote share of the positive class.
        """
        if not self.stages:
            raise RuntimeError("Cascade must be built before classification")

        value_space = self.voting_space(samples)
        positive = positive_label(value_space, self.positive)
        pos_idx = value_space.index(positive) if positive in value_space else -1
        weights = np.asarray(self.weights, dtype=np.float64)
        norm = float(weights.sum()) * self.params.n_tree

        predicts: list[str] = []
        probs: list[float] = []
        for row in samples.rows:
            stage_probs = np.zeros(len(value_space), dtype=np.float64)
            stage_sum = np.zeros(len(value_space), dtype=np.float64)
            for stage in self.stages:
                freq = stage.forest.vote_frequencies(row, value_space)
                stage_sum += freq
                stage_probs += freq * stage.weight
            if norm > 0:
                stage_probs /= norm
            predicts.append(value_space[int(np.argmax(stage_probs))])
            probs.append(float(stage_sum[pos_idx]) / len(self.stages) if pos_idx >= 0 else 0.0)

        cm = self.compute_cm(sample_ids, value_space, samples.class_values(), predicts)

        if sample_ids is None:
            stat = Stat(id=len(self.stages))
            stat.start()
            self.compute_stat_from_cm(stat, cm)
            stat.end()
            self.last_stat = stat
            self.write_stat(stat)

        return predicts, cm, probs

    def classify_set(
        self,
        samples: Claset,
        sample_ids: Sequence[int] | None = None,
    ) -> tuple[list[str], ConfusionMatrix, list[float]]:
        return self.classify_by_weight(samples, sample_ids)
