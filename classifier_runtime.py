from __future__ import annotations

import logging
from typing import Sequence

from data_structures import Claset
from dsv import DsvWriter
from evaluation import ConfusionMatrix, Stat, Stats, compute_performance, compute_stat_from_cm, fill_rates

logger = logging.getLogger(__name__)


class ClassifierRuntime:
    """Out-of-bag bookkeeping shared by the forest classifiers.

    Keeps one confusion matrix and one Stat per grown unit (tree or
    stage), a running total, and the optional writers for the OOB stats,
    performance and final stat files. An empty file name disables that
    output.
    """

    def __init__(
        self,
        run_oob: bool = False,
        oob_stats_file: str = "",
        perf_file: str = "",
        stat_file: str = "",
        positive: str | None = None,
        oob_writer: DsvWriter | None = None,
    ) -> None:
        self.run_oob = run_oob
        self.positive = positive
        self.oob_stats_file = oob_stats_file
        self.perf_file = perf_file
        self.stat_file = stat_file
        # Class labels seen in training, in value-space order.
        self.value_space: list[str] = []

        self._oob_writer = oob_writer
        self.oob_stats = Stats()
        self.oob_cms: list[ConfusionMatrix] = []
        self.stat_total = Stat()
        self.perfs = Stats()

    def voting_space(self, samples: Claset) -> list[str]:
        """Training labels first, then any label only ``samples`` carries."""
        space = list(self.value_space)
        for label in samples.class_value_space():
            if label not in space:
                space.append(label)
        return space

    def initialize(self) -> None:
        self.oob_stats = Stats()
        self.oob_cms = []
        self.stat_total = Stat()
        self.stat_total.start()
        if self._oob_writer is None:
            self._oob_writer = DsvWriter(self.oob_stats_file)
        self._oob_writer.open()

    def finalize(self) -> Stat:
        total = self.stat_total
        total.end()
        total.id = len(self.oob_stats)
        self.write_oob_stat(total)
        if self._oob_writer is not None:
            self._oob_writer.close()
        return total

    def add_oob_cm(self, cm: ConfusionMatrix) -> None:
        self.oob_cms.append(cm)

    def add_stat(self, stat: Stat) -> None:
        self.oob_stats.append(stat)

    def compute_cm(
        self,
        sample_ids: Sequence[int] | None,
        value_space: Sequence[str],
        actuals: Sequence[str],
        predictions: Sequence[str],
    ) -> ConfusionMatrix:
        return ConfusionMatrix.compute(
            value_space, actuals, predictions, sample_ids=sample_ids, positive=self.positive
        )

    def compute_stat_from_cm(self, stat: Stat, cm: ConfusionMatrix) -> Stat:
        compute_stat_from_cm(stat, cm)
        stat.oob_error_mean = self.stat_total.oob_error / (len(self.oob_stats) + 1)
        return stat

    def compute_stat_total(self, stat: Stat | None) -> None:
        """Fold the latest recorded Stat into the running total."""
        if stat is None or not self.oob_stats:
            return
        total = self.stat_total
        total.oob_error += stat.oob_error
        total.oob_error_mean = total.oob_error / len(self.oob_stats)
        total.tp += stat.tp
        total.fp += stat.fp
        total.tn += stat.tn
        total.fn += stat.fn
        fill_rates(total)

    def write_oob_stat(self, stat: Stat | None) -> None:
        if stat is None or self._oob_writer is None:
            return
        self._oob_writer.write_row(stat.to_row())

    def log_oob_stat(self, stat: Stat, cm: ConfusionMatrix) -> None:
        logger.debug(
            "OOB error rate: %.4f, total: %.4f, mean %.4f, true rate: %.4f",
            stat.oob_error,
            self.stat_total.oob_error,
            stat.oob_error_mean,
            cm.true_rate(),
        )

    def log_stat(self, stat: Stat | None = None) -> None:
        if stat is None:
            if not self.oob_stats:
                return
            stat = self.oob_stats[-1]
        logger.info(
            "TPRate: %.4f, FPRate: %.4f, TNRate: %.4f, precision: %.4f, f-measure: %.4f, accuracy: %.4f",
            stat.tp_rate,
            stat.fp_rate,
            stat.tn_rate,
            stat.precision,
            stat.f_measure,
            stat.accuracy,
        )

    def performance(self, samples: Claset, probs: Sequence[float]) -> Stats:
        self.perfs = compute_performance(
            self.voting_space(samples), samples.class_values(), probs, positive=self.positive
        )
        return self.perfs

    def write_performance(self) -> int:
        return self.perfs.write(self.perf_file)

    def write_stat(self, stat: Stat) -> int:
        """Append one row per classified set to the stat file."""
        if not self.stat_file:
            return 0
        return Stats([stat]).write(self.stat_file, mode="a")
