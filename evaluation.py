from __future__ import annotations

import time
from dataclasses import astuple, dataclass, fields
from pathlib import Path
from typing import Sequence

import numpy as np

from dsv import write_rows


POSITIVE_LABEL = "1"


def positive_label(value_space: Sequence[str], positive: str | None = None) -> str:
    """The class treated as positive: ``positive`` if given, else "1" when
    present, else the first label of the value space."""
    if positive is not None:
        return str(positive)
    labels = [str(v) for v in value_space]
    if POSITIVE_LABEL in labels:
        return POSITIVE_LABEL
    return labels[0] if labels else ""


class ConfusionMatrix:
    """Counts of (actual, predicted) label pairs over an ordered value space.

    Rows are actual classes, columns predicted classes. TP/FP/TN/FN are
    one-vs-rest around a single positive label (see ``positive_label``).
    Labels outside the value space are ignored.
    """

    def __init__(self, value_space: Sequence[str], positive: str | None = None) -> None:
        self.value_space = [str(v) for v in value_space]
        self.positive = positive_label(self.value_space, positive)
        if self.positive in self.value_space:
            self.positive_index = self.value_space.index(self.positive)
        else:
            self.positive_index = -1
        n = len(self.value_space)
        self.matrix = np.zeros((n, n), dtype=np.int64)
        self.tp_ids: list[int] = []
        self.fp_ids: list[int] = []
        self.tn_ids: list[int] = []
        self.fn_ids: list[int] = []

    @classmethod
    def compute(
        cls,
        value_space: Sequence[str],
        actuals: Sequence[str],
        predictions: Sequence[str],
        sample_ids: Sequence[int] | None = None,
        positive: str | None = None,
    ) -> "ConfusionMatrix":
        if len(actuals) != len(predictions):
            raise ValueError("actuals and predictions must have the same length")

        cm = cls(value_space, positive=positive)
        lookup = {v: i for i, v in enumerate(cm.value_space)}
        for actual, predicted in zip(actuals, predictions):
            a = lookup.get(str(actual))
            p = lookup.get(str(predicted))
            if a is None or p is None:
                continue
            cm.matrix[a, p] += 1

        if sample_ids is None:
            sample_ids = range(len(actuals))
        cm.group_index_predictions(sample_ids, actuals, predictions)
        return cm

    def group_index_predictions(
        self,
        sample_ids: Sequence[int],
        actuals: Sequence[str],
        predictions: Sequence[str],
    ) -> None:
        """Sort sample ids into TP/FP/TN/FN lists around the positive label.

        sample_ids:  [0, 1, 2, 3, 4, 5]
        actuals:     [1, 1, 0, 0, 1, 0]
        predictions: [1, 0, 1, 0, 1, 1]

        gives TP [0, 4], FP [2, 5], TN [3] and FN [1].
        """
        positive = self.positive

        self.tp_ids, self.fp_ids, self.tn_ids, self.fn_ids = [], [], [], []
        for sid, actual, predicted in zip(sample_ids, actuals, predictions):
            is_pos_actual = str(actual) == positive
            is_pos_pred = str(predicted) == positive
            if is_pos_actual and is_pos_pred:
                self.tp_ids.append(int(sid))
            elif is_pos_actual:
                self.fn_ids.append(int(sid))
            elif is_pos_pred:
                self.fp_ids.append(int(sid))
            else:
                self.tn_ids.append(int(sid))

    @property
    def n_samples(self) -> int:
        return int(self.matrix.sum())

    def tp(self) -> int:
        p = self.positive_index
        if p < 0:
            return 0
        return int(self.matrix[p, p])

    def fn(self) -> int:
        p = self.positive_index
        if p < 0:
            return 0
        return int(self.matrix[p, :].sum() - self.matrix[p, p])

    def fp(self) -> int:
        p = self.positive_index
        if p < 0:
            return 0
        return int(self.matrix[:, p].sum() - self.matrix[p, p])

    def tn(self) -> int:
        p = self.positive_index
        if p < 0:
            return self.n_samples
        return self.n_samples - self.tp() - self.fn() - self.fp()

    def class_errors(self) -> np.ndarray:
        """Off-diagonal share of each actual-class row, 0 for an empty row."""
        totals = self.matrix.sum(axis=1).astype(np.float64)
        wrong = totals - np.diag(self.matrix)
        safe = np.where(totals > 0, totals, 1.0)
        return np.where(totals > 0, wrong / safe, 0.0)

    def table(self) -> np.ndarray:
        """The matrix with the per-class error appended as its last column."""
        return np.column_stack([self.matrix.astype(np.float64), self.class_errors()])

    def true_rate(self) -> float:
        total = self.n_samples
        if total == 0:
            return 0.0
        return float(np.trace(self.matrix)) / total

    def false_rate(self) -> float:
        total = self.n_samples
        if total == 0:
            return 0.0
        return float(total - np.trace(self.matrix)) / total

    def __str__(self) -> str:
        width = max([len(v) for v in self.value_space] + [8])
        header = " " * width + "".join(f" {v:>{width}}" for v in self.value_space) + f" {'error':>{width}}"
        lines = [header]
        errors = self.class_errors()
        for i, v in enumerate(self.value_space):
            cells = "".join(f" {int(c):>{width}}" for c in self.matrix[i])
            lines.append(f"{v:>{width}}{cells} {errors[i]:>{width}.4f}")
        lines.append(f"TP={self.tp()} FP={self.fp()} TN={self.tn()} FN={self.fn()}")
        return "\n".join(lines)


@dataclass
class Stat:
    id: int = 0
    start_time: float = 0.0
    end_time: float = 0.0
    elapsed_time: float = 0.0
    oob_error: float = 0.0
    oob_error_mean: float = 0.0
    tp: int = 0
    fp: int = 0
    tn: int = 0
    fn: int = 0
    tp_rate: float = 0.0
    fp_rate: float = 0.0
    tn_rate: float = 0.0
    precision: float = 0.0
    f_measure: float = 0.0
    accuracy: float = 0.0
    auc: float = 0.0

    def start(self) -> None:
        self.start_time = time.time()

    def end(self) -> None:
        self.end_time = time.time()
        self.elapsed_time = self.end_time - self.start_time

    def to_row(self) -> list:
        return list(astuple(self))

    @classmethod
    def header(cls) -> list[str]:
        return [f.name for f in fields(cls)]


class Stats(list):
    """Ordered collection of ``Stat`` rows."""

    def _column(self, name: str) -> np.ndarray:
        return np.asarray([getattr(s, name) for s in self], dtype=np.float64)

    def tp_rates(self) -> np.ndarray:
        return self._column("tp_rate")

    def fp_rates(self) -> np.ndarray:
        return self._column("fp_rate")

    def tn_rates(self) -> np.ndarray:
        return self._column("tn_rate")

    def precisions(self) -> np.ndarray:
        return self._column("precision")

    def f_measures(self) -> np.ndarray:
        return self._column("f_measure")

    def accuracies(self) -> np.ndarray:
        return self._column("accuracy")

    def oob_errors(self) -> np.ndarray:
        return self._column("oob_error")

    def write(self, path: str | Path, delimiter: str = ",", mode: str = "w") -> int:
        if not path:
            return 0
        return write_rows(path, (s.to_row() for s in self), delimiter=delimiter, mode=mode)


def _ratio(num: float, den: float) -> float:
    return float(num) / den if den else 0.0


def fill_rates(stat: Stat) -> Stat:
    """Derive rates, precision, F-measure and accuracy from the four counts."""
    stat.tp_rate = _ratio(stat.tp, stat.tp + stat.fn)
    stat.fp_rate = _ratio(stat.fp, stat.fp + stat.tn)
    stat.tn_rate = _ratio(stat.tn, stat.fp + stat.tn)
    stat.precision = _ratio(stat.tp, stat.tp + stat.fp)
    if stat.precision > 0.0 and stat.tp_rate > 0.0:
        stat.f_measure = 2.0 / (1.0 / stat.precision + 1.0 / stat.tp_rate)
    else:
        stat.f_measure = 0.0
    stat.accuracy = _ratio(stat.tp + stat.tn, stat.tp + stat.tn + stat.fp + stat.fn)
    return stat


def compute_stat_from_cm(stat: Stat, cm: ConfusionMatrix) -> Stat:
    stat.oob_error = cm.false_rate()
    stat.tp = cm.tp()
    stat.fp = cm.fp()
    stat.tn = cm.tn()
    stat.fn = cm.fn()
    return fill_rates(stat)


def _trapezoid(fp: int, fp_prev: int, tp: int, tp_prev: int) -> float:
    return abs(fp - fp_prev) * (tp + tp_prev) / 2.0


def compute_performance(
    value_space: Sequence[str],
    actuals: Sequence[str],
    probs: Sequence[float],
    positive: str | None = None,
) -> Stats:
    """ROC sweep over scores for the positive label.

    One Stat per distinct score (descending) plus a final one; ``auc`` on
    each entry is the area accumulated so far, normalised by
    positives * negatives, so the last entry carries the full ROC-AUC.
    """
    if len(actuals) != len(probs):
        raise ValueError("actuals and probs must have the same length")

    positive = positive_label(value_space, positive)
    scores = np.asarray(probs, dtype=np.float64)
    order = np.argsort(-scores, kind="stable")
    is_pos = np.asarray([str(actuals[i]) == positive for i in order], dtype=bool)

    n_pos = int(is_pos.sum())
    n_neg = int(is_pos.size - n_pos)
    norm = float(n_pos * n_neg)

    perfs = Stats()
    tp = fp = tp_prev = fp_prev = 0
    area = 0.0
    prev_score = -np.inf

    def _point() -> Stat:
        stat = Stat(id=len(perfs), tp=tp, fp=fp, fn=n_pos - tp, tn=n_neg - fp)
        fill_rates(stat)
        stat.auc = area / norm if norm else 0.0
        return stat

    for score, pos in zip(scores[order], is_pos):
        if score != prev_score:
            area += _trapezoid(fp, fp_prev, tp, tp_prev)
            perfs.append(_point())
            prev_score = score
            tp_prev, fp_prev = tp, fp
        if pos:
            tp += 1
        else:
            fp += 1

    area += _trapezoid(fp, fp_prev, tp, tp_prev)
    perfs.append(_point())
    return perfs
