import math

import numpy as np
import pytest

from cascaded_forest import CascadedForest, CascadeParams, CascadeStage
from data_structures import Claset
from evaluation import ConfusionMatrix
from mining_errors import EmptyInputError


def _imbalanced_claset(rng, n=160):
    x = rng.normal(size=(n, 3))
    score = x[:, 0] + 0.5 * x[:, 2] + 0.4 * rng.normal(size=n)
    labels = np.where(score > 0.8, "1", "0")
    rows = [list(map(float, r)) + [c] for r, c in zip(x, labels)]
    return Claset(rows, class_values=["1", "0"])


def _row_ids(data):
    return {id(r) for r in data.rows}


def test_working_set_stays_disjoint_from_reservoir():
    data = _imbalanced_claset(np.random.default_rng(0))
    cascade = CascadedForest(CascadeParams(n_stage=6, n_tree=3, random_state=0))

    checked = []
    finalize_stage = cascade._finalize_stage

    def _checking(forest):
        finalize_stage(forest)
        assert _row_ids(data).isdisjoint(_row_ids(cascade.reservoir))
        checked.append(len(cascade.stages))

    cascade._finalize_stage = _checking
    cascade.build(data)

    assert checked
    assert checked == list(range(1, len(cascade.stages) + 1))


def test_stage_weights_come_from_f_measure():
    data = _imbalanced_claset(np.random.default_rng(1))
    cascade = CascadedForest(CascadeParams(n_stage=4, n_tree=2, random_state=1)).build(data)

    assert 1 <= len(cascade.stages) <= 4
    for stage in cascade.stages:
        assert 1.0 <= stage.weight <= math.e
        assert 1 <= len(stage.forest) <= 2
    assert len(cascade.oob_stats) == len(cascade.stages)


def test_classify_by_weight_returns_one_prediction_per_row(tmp_path):
    rng = np.random.default_rng(2)
    train = _imbalanced_claset(rng)
    test = _imbalanced_claset(rng, n=60)
    stat_file = tmp_path / "crf.stat"

    cascade = CascadedForest(
        CascadeParams(n_stage=5, n_tree=2, random_state=2, stat_file=str(stat_file))
    ).build(train)
    predicts, cm, probs = cascade.classify_by_weight(test)

    assert len(predicts) == len(probs) == test.n_rows
    assert set(predicts) <= {"1", "0"}
    assert cm.tp() + cm.fp() + cm.tn() + cm.fn() == test.n_rows
    assert all(0.0 <= p <= 1.0 for p in probs)
    assert stat_file.exists()

    perfs = cascade.performance(test, probs)
    assert 0.0 <= perfs[-1].auc <= 1.0


def test_invalid_thresholds_fall_back_to_defaults():
    params = CascadeParams(n_stage=0, n_tree=-1, tp_rate=1.0, tn_rate=0.0)
    assert params.n_stage == 200
    assert params.n_tree == 1
    assert params.tp_rate == 0.9
    assert params.tn_rate == 0.7


def test_empty_input_fails_fast():
    with pytest.raises(EmptyInputError):
        CascadedForest(CascadeParams(n_stage=2)).build(Claset([], column_types=["real", "nominal"]))


def _cascade_with_stages(data, n_stages):
    cascade = CascadedForest(CascadeParams(n_stage=3))
    cascade.reservoir = data.empty_like()
    cascade.stages = [CascadeStage(forest=None, weight=1.0) for _ in range(n_stages)]
    return cascade


def _cm(data, predictions):
    ids = list(range(data.n_rows))
    return ConfusionMatrix.compute(["1", "0"], data.class_values(), predictions, sample_ids=ids)


def test_true_negatives_are_archived_only_by_the_first_stage():
    data = Claset(
        [[0.0, "0"], [1.0, "0"], [2.0, "1"], [3.0, "0"], [4.0, "1"]],
        class_values=["1", "0"],
    )
    r0, r1, r2, r3, r4 = data.rows
    cascade = _cascade_with_stages(data, 1)

    cascade._delete_true_negative(data, _cm(data, ["0", "1", "1", "0", "1"]))
    assert data.rows == [r1, r2, r4]
    assert cascade.reservoir.rows[0] is r0
    assert cascade.reservoir.rows[1] is r3

    cascade.stages.append(CascadeStage(forest=None, weight=1.0))
    cascade._delete_true_negative(data, _cm(data, ["0", "1", "1"]))
    assert [id(r) for r in data.rows] == [id(r2), id(r4)]
    assert cascade.reservoir.n_rows == 2


def test_reservoir_false_positives_move_back_into_the_working_set():
    data = Claset([[2.0, "1"], [4.0, "1"]], class_values=["1", "0"])
    cascade = _cascade_with_stages(data, 1)
    archived = [[0.0, "0"], [3.0, "0"], [5.0, "0"]]
    cascade.reservoir.push_rows(archived)

    def _weighted(samples, sample_ids=None):
        predictions = ["0", "1", "1"]
        return predictions, _cm(samples, predictions), [0.0] * samples.n_rows

    cascade.classify_by_weight = _weighted

    # The first stage never refills.
    cascade._refill_with_false_positive(data)
    assert data.n_rows == 2
    assert cascade.reservoir.n_rows == 3

    cascade.stages.append(CascadeStage(forest=None, weight=1.0))
    cascade._refill_with_false_positive(data)
    assert data.rows[2:] == [[3.0, "0"], [5.0, "0"]]
    assert data.rows[2] is archived[1]
    assert cascade.reservoir.rows == [[0.0, "0"]]
    assert _row_ids(data).isdisjoint(_row_ids(cascade.reservoir))
    assert data.counts() == [2, 2]


def test_cascade_votes_over_training_labels():
    rows = [[float(x), "1" if x > 0 else "0"] for x in range(-20, 21) if x != 0]
    cascade = CascadedForest(CascadeParams(n_stage=3, n_tree=3, random_state=3)).build(Claset(rows))
    predicts, cm, _ = cascade.classify_by_weight(Claset([[15.0, "0"], [18.0, "0"]]))

    assert cascade.value_space == ["0", "1"]
    assert predicts == ["1", "1"]
    assert cm.fp() == 2
