import numpy as np
import pytest

from data_structures import Claset
from mining_errors import EmptyInputError, RetryLimitExceeded, TreeGrowthError
from random_forest import BagRecord, ForestParams, RandomForest


def _make_claset(rng, n=150):
    x = rng.normal(size=(n, 4))
    logits = 2.0 * x[:, 0] - 1.5 * x[:, 1] + 0.3 * rng.normal(size=n)
    labels = np.where(logits > 0, "1", "0")
    rows = [list(map(float, r)) + [c] for r, c in zip(x, labels)]
    return Claset(rows, class_values=["1", "0"])


def test_bag_size_and_bag_oob_partition():
    rng = np.random.default_rng(1)
    data = _make_claset(rng, n=101)
    forest = RandomForest(ForestParams(n_tree=5, percent_boot=66, random_state=1)).build(data)

    assert forest.n_sub_sample == 67
    assert len(forest.trees) == len(forest.bags) == 5
    for bag in forest.bags:
        assert len(bag.indices) == 67
        assert set(bag.indices).isdisjoint(bag.oob_indices)
        assert set(bag.indices) | set(bag.oob_indices) == set(range(101))


def test_default_feature_count_is_rounded_sqrt():
    data = _make_claset(np.random.default_rng(2), n=40)
    forest = RandomForest(ForestParams(n_tree=2, random_state=2)).build(data)
    assert forest.n_random_feature == 2


def test_invalid_parameters_fall_back_to_defaults():
    params = ForestParams(n_tree=0, percent_boot=0, n_random_feature=-3, max_retries=0)
    assert params.n_tree == 100
    assert params.percent_boot == 66
    assert params.n_random_feature == 0
    assert params.max_retries == 10


def test_empty_input_fails_fast():
    with pytest.raises(EmptyInputError):
        RandomForest(ForestParams(n_tree=3)).build(Claset([], column_types=["real", "nominal"]))


def test_forest_learns_linear_boundary_and_reports_oob():
    rng = np.random.default_rng(3)
    train = _make_claset(rng, n=200)
    test = _make_claset(rng, n=100)

    forest = RandomForest(ForestParams(n_tree=25, run_oob=True, random_state=3)).build(train)
    predicts, cm, probs = forest.classify_set(test)

    assert len(predicts) == len(probs) == test.n_rows
    assert cm.tp() + cm.fp() + cm.tn() + cm.fn() == test.n_rows
    assert forest.last_stat.accuracy > 0.75
    assert all(0.0 <= p <= 1.0 for p in probs)

    assert len(forest.oob_stats) == 25
    assert len(forest.oob_cms) == 25
    assert 0.0 <= forest.stat_total.oob_error_mean <= 1.0


def test_votes_skip_trees_that_saw_the_sample():
    rng = np.random.default_rng(4)
    data = _make_claset(rng, n=60)
    forest = RandomForest(ForestParams(n_tree=6, random_state=4)).build(data)

    sample_id = 0
    n_out_of_bag = sum(1 for bag in forest.bags if sample_id not in bag)
    votes = forest.votes(data.rows[sample_id], sample_id)
    if n_out_of_bag:
        assert len(votes) == n_out_of_bag
    else:
        assert len(votes) == len(forest.trees)
    assert len(forest.votes(data.rows[sample_id])) == len(forest.trees)


def test_sample_in_every_bag_is_voted_by_all_trees():
    forest = RandomForest(ForestParams(n_tree=2, random_state=0))
    rows = [[0.0, "1"], [1.0, "0"]]
    data = Claset(rows)
    forest.build(data)
    forest.bags = [BagRecord(indices=(0, 1), oob_indices=()), BagRecord(indices=(0,), oob_indices=(1,))]

    assert len(forest.votes(data.rows[0], 0)) == 2


def test_growth_retries_are_bounded(monkeypatch):
    data = _make_claset(np.random.default_rng(5), n=30)
    forest = RandomForest(ForestParams(n_tree=3, max_retries=4, random_state=5))

    calls = []

    def _fail(samples):
        calls.append(1)
        raise TreeGrowthError("bad bootstrap")

    monkeypatch.setattr(forest, "_grow_tree_once", _fail)
    with pytest.raises(RetryLimitExceeded):
        forest.build(data)
    assert len(calls) == 4


def test_stat_file_written_when_classifying_test_set(tmp_path):
    data = _make_claset(np.random.default_rng(6), n=50)
    stat_file = tmp_path / "rf.stat"
    oob_file = tmp_path / "rf.oob"
    forest = RandomForest(
        ForestParams(
            n_tree=4,
            run_oob=True,
            random_state=6,
            stat_file=str(stat_file),
            oob_stats_file=str(oob_file),
        )
    ).build(data)
    forest.classify_set(data)
    forest.classify_set(data)

    # One appended row per classified set.
    assert len(stat_file.read_text().strip().splitlines()) == 2
    # One row per tree plus the total.
    assert len(oob_file.read_text().strip().splitlines()) == 5


def _threshold_claset():
    # x > 0 is class "1"; the first row makes the training value space ["0", "1"].
    rows = [[float(x), "1" if x > 0 else "0"] for x in range(-20, 21) if x != 0]
    return Claset(rows)


def test_votes_cover_training_labels_missing_from_the_test_set():
    forest = RandomForest(ForestParams(n_tree=15, random_state=7)).build(_threshold_claset())
    only_negatives = Claset([[5.0, "0"], [6.0, "0"], [-3.0, "0"]])

    predicts, cm, probs = forest.classify_set(only_negatives)

    assert forest.value_space == ["0", "1"]
    assert predicts == ["1", "1", "0"]
    assert probs[0] > 0.5 and probs[2] < 0.5
    assert cm.fp() == 2
    assert cm.tn() == 1
    assert forest.last_stat.accuracy == 1.0 / 3.0


def test_test_only_labels_follow_the_training_labels():
    forest = RandomForest(ForestParams(n_tree=3, random_state=8)).build(_threshold_claset())
    test = Claset([[1.0, "2"], [-1.0, "1"]])

    assert forest.voting_space(test) == ["0", "1", "2"]
    predicts, cm, _ = forest.classify_set(test)
    assert set(predicts) <= {"0", "1"}
    assert cm.tp() + cm.fp() + cm.tn() + cm.fn() == 2
