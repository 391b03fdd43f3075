import numpy as np

from gini import compute_continuous, compute_discrete, find_max_gain, gini_impurity
from partitions import continuous_partitions, discrete_partitions


def test_gini_impurity_of_empty_and_pure_sets_is_zero():
    assert gini_impurity(np.array([0, 0])) == 0.0
    assert gini_impurity(np.array([5, 0])) == 0.0
    assert np.isclose(gini_impurity(np.array([2, 2])), 0.5)


def test_continuous_partitions_are_midpoints_of_distinct_values():
    mids = continuous_partitions(np.array([3.0, 1.0, 1.0, 2.0, 5.0]))
    assert np.allclose(mids, [1.5, 2.5, 4.0])
    assert continuous_partitions(np.array([7.0, 7.0])).size == 0


def test_discrete_partitions_cover_every_two_way_split_once():
    parts = discrete_partitions(["a", "b", "c"])
    assert len(parts) == 3
    seen = {frozenset(left) for left, _ in parts} | {frozenset(right) for _, right in parts}
    assert seen == {
        frozenset({"a"}),
        frozenset({"b"}),
        frozenset({"c"}),
        frozenset({"a", "b"}),
        frozenset({"a", "c"}),
        frozenset({"b", "c"}),
    }
    for left, right in parts:
        assert set(left) | set(right) == {"a", "b", "c"}
        assert not set(left) & set(right)

    assert len(discrete_partitions(["a", "b", "c", "d"])) == 7
    assert discrete_partitions(["a"]) == []


def test_continuous_threshold_is_deterministic():
    attr = [1, 6, 5, 4, 7, 3, 8, 7, 5]
    target = ["P", "P", "N", "P", "N", "N", "N", "P", "N"]
    classes = ["P", "N"]

    first = compute_continuous(attr, target, classes)
    for _ in range(3):
        again = compute_continuous(attr, target, classes)
        assert again.max_part_gain == first.max_part_gain
        assert again.max_part_gain_value() == first.max_part_gain_value()

    assert np.allclose(first.continuous_part, [2.0, 3.5, 4.5, 5.5, 6.5, 7.5])
    # P(1) on the left of 2.0 gives the largest drop in impurity.
    assert first.max_part_gain_value() == 2.0
    assert 0.0 < first.max_gain_value <= 1.0
    assert np.array_equal(first.sorted_index, np.argsort(attr, kind="stable"))


def test_gain_is_bounded_and_perfect_split_removes_all_impurity():
    attr = [1.0, 2.0, 3.0, 7.0, 8.0, 9.0]
    target = ["a", "a", "a", "b", "b", "b"]
    res = compute_continuous(attr, target, ["a", "b"])

    assert np.isclose(res.value, 0.5)
    assert np.isclose(res.max_gain_value, 0.5)
    assert res.max_part_gain_value() == 5.0
    assert np.all(res.gain >= 0.0)
    assert np.all(res.gain <= res.value + 1e-12)


def test_uninformative_attribute_reports_zero_gain():
    # Both values hold the classes in the same proportion.
    attr = ["x", "x", "y", "y"]
    target = ["a", "b", "a", "b"]
    res = compute_discrete(attr, ["x", "y"], target, ["a", "b"])

    assert res.max_gain_value == 0.0
    assert find_max_gain([res]) == -1


def test_discrete_gain_selects_separating_subset():
    attr = ["r", "g", "b", "r", "g", "b"]
    target = ["1", "1", "0", "1", "1", "0"]
    res = compute_discrete(attr, ["r", "g", "b"], target, ["1", "0"])

    left = set(res.max_part_gain_value())
    assert left in ({"r", "g"}, {"b"})
    assert np.isclose(res.max_gain_value, res.value)


def test_find_max_gain_skips_flagged_results_and_keeps_first_max():
    target = ["a", "a", "b", "b"]
    good = compute_continuous([1, 2, 3, 4], target, ["a", "b"])
    twin = compute_continuous([1, 2, 3, 4], target, ["a", "b"])
    noise = compute_continuous([1, 3, 2, 4], target, ["a", "b"])

    assert find_max_gain([noise, good, twin]) == 1
    good.skip = True
    assert find_max_gain([noise, good, twin]) == 2
