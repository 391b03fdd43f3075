import numpy as np
import pytest

from cart import CartParams, CartTree
from data_structures import Claset, Internal, Leaf
from mining_errors import EmptyInputError, TreeGrowthError


def _collect_tree_signature(node):
    if isinstance(node, Leaf):
        return [("L", node.label, node.size)]

    signature = [("S", node.attr_index, node.split_value, node.size)]
    signature.extend(_collect_tree_signature(node.left))
    signature.extend(_collect_tree_signature(node.right))
    return signature


def _two_feature_claset(rng, n=120):
    x = rng.normal(size=(n, 2))
    labels = np.where(x[:, 0] > 0.2, "1", "0")
    rows = [[float(a), float(b), c] for (a, b), c in zip(x, labels)]
    return Claset(rows, class_values=["1", "0"])


def test_single_class_input_gives_one_leaf():
    rows = [[float(i), "a", "yes"] for i in range(7)]
    tree = CartTree().build(Claset(rows))

    assert tree.root == Leaf(label="yes", size=7)
    assert tree.depth() == 0
    assert tree.count_nodes() == 1


def test_empty_input_fails_fast():
    with pytest.raises(EmptyInputError):
        CartTree().build(Claset([], column_types=["real", "nominal"]))


def test_separable_data_is_learned_exactly():
    rng = np.random.default_rng(5)
    data = _two_feature_claset(rng)
    tree = CartTree(CartParams(n_random_feature=0), rng=np.random.default_rng(5)).build(data)

    assert isinstance(tree.root, Internal)
    assert tree.root.attr_index == 0
    assert tree.classify_set(data) == data.class_values()
    assert tree.count_oob_error(data) == 0.0


def test_tree_is_reproducible_with_same_seed():
    rng = np.random.default_rng(9)
    x = rng.normal(size=(80, 4))
    labels = np.where(x[:, 0] + 0.5 * x[:, 2] + 0.3 * rng.normal(size=80) > 0, "1", "0")
    rows = [list(map(float, r)) + [c] for r, c in zip(x, labels)]
    data = Claset(rows)

    a = CartTree(CartParams(n_random_feature=2), rng=np.random.default_rng(3)).build(data)
    b = CartTree(CartParams(n_random_feature=2), rng=np.random.default_rng(3)).build(data)
    assert _collect_tree_signature(a.root) == _collect_tree_signature(b.root)


def test_split_attribute_is_not_reused_below_it():
    rows = [
        [1.0, "1"],
        [2.0, "0"],
        [3.0, "1"],
        [4.0, "0"],
    ]
    tree = CartTree().build(Claset(rows))

    assert isinstance(tree.root, Internal)
    for child in (tree.root.left, tree.root.right):
        assert isinstance(child, Leaf)


def test_nominal_split_sends_subset_left():
    rows = [
        ["red", "1"],
        ["green", "1"],
        ["blue", "0"],
        ["red", "1"],
        ["blue", "0"],
    ]
    tree = CartTree().build(Claset(rows))

    assert isinstance(tree.root, Internal)
    assert not tree.root.is_continuous
    assert tree.classify(["blue", "?"]) == "0"
    assert tree.classify(["green", "?"]) == "1"


def test_unreadable_real_value_raises_growth_error():
    rows = [[1.0, "1"], [2.0, "0"], ["oops", "1"]]
    data = Claset(rows, column_types=["real", "nominal"])
    with pytest.raises(TreeGrowthError):
        CartTree().build(data)
