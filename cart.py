from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from data_structures import Claset, Internal, Leaf, TreeNode
from gini import GiniResult, compute_continuous, compute_discrete, find_max_gain
from mining_errors import EmptyInputError, TreeGrowthError

logger = logging.getLogger(__name__)


@dataclass
class CartParams:
    # 0 means every attribute is scored at every node.
    n_random_feature: int = 0
    random_state: int | None = None

    def __post_init__(self) -> None:
        if self.n_random_feature < 0:
            self.n_random_feature = 0


class CartTree:
    """Unpruned binary classification tree grown on Gini gain."""

    def __init__(
        self,
        params: CartParams | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.params = params or CartParams()
        self.rng = rng if rng is not None else np.random.default_rng(self.params.random_state)
        self.root: TreeNode | None = None
        self.oob_error: float = 0.0

    @property
    def n_random_feature(self) -> int:
        return self.params.n_random_feature

    def _sample_feature_subset(self, candidates: list[int]) -> list[int]:
        n = self.params.n_random_feature
        if n <= 0 or n >= len(candidates):
            return list(candidates)
        chosen = self.rng.choice(np.asarray(candidates, dtype=np.int64), size=n, replace=False)
        return [int(c) for c in np.sort(chosen)]

    def _score_attribute(self, data: Claset, col: int, target: list[str], classes: list[str]) -> GiniResult:
        if data.is_continuous(col):
            return compute_continuous(data.column_as_floats(col), target, classes)
        return compute_discrete(data.column_values(col), data.column_value_space(col), target, classes)

    def build(self, data: Claset) -> "CartTree":
        if data.n_rows == 0:
            raise EmptyInputError("cannot grow a tree from an empty dataset")
        try:
            self.root = self._split_node(data, frozenset(), data.majority_class)
        except (ValueError, TypeError) as e:
            raise TreeGrowthError(f"cannot grow tree: {e}") from e
        logger.debug("grew tree: depth=%d nodes=%d", self.depth(), self.count_nodes())
        return self

    def _split_node(self, data: Claset, excluded: frozenset[int], parent_majority: str) -> TreeNode:
        n = data.n_rows
        if n == 0:
            return Leaf(label=parent_majority, size=0)

        single, label = data.is_in_single_class()
        if single:
            return Leaf(label=label, size=n)

        candidates = [c for c in data.attribute_indices() if c not in excluded]
        if not candidates:
            return Leaf(label=data.majority_class, size=n)

        features = self._sample_feature_subset(candidates)
        target = data.class_values()
        classes = data.class_value_space()
        results = [self._score_attribute(data, col, target, classes) for col in features]

        best = find_max_gain(results)
        if best < 0:
            return Leaf(label=data.majority_class, size=n)

        col = features[best]
        split_value = results[best].max_part_gain_value()
        left, right = data.split_by_value(col, split_value)

        child_excluded = excluded | {col}
        return Internal(
            attr_index=col,
            attr_name=data.column_names[col],
            is_continuous=data.is_continuous(col),
            split_value=float(split_value) if data.is_continuous(col) else tuple(split_value),
            size=n,
            left=self._split_node(left, child_excluded, data.majority_class),
            right=self._split_node(right, child_excluded, data.majority_class),
        )

    def classify(self, row) -> str:
        if self.root is None:
            raise RuntimeError("Tree must be built before classification")
        node = self.root
        while isinstance(node, Internal):
            node = node.left if node.goes_left(row[node.attr_index]) else node.right
        return node.label

    def classify_set(self, data: Claset) -> list[str]:
        return [self.classify(row) for row in data.rows]

    def count_oob_error(self, oob: Claset) -> float:
        """Miss rate on ``oob``; stored on the tree as ``oob_error``."""
        if oob.n_rows == 0:
            self.oob_error = 0.0
            return self.oob_error
        predicts = self.classify_set(oob)
        actuals = oob.class_values()
        misses = sum(1 for p, a in zip(predicts, actuals) if p != a)
        self.oob_error = misses / oob.n_rows
        return self.oob_error

    def depth(self) -> int:
        def _depth(node: TreeNode | None) -> int:
            if node is None or isinstance(node, Leaf):
                return 0
            return 1 + max(_depth(node.left), _depth(node.right))

        return _depth(self.root)

    def count_nodes(self) -> int:
        def _count(node: TreeNode | None) -> int:
            if node is None:
                return 0
            if isinstance(node, Leaf):
                return 1
            return 1 + _count(node.left) + _count(node.right)

        return _count(self.root)

    def __str__(self) -> str:
        lines: list[str] = []

        def _render(node: TreeNode | None, level: int) -> None:
            pad = "  " * level
            if node is None:
                lines.append(f"{pad}<empty>")
            elif isinstance(node, Leaf):
                lines.append(f"{pad}class={node.label} size={node.size}")
            else:
                op = "<" if node.is_continuous else "in"
                lines.append(f"{pad}{node.attr_name} {op} {node.split_value!r} size={node.size}")
                _render(node.left, level + 1)
                _render(node.right, level + 1)

        _render(self.root, 0)
        return "\n".join(lines)
