from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Leaf:
    label: str
    size: int


@dataclass(frozen=True)
class Internal:
    attr_index: int
    attr_name: str
    is_continuous: bool
    # float threshold for real attributes, left-side value subset otherwise.
    split_value: float | tuple
    size: int
    left: "TreeNode"
    right: "TreeNode"

    def goes_left(self, value) -> bool:
        if self.is_continuous:
            return float(value) < self.split_value
        return value in self.split_value


TreeNode = Union[Leaf, Internal]
