"""
Data structures for the tree ensembles and resamplers.

``Claset`` holds a row-oriented classification dataset; ``Leaf`` and
``Internal`` are the two node kinds of a binary decision tree.
"""
from data_structures.claset import NOMINAL, REAL, Claset, read_claset
from data_structures.tree_node import Internal, Leaf, TreeNode

__all__ = ["Claset", "read_claset", "REAL", "NOMINAL", "Leaf", "Internal", "TreeNode"]
