from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from mining_errors import DatasetError

REAL = "real"
NOMINAL = "nominal"


def _is_real(value) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(
        value, (bool, np.bool_)
    )


def _first_appearance(values: Iterable) -> list:
    seen: dict = {}
    for v in values:
        if v not in seen:
            seen[v] = None
    return list(seen)


class Claset:
    """Row-oriented classification dataset.

    Rows are plain lists. Class labels are stored as strings; other columns
    are either ``"real"`` (read as floats) or ``"nominal"`` (compared as-is).
    Views produced by ``clone``, ``split_by_value`` and friends share row
    references with their parent and start from a copy of its class value
    space.
    """

    def __init__(
        self,
        rows: Iterable[Sequence] = (),
        column_types: Sequence[str] | None = None,
        class_index: int = -1,
        column_names: Sequence[str] | None = None,
        class_values: Sequence[str] | None = None,
    ) -> None:
        rows = [list(r) for r in rows]

        if column_types is not None:
            n_columns = len(column_types)
        elif column_names is not None:
            n_columns = len(column_names)
        elif rows:
            n_columns = len(rows[0])
        else:
            raise DatasetError("cannot infer the number of columns of an empty dataset")

        if class_index < 0:
            class_index += n_columns
        if not (0 <= class_index < n_columns):
            raise DatasetError(f"class_index {class_index} out of range for {n_columns} columns")

        for i, row in enumerate(rows):
            if len(row) != n_columns:
                raise DatasetError(f"row {i} has {len(row)} columns, expected {n_columns}")
            row[class_index] = str(row[class_index])

        if column_types is None:
            column_types = [
                REAL
                if idx != class_index and rows and all(_is_real(r[idx]) for r in rows)
                else NOMINAL
                for idx in range(n_columns)
            ]
        else:
            column_types = [str(t).lower() for t in column_types]
            for t in column_types:
                if t not in {REAL, NOMINAL}:
                    raise DatasetError(f"unknown column type: {t}")

        if column_names is None:
            column_names = [str(i) for i in range(n_columns)]

        value_space = [str(v) for v in class_values] if class_values is not None else []
        for label in _first_appearance(r[class_index] for r in rows):
            if label not in value_space:
                value_space.append(label)

        self.rows: list[list] = rows
        self.column_types: list[str] = list(column_types)
        self.column_names: list[str] = [str(n) for n in column_names]
        self.class_index = class_index
        self._value_space: list[str] = value_space

        self.majority_class = ""
        self.minority_class = ""
        self.recount_major_minor()

    def _derive(self, rows: list[list]) -> "Claset":
        child = object.__new__(Claset)
        child.rows = rows
        child.column_types = self.column_types
        child.column_names = self.column_names
        child.class_index = self.class_index
        child._value_space = list(self._value_space)
        child.majority_class = ""
        child.minority_class = ""
        child.recount_major_minor()
        return child

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def __repr__(self) -> str:
        return (
            f"Claset(n_rows={self.n_rows}, n_columns={self.n_columns}, "
            f"class_index={self.class_index}, counts={dict(zip(self._value_space, self.counts()))})"
        )

    @property
    def n_rows(self) -> int:
        return len(self.rows)

    @property
    def n_columns(self) -> int:
        return len(self.column_types)

    def get_row(self, idx: int) -> list:
        return self.rows[idx]

    def class_value_space(self) -> list[str]:
        return list(self._value_space)

    def class_values(self) -> list[str]:
        ci = self.class_index
        return [r[ci] for r in self.rows]

    def attribute_indices(self) -> list[int]:
        return [i for i in range(self.n_columns) if i != self.class_index]

    def column_type(self, idx: int) -> str:
        return self.column_types[idx]

    def is_continuous(self, idx: int) -> bool:
        return self.column_type(idx) == REAL

    def column_values(self, idx: int) -> list:
        return [r[idx] for r in self.rows]

    def column_as_floats(self, idx: int) -> np.ndarray:
        """Read a column as float64; raises ValueError on non-numeric data."""
        return np.asarray([float(r[idx]) for r in self.rows], dtype=np.float64)

    def column_value_space(self, idx: int) -> list:
        if idx == self.class_index:
            return self.class_value_space()
        return _first_appearance(r[idx] for r in self.rows)

    def counts(self) -> list[int]:
        index = {v: i for i, v in enumerate(self._value_space)}
        out = [0] * len(self._value_space)
        ci = self.class_index
        for r in self.rows:
            out[index[r[ci]]] += 1
        return out

    def recount_major_minor(self) -> None:
        """Refresh majority/minority labels; ties resolve to the first label."""
        counts = self.counts()
        if not counts:
            self.majority_class = ""
            self.minority_class = ""
            return
        self.majority_class = self._value_space[int(np.argmax(counts))]
        self.minority_class = self._value_space[int(np.argmin(counts))]

    def is_in_single_class(self) -> tuple[bool, str]:
        ci = self.class_index
        if not self.rows:
            return False, ""
        first = self.rows[0][ci]
        for r in self.rows:
            if r[ci] != first:
                return False, ""
        return True, first

    def clone(self) -> "Claset":
        return self._derive(list(self.rows))

    def empty_like(self) -> "Claset":
        return self._derive([])

    def select_rows(self, indices: Iterable[int]) -> "Claset":
        return self._derive([self.rows[i] for i in indices])

    def select_where(self, col: int, value) -> "Claset":
        return self._derive([r for r in self.rows if r[col] == value])

    def minority_rows(self) -> "Claset":
        return self.select_where(self.class_index, self.minority_class)

    def split_by_value(self, col: int, value) -> tuple["Claset", "Claset"]:
        """Partition rows on one attribute.

        Real columns go left when ``row[col] < value``; nominal columns go
        left when ``row[col]`` is a member of the ``value`` collection.
        """
        left: list[list] = []
        right: list[list] = []
        if self.is_continuous(col):
            threshold = float(value)
            for r in self.rows:
                (left if float(r[col]) < threshold else right).append(r)
        else:
            members = set(value)
            for r in self.rows:
                (left if r[col] in members else right).append(r)
        return self._derive(left), self._derive(right)

    def push_row(self, row: Sequence) -> None:
        row = list(row) if not isinstance(row, list) else row
        if len(row) != self.n_columns:
            raise DatasetError(f"row has {len(row)} columns, expected {self.n_columns}")
        label = str(row[self.class_index])
        row[self.class_index] = label
        if label not in self._value_space:
            self._value_space.append(label)
        self.rows.append(row)

    def push_rows(self, rows: Iterable[Sequence]) -> None:
        for r in rows:
            self.push_row(r)

    def delete_rows(self, indices: Iterable[int]) -> list[list]:
        """Remove rows at ``indices`` in one pass and return them in index order."""
        doomed = sorted(set(indices))
        if not doomed:
            return []
        if doomed[0] < 0 or doomed[-1] >= len(self.rows):
            raise IndexError("row index out of range")
        doomed_set = set(doomed)
        removed = [self.rows[i] for i in doomed]
        self.rows = [r for i, r in enumerate(self.rows) if i not in doomed_set]
        return removed

    def random_pick_rows(
        self,
        n: int,
        duplicate: bool,
        rng: np.random.Generator,
    ) -> tuple["Claset", "Claset", list[int], list[int]]:
        """Draw ``n`` rows, with replacement when ``duplicate`` is true.

        Returns the picked view, the view of rows never picked, and both
        index lists.
        """
        n_rows = len(self.rows)
        if n_rows == 0 or n <= 0:
            return self.empty_like(), self.clone(), [], list(range(n_rows))

        if duplicate:
            picked_idx = [int(i) for i in rng.integers(0, n_rows, size=n)]
        else:
            size = min(n, n_rows)
            picked_idx = [int(i) for i in rng.choice(n_rows, size=size, replace=False)]

        chosen = set(picked_idx)
        unpicked_idx = [i for i in range(n_rows) if i not in chosen]
        return (
            self.select_rows(picked_idx),
            self.select_rows(unpicked_idx),
            picked_idx,
            unpicked_idx,
        )

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        class_column: str | int | None = None,
        class_values: Sequence[str] | None = None,
    ) -> "Claset":
        if class_column is None:
            class_index = df.shape[1] - 1
        elif isinstance(class_column, int):
            class_index = class_column if class_column >= 0 else df.shape[1] + class_column
        else:
            if class_column not in df.columns:
                raise DatasetError(f"class column {class_column!r} not found")
            class_index = list(df.columns).index(class_column)

        column_types = [
            REAL
            if idx != class_index and pd.api.types.is_numeric_dtype(df.iloc[:, idx])
            else NOMINAL
            for idx in range(df.shape[1])
        ]
        rows = df.astype(object).to_numpy().tolist()
        return cls(
            rows,
            column_types=column_types,
            class_index=class_index,
            column_names=[str(c) for c in df.columns],
            class_values=class_values,
        )


def read_claset(
    path: str | Path,
    delimiter: str = ",",
    class_column: str | int | None = None,
    header: bool = True,
    class_values: Sequence[str] | None = None,
) -> Claset:
    """Load a delimited file into a Claset; the last column is the class by default."""
    df = pd.read_csv(path, sep=delimiter, header=0 if header else None, low_memory=False)
    df = df.dropna(how="all")
    if class_column is not None and not isinstance(class_column, int) and not header:
        raise DatasetError("a named class column needs a header row")
    return Claset.from_frame(df, class_column=class_column, class_values=class_values)
