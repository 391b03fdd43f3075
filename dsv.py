from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterable, Sequence

from mining_errors import WriterError

logger = logging.getLogger(__name__)


class DsvWriter:
    """Line-oriented delimited writer for statistics and samples.

    An empty path turns the writer into a no-op so estimators can always
    call it unconditionally.
    """

    def __init__(self, path: str | Path = "", delimiter: str = ",", mode: str = "w") -> None:
        self.path = str(path) if path else ""
        self.delimiter = delimiter
        self.mode = mode
        self._fh = None
        self._writer = None
        self.n_rows = 0

    @property
    def enabled(self) -> bool:
        return bool(self.path)

    def open(self) -> "DsvWriter":
        if not self.enabled or self._fh is not None:
            return self
        try:
            target = Path(self.path)
            if target.parent and not target.parent.exists():
                target.parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(target, self.mode, newline="")
        except OSError as e:
            raise WriterError(f"cannot open {self.path}: {e}") from e
        self._writer = csv.writer(self._fh, delimiter=self.delimiter)
        logger.debug("opened %s for writing", self.path)
        return self

    def write_row(self, row: Sequence) -> None:
        if not self.enabled:
            return
        if self._writer is None:
            self.open()
        try:
            self._writer.writerow(list(row))
        except OSError as e:
            raise WriterError(f"cannot write to {self.path}: {e}") from e
        self.n_rows += 1

    def write_rows(self, rows: Iterable[Sequence]) -> None:
        for row in rows:
            self.write_row(row)

    def close(self) -> None:
        if self._fh is None:
            return
        try:
            self._fh.close()
        except OSError as e:
            raise WriterError(f"cannot close {self.path}: {e}") from e
        finally:
            self._fh = None
            self._writer = None

    def __enter__(self) -> "DsvWriter":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def write_rows(path: str | Path, rows: Iterable[Sequence], delimiter: str = ",", mode: str = "w") -> int:
    """Write all rows to ``path`` in one go, returning the number written.

    ``mode="a"`` appends to an existing file.
    """
    with DsvWriter(path, delimiter=delimiter, mode=mode) as writer:
        writer.write_rows(rows)
        return writer.n_rows
