from __future__ import annotations


class MiningError(Exception):
    """Base class for errors raised by the mining toolkit."""


class DatasetError(MiningError, ValueError):
    """Dataset rows or schema are inconsistent."""


class EmptyInputError(MiningError, ValueError):
    """An estimator was asked to learn from zero rows."""


class TreeGrowthError(MiningError):
    """A tree could not be grown from its bootstrap sample."""


class RetryLimitExceeded(TreeGrowthError):
    def __init__(self, attempts: int, last_error: Exception | None = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        message = f"tree growth failed after {attempts} attempts"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)


class WriterError(MiningError, OSError):
    """An output artifact could not be opened or written."""
