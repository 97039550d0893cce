"""
Exception types raised by the SOM engine and its data-file boundary.
"""


class SOMError(Exception):
    """Base class for every error raised by kohonen3d."""


class InvalidConfiguration(SOMError, ValueError):
    """A grid extent, input size, epoch count, learning rate or sigma is not positive."""


class DimensionMismatch(SOMError, ValueError):
    """A vector's length does not match the configured input size."""

    def __init__(self, expected: int, actual: int | tuple, what: str = "sample"):
        self.expected = expected
        self.actual = actual
        if isinstance(actual, tuple):
            message = f"Expected {what} of shape (num_samples, {expected}), got shape {actual}"
        else:
            message = f"Expected {what} of length {expected}, got {actual}"
        super().__init__(message)


class DataFormatError(SOMError):
    """
    A dataset file is malformed.

    Attributes:
        path: File the error was found in.
        line: 1-based line number in the file (the header is line 1), or None
            when the problem cannot be tied to a line.
        reason: The message without the location prefix.
        expected: Expected field count, if the error is a count mismatch.
        actual: Actual field count, if the error is a count mismatch.
    """

    def __init__(self, path, line: int | None, message: str,
                 expected: int | None = None, actual: int | None = None):
        self.path = str(path)
        self.line = line
        self.reason = message
        self.expected = expected
        self.actual = actual
        where = self.path if line is None else f"{self.path}:{line}"
        super().__init__(f"{where}: {message}")


class EmptyDataset(SOMError):
    """Training was requested on a dataset with no samples."""


class InvalidBatchSize(SOMError, ValueError):
    """Batch size must be a positive integer."""


class ResourceUnavailable(SOMError, OSError):
    """An input or output path could not be opened."""
