"""
errors.py - Failure taxonomy of the commitment engine.

All errors are raised at the call that detects them and are never retried
here. Retrying SourceUnavailable is the caller's decision.
"""


class CheckpointError(Exception):
    """Base class for every error raised by this package."""


class InvalidLeafCount(CheckpointError, ValueError):
    """Leaf sequence length is not a power of two."""

    def __init__(self, count: int):
        super().__init__(f"leaf count must be a power of two >= 1, got {count}")
        self.count = count


class IndexOutOfRange(CheckpointError, ValueError):
    """Leaf or block index outside the declared bounds."""


class MalformedProof(CheckpointError, ValueError):
    """Wire-decoded proof has the wrong shape."""


class SourceUnavailable(CheckpointError):
    """An external block source or ledger read failed."""
