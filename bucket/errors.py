class BucketError(Exception):
    """Base class for contract violations raised by a checked ``Bucket``."""


class PreconditionViolation(BucketError, ValueError):
    """Construction arguments do not describe a valid ROWS x COLS grid."""


class RowIndexOutOfRange(BucketError, IndexError):
    """A row (or flat element) index lies outside the grid."""


class ValueOutOfRange(BucketError, ValueError):
    """Search target is not strictly inside ``(0, total)``."""


class UnsupportedContainer(BucketError, TypeError):
    """The viewed sequence is not a numeric array that can be read in place."""
