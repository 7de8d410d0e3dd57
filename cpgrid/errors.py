"""
Exceptions raised while preparing and assembling corner-point grids.

All errors derive from GridError so callers can catch the whole family.
Each one also derives from the closest builtin so that generic handlers
(``except ValueError``, ``except OSError``) keep working.
"""


class GridError(Exception):
    """Base class for grid assembly errors."""
    pass


class InvalidDimensions(GridError, ValueError):
    """Raised for a malformed structured-grid request (a dimension < 1)."""
    pass


class FileReadFailed(GridError, OSError):
    """Raised when a grid file cannot be read or parsed."""
    pass


class ConstructionFailed(GridError, RuntimeError):
    """Raised when the topology builder rejects the final arrays."""
    pass


class ContractViolation(GridError, ValueError):
    """Raised when a caller breaks a precondition (array lengths, signs, ownership)."""
    pass
