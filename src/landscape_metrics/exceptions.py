"""
Exception hierarchy for the landscape metrics engine.

All engine operations validate their inputs before doing any work and raise
one of the errors below. Nothing is retried and no partial result is returned.

Hierarchy::

    LandscapeMetricsError               <- catch-all base
    ├── InvalidGridError                <- malformed label array or resolution
    ├── InvalidKernelError              <- bad connectivity / neighbourhood kernel
    ├── InvalidDepthError               <- negative or non-integer edge depth
    └── ComputationCancelled            <- caller's stop check fired mid-scan

The three input errors also derive from ``ValueError`` so callers written
against plain ``ValueError`` keep working.

Author: Jordan Pierce
Date: January 2026
"""

from typing import Any


class LandscapeMetricsError(Exception):
    """
    Base exception for all landscape metrics errors.

    Args:
        message: Human-readable description of the error.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class InvalidGridError(LandscapeMetricsError, ValueError):
    """Raised for non-rectangular arrays, non-integral labels or bad resolution."""


class InvalidKernelError(LandscapeMetricsError, ValueError):
    """
    Raised when a connectivity specification cannot be used.

    Args:
        message: Human-readable description of the error.
        kernel: The offending connectivity value, kept for inspection.
    """

    def __init__(self, message: str, kernel: Any = None):
        super().__init__(message)
        self.kernel = kernel


class InvalidDepthError(LandscapeMetricsError, ValueError):
    """Raised when an edge depth is negative or not a whole number."""


class ComputationCancelled(LandscapeMetricsError):
    """
    Raised when a caller-supplied stop check requests cancellation.

    Args:
        message: Human-readable description of the error.
        completed_units: Number of row bands finished before the stop.
    """

    def __init__(self, message: str, completed_units: int = 0):
        super().__init__(message)
        self.completed_units = completed_units
