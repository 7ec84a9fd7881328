"""
Errors
======

Failure kinds raised by the statistics pipeline. Each one is a distinct,
catchable exception; none of them is fatal, the caller decides whether to
abort or skip.
"""

from __future__ import annotations


class LexiplotError(Exception):
    """Base class for all lexiplot failures."""


class EmptyResultError(LexiplotError, ValueError):
    """A matrix or record list is empty after filtering or trimming."""


class InvalidGroupError(LexiplotError, LookupError):
    """A named group, metadata variable or row label does not exist."""


class DivisionByZeroError(LexiplotError, ZeroDivisionError):
    """A row sums to zero under proportional weighting."""


class UnknownFeatureError(LexiplotError, LookupError):
    """A queried keyword does not occur in any document."""
