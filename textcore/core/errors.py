"""
Exception types raised by textcore.

Callers at the integration boundary catch ``TextCoreError`` to separate
expected failures (closed sources, bad offsets, failed substitutions)
from programming errors.
"""

from __future__ import annotations


class TextCoreError(Exception):
    """Base class for all textcore specific errors."""


class SourceClosedError(TextCoreError, ValueError):
    """Raised when a text source is used after it was closed."""

    def __init__(self, name: str = "text source"):
        super().__init__(f"Operation on closed {name}")


class OffsetOutOfRangeError(TextCoreError, IndexError):
    """Raised when a character index, start or length falls outside a source."""


class SubstitutionError(TextCoreError):
    """Raised when a substitution pattern or replacement cannot be applied."""


class SubstitutionTimeoutError(SubstitutionError):
    """Raised when regex matching exceeds its timeout."""
