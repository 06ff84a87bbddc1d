from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class LocateError(Exception):
    """Base class of all errors raised while resolving location patterns"""


class MalformedPatternError(LocateError, ValueError):
    """A location pattern has an invalid prefix or glob syntax

    Raised at parse time, before any I/O is performed.
    """

    def __init__(self, pattern: str, reason: str):
        super().__init__(f'malformed location pattern {pattern!r}: {reason}')
        self.pattern = pattern
        self.reason = reason


class _LocationError(LocateError, OSError):
    def __init__(self, location: str | Path, message: str):
        # Keep `OSError` from re-interpreting a two-argument call as
        # `(errno, strerror)`.
        super().__init__(message)
        self.location = location


class OriginOpenError(_LocationError):
    """A required root or archive container could not be opened or read"""


class EnumerationError(_LocationError):
    """A readable root became unreadable while it was enumerated"""
