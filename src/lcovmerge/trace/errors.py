"""
lcovmerge.trace.errors - Errors raised while merging traces.

Every error is fatal for the whole merge. The parser fills in the trace
path and line number before the error leaves it, so ``str(error)`` is a
ready-to-print ``path:line: message``.
"""

from __future__ import annotations


class TraceError(Exception):
    """Base class for all merge failures.

    Attributes:
        message: Description of the problem
        path: Trace file being parsed, if known
        lineno: 1-based line in that trace file, if known
    """

    def __init__(self, message: str, path: str | None = None, lineno: int | None = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.lineno = lineno

    def at(self, path: str, lineno: int | None = None) -> TraceError:
        """Attach a location unless one is already set, and return self."""
        if self.path is None:
            self.path = path
            self.lineno = lineno
        return self

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        if self.lineno is None:
            return f"{self.path}: {self.message}"
        return f"{self.path}:{self.lineno}: {self.message}"


class FormatError(TraceError):
    """A record is malformed (unknown tag, bad field count or value)."""


class ConsistencyError(TraceError):
    """A well-formed record contradicts data merged earlier."""


class TraceIOError(TraceError):
    """A trace or source file could not be read."""
