"""Filesystem - Read capability used for traces and source files.

The merge core never opens files itself. It asks a ``Filesystem`` for the
content of a path and gets back a :class:`ReadResult`, so tests can
substitute an in-memory implementation.
"""

from __future__ import annotations

import errno
import os
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class ReadStatus(Enum):
    """Outcome of a read request."""

    SUCCESS = "success"
    NOT_FOUND = "not-found"
    IO_ERROR = "io-error"


@dataclass(frozen=True)
class ReadResult:
    """Content of a file, or the reason it could not be read.

    Attributes:
        status: Outcome of the read
        content: File bytes (empty unless status is SUCCESS)
        error: Human-readable error text (empty on success)
    """

    status: ReadStatus
    content: bytes = b""
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status is ReadStatus.SUCCESS


class Filesystem(Protocol):
    """Anything that can return the bytes stored at a path."""

    def read(self, path: str) -> ReadResult: ...


class HostFilesystem:
    """Reads files from the local disk."""

    def read(self, path: str) -> ReadResult:
        try:
            with open(path, "rb") as f:
                content = f.read()
        except FileNotFoundError as e:
            return ReadResult(ReadStatus.NOT_FOUND, error=e.strerror or os.strerror(errno.ENOENT))
        except OSError as e:
            return ReadResult(ReadStatus.IO_ERROR, error=e.strerror or str(e))
        return ReadResult(ReadStatus.SUCCESS, content=content)
