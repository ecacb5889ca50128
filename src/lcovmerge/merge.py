"""
lcovmerge.merge - Merge sessions over a fixed list of trace files.

A session parses every input in order and only then exports. Any error
aborts the whole session, so no partial output is ever produced.
"""

from __future__ import annotations

import io
import logging
from typing import Iterable, TextIO

from lcovmerge.trace.models import TestRecord
from lcovmerge.trace.parser import MergeConfig, TraceParser
from lcovmerge.utilities.filesystem import Filesystem

log = logging.getLogger(__name__)


class MergeSession:
    """Owns every test record produced while merging a set of traces."""

    def __init__(self, config: MergeConfig | None = None, fs: Filesystem | None = None):
        self.config = config or MergeConfig()
        self._parser = TraceParser(self.config, fs)

    @property
    def tests(self) -> dict[str, TestRecord]:
        return self._parser.tests

    def add(self, path: str) -> None:
        """Parse and merge one trace file."""
        self._parser.parse(path)
        log.debug("merged %s", path)

    def add_all(self, paths: Iterable[str]) -> None:
        for path in paths:
            self.add(path)

    def ordered_tests(self) -> list[TestRecord]:
        """Tests in export order.

        The anonymous test writes no ``TN`` line, so it goes first; written
        after a named test its files would be read back under that name.
        """
        tests = list(self.tests.values())
        return sorted(tests, key=lambda t: not t.is_anonymous)

    def export(self, sink: TextIO) -> None:
        for test in self.ordered_tests():
            test.export(sink)

    def export_text(self) -> str:
        buf = io.StringIO()
        self.export(buf)
        return buf.getvalue()


def merge_traces(
    paths: Iterable[str],
    config: MergeConfig | None = None,
    fs: Filesystem | None = None,
) -> MergeSession:
    """Merge ``paths`` into a new session.

    Raises:
        TraceError: On the first invalid input
    """
    session = MergeSession(config, fs)
    session.add_all(paths)
    return session
