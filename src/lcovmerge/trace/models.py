"""
lcovmerge.trace.models - In-memory coverage data and its merge rules.

Ownership is strictly top-down: a TestRecord owns its SourceFileInfo
entries, which own their functions, lines and branches. Lines and
branches are keyed by number, so sparse numbering costs nothing, and an
entry once created is never replaced.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, TextIO

from lcovmerge.trace.errors import ConsistencyError, TraceIOError
from lcovmerge.utilities import codec

if TYPE_CHECKING:
    from lcovmerge.utilities.filesystem import Filesystem

log = logging.getLogger(__name__)

# Block and branch ids must stay below this value.
MAX_BRANCH_INDEX = 0xFFFF

_PATH_SEPARATORS = re.compile(r"[/\\]")


class LineMapState(Enum):
    """Load state of a source file's content."""

    NOT_LOADED = "not-loaded"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass
class FunctionCoverageInfo:
    """Coverage of one function.

    Attributes:
        lineno: Line the function is declared on
        count: Cumulative execution count
        is_private: Name was qualified with the file's basename
    """

    lineno: int
    count: int = 0
    is_private: bool = False


@dataclass
class LineCoverageInfo:
    """Coverage of one source line."""

    count: int = 0
    is_defined: bool = False
    checksum: bytes | None = None

    @property
    def has_checksum(self) -> bool:
        return self.checksum is not None

    def attach_checksum(self, checksum: bytes) -> None:
        """Store a digest; a digest already present must be identical."""
        if self.checksum is None:
            self.checksum = checksum
        elif self.checksum != checksum:
            raise ConsistencyError("conflicting checksum")


@dataclass
class BranchExecInfo:
    """One branch; ``count`` is None while the branch was never executed."""

    count: int | None = None
    is_defined: bool = False

    @property
    def never_executed(self) -> bool:
        return self.count is None

    def merge(self, count: int | None) -> None:
        """Merge a count; None is the never-executed sentinel."""
        if count is None:
            return
        if self.count is None:
            self.count = count
        else:
            self.count += count


@dataclass
class LineBranchCoverage:
    """Branch blocks found on one source line, keyed by block then branch id."""

    blocks: dict[int, dict[int, BranchExecInfo]] = field(default_factory=dict)
    is_defined: bool = False


class SourceFileInfo:
    """Coverage of one source file under one test.

    The file's content is only needed for checksums, so it is read lazily
    on the first :meth:`load_line_map` call and the outcome is cached.
    """

    def __init__(self, path: str):
        self.path = path
        self.basename = _PATH_SEPARATORS.split(path)[-1]
        self.functions: dict[str, FunctionCoverageInfo] = {}
        # Keyed by 1-based line number.
        self.lines: dict[int, LineCoverageInfo] = {}
        self.branches: dict[int, LineBranchCoverage] = {}
        self.version: int | None = None

        self._content = b""
        self._offsets: list[int] = []
        self._line_map_state = LineMapState.NOT_LOADED
        self._load_error = ""

    # Line map

    @property
    def line_map_state(self) -> LineMapState:
        return self._line_map_state

    @property
    def is_line_data_available(self) -> bool:
        return self._line_map_state is LineMapState.LOADED

    @property
    def line_count(self) -> int:
        """Number of lines in the loaded content (0 when not loaded)."""
        return max(len(self._offsets) - 1, 0)

    def load_line_map(self, fs: Filesystem) -> None:
        """Read the file once and index where each line starts.

        Raises:
            TraceIOError: If the file cannot be read, now or on an
                earlier attempt
        """
        if self._line_map_state is LineMapState.LOADED:
            return
        if self._line_map_state is LineMapState.FAILED:
            raise TraceIOError(f"{self.path}: {self._load_error}")

        result = fs.read(self.path)
        if not result.ok:
            self._line_map_state = LineMapState.FAILED
            self._load_error = result.error
            raise TraceIOError(f"{self.path}: {result.error}")

        content = result.content
        offsets = [0]
        pos = 0
        while pos < len(content):
            nl = content.find(b"\n", pos)
            pos = len(content) if nl == -1 else nl + 1
            offsets.append(pos)

        self._content = content
        self._offsets = offsets
        self._line_map_state = LineMapState.LOADED
        log.debug("loaded %s (%d lines)", self.path, self.line_count)

    def line_in_range(self, lineno: int) -> bool:
        """Check a line number against the file.

        Without a loaded line map any positive number is accepted; the
        upper bound only applies once the content has been read.
        """
        if self.is_line_data_available:
            return 0 < lineno <= self.line_count
        return lineno > 0

    def read_line(self, lineno: int, strip_terminator: bool = False) -> bytes:
        """Return the raw bytes of a line, terminator included by default.

        Raises:
            ValueError: If the line map is not loaded
            IndexError: If ``lineno`` is outside the file
        """
        if not self.is_line_data_available:
            raise ValueError(f"{self.path}: line map not loaded")
        if not self.line_in_range(lineno):
            raise IndexError(f"{self.path}: line {lineno} out of range")
        data = self._content[self._offsets[lineno - 1] : self._offsets[lineno]]
        if strip_terminator:
            for i, byte in enumerate(data):
                if byte in b"\r\n":
                    return data[:i]
        return data

    # Functions

    def lookup_function(self, name: str) -> FunctionCoverageInfo | None:
        return self.functions.get(name)

    def get_or_create_function(
        self, name: str, lineno: int, is_private: bool = False
    ) -> tuple[FunctionCoverageInfo, bool]:
        """Return the function and whether it was created.

        Raises:
            ConsistencyError: If an existing declaration disagrees on line
                number or privacy
        """
        func = self.functions.get(name)
        if func is None:
            func = FunctionCoverageInfo(lineno=lineno, is_private=is_private)
            self.functions[name] = func
            return func, True
        if func.lineno != lineno or func.is_private != is_private:
            raise ConsistencyError("conflicting function definitions")
        return func, False

    # Lines and branches

    def get_line(self, lineno: int) -> LineCoverageInfo:
        if lineno <= 0:
            raise ValueError(f"invalid line number: {lineno}")
        line = self.lines.get(lineno)
        if line is None:
            line = self.lines[lineno] = LineCoverageInfo()
        return line

    def get_branch(self, lineno: int, block: int, branch: int) -> BranchExecInfo:
        if lineno <= 0:
            raise ValueError(f"invalid line number: {lineno}")
        if not (0 <= block < MAX_BRANCH_INDEX and 0 <= branch < MAX_BRANCH_INDEX):
            raise ValueError(f"invalid block or branch number: {block},{branch}")
        line_branches = self.branches.get(lineno)
        if line_branches is None:
            line_branches = self.branches[lineno] = LineBranchCoverage()
        line_branches.is_defined = True
        branches = line_branches.blocks.setdefault(block, {})
        info = branches.get(branch)
        if info is None:
            info = branches[branch] = BranchExecInfo()
        info.is_defined = True
        return info

    # Version

    def set_version(self, version: int) -> None:
        """Record the format version; a later one must match exactly."""
        if self.version is None:
            self.version = version
        elif self.version != version:
            raise ConsistencyError("the given version ID is conflicting with the existing one")

    # Export

    def _qualified(self, name: str, func: FunctionCoverageInfo) -> str:
        return f"{self.basename}:{name}" if func.is_private else name

    def export(self, sink: TextIO) -> None:
        """Write this file's records, recomputing every total."""
        for name, func in self.functions.items():
            sink.write(f"FN:{func.lineno},{self._qualified(name, func)}\n")

        fnh = 0
        for name, func in self.functions.items():
            if func.count:
                fnh += 1
            sink.write(f"FNDA:{func.count},{self._qualified(name, func)}\n")
        sink.write(f"FNF:{len(self.functions)}\nFNH:{fnh}\n")

        lf = lh = 0
        for lineno in sorted(self.lines):
            line = self.lines[lineno]
            if not line.is_defined:
                continue
            if line.checksum is not None:
                sink.write(f"DA:{lineno},{line.count},{codec.encode(line.checksum)}\n")
            else:
                sink.write(f"DA:{lineno},{line.count}\n")
            lf += 1
            if line.count > 0:
                lh += 1

        brf = brh = 0
        for lineno in sorted(self.branches):
            line_branches = self.branches[lineno]
            if not line_branches.is_defined:
                continue
            for block_id in sorted(line_branches.blocks):
                block = line_branches.blocks[block_id]
                for branch_id in sorted(block):
                    branch = block[branch_id]
                    if not branch.is_defined:
                        continue
                    if branch.never_executed:
                        sink.write(f"BRDA:{lineno},{block_id},{branch_id},-\n")
                    else:
                        sink.write(f"BRDA:{lineno},{block_id},{branch_id},{branch.count}\n")
                        if branch.count:
                            brh += 1
                    brf += 1
        sink.write(f"BRF:{brf}\nBRH:{brh}\n")

        sink.write(f"LF:{lf}\nLH:{lh}\nend_of_record\n")


class TestRecord:
    """Accumulated coverage for one named (or anonymous) test."""

    __test__ = False  # not a pytest test class

    def __init__(self, name: str = ""):
        self.name = name
        self.files: dict[str, SourceFileInfo] = {}
        self.current_file: SourceFileInfo | None = None

    @property
    def is_anonymous(self) -> bool:
        return not self.name

    def open_file(self, path: str) -> SourceFileInfo:
        """Select or create the file entry for ``path`` and make it current."""
        info = self.files.get(path)
        if info is None:
            info = SourceFileInfo(path)
            self.files[path] = info
        self.current_file = info
        return info

    def close_file(self) -> None:
        if self.current_file is None:
            raise ConsistencyError("no matching SF record")
        self.current_file = None

    def export(self, sink: TextIO) -> None:
        if self.name:
            sink.write(f"TN:{self.name}\n")
        for path, info in self.files.items():
            sink.write(f"SF:{path}\n")
            info.export(sink)
        log.debug("exported test %r (%d files)", self.name, len(self.files))
