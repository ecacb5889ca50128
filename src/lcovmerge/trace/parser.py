"""
lcovmerge.trace.parser - Record dispatcher for LCOV trace files.

Parses traces line by line and merges every record into a shared set of
TestRecords. State carried between records:

- the current test (selected by ``TN``, or the anonymous test when an
  ``SF`` appears first)
- that test's current source file (opened by ``SF``, closed by
  ``end_of_record``)

The first invalid record aborts the parse with a TraceError carrying the
trace path and line number.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from lcovmerge.trace.errors import ConsistencyError, FormatError, TraceError, TraceIOError
from lcovmerge.trace.models import MAX_BRANCH_INDEX, SourceFileInfo, TestRecord
from lcovmerge.trace.tokenizer import SUMMARY_TYPES, Record, RecordType, is_ignored, tokenize
from lcovmerge.utilities import codec
from lcovmerge.utilities.digest import DIGEST_LENGTH, compute_digest
from lcovmerge.utilities.filesystem import Filesystem, HostFilesystem

log = logging.getLogger(__name__)

MAX_DIGITS = 10
MAX_UNSIGNED = 0xFFFFFFFF
CHECKSUM_TEXT_LENGTH = 24


@dataclass
class MergeConfig:
    """Checksum policy for a merge session.

    Attributes:
        discard_checksums: Skip loading source content and ignore
            checksums found in the input
        generate_checksums: Compute a checksum for every line record,
            even when the input has none
    """

    discard_checksums: bool = False
    generate_checksums: bool = False

    @property
    def needs_line_map(self) -> bool:
        """Whether source files must be read when they are opened."""
        return not self.discard_checksums or self.generate_checksums

    @classmethod
    def from_dict(cls, data: dict) -> MergeConfig:
        """Create MergeConfig from the ``[merge]`` configuration section.

        Raises:
            ValueError: If a flag is present but is not a boolean
        """
        values = {}
        for key in ("discard_checksums", "generate_checksums"):
            value = data.get(key, False)
            if not isinstance(value, bool):
                raise ValueError(f"merge.{key} must be true or false, got {value!r}")
            values[key] = value
        return cls(**values)


def parse_unsigned(text: str) -> int | None:
    """Parse a plain decimal field, or return None when it is not one.

    Only ASCII digits are accepted (no sign, no whitespace), at most ten
    of them, and the value must fit in 32 bits.
    """
    if not text or len(text) > MAX_DIGITS or not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    return value if value <= MAX_UNSIGNED else None


def _split_function_name(sf: SourceFileInfo, name: str, error: str) -> tuple[str, bool]:
    """Strip a ``basename:`` qualifier, checking it names the current file."""
    origin, sep, local_name = name.partition(":")
    if not sep:
        return name, False
    if origin != sf.basename:
        raise ConsistencyError(error)
    return local_name, True


class TraceParser:
    """Parses traces and merges them into a shared set of test records.

    Usage:
        parser = TraceParser(MergeConfig(generate_checksums=True))
        parser.parse("shard1.info")
        parser.parse("shard2.info")
        for test in parser.tests.values():
            test.export(sys.stdout)
    """

    def __init__(self, config: MergeConfig | None = None, fs: Filesystem | None = None):
        self.config = config or MergeConfig()
        self.fs = fs if fs is not None else HostFilesystem()
        self.tests: dict[str, TestRecord] = {}
        self.current_test: TestRecord | None = None

    def parse(self, path: str) -> None:
        """Read and merge one trace file.

        Raises:
            TraceError: On the first unreadable file or invalid record
        """
        result = self.fs.read(path)
        if not result.ok:
            raise TraceIOError(result.error, path=path)
        self.parse_bytes(result.content, path)

    def parse_bytes(self, content: bytes, path: str = "<input>") -> None:
        """Merge trace content that has already been read."""
        text = content.decode("utf-8", errors="surrogateescape")
        self.parse_text(text, path)

    def parse_text(self, text: str, path: str = "<input>") -> None:
        """Merge trace text.

        The current test and its open file carry over from the previous
        input, so a trace without ``TN`` continues the last named test and
        a file left open must still be closed before the next ``SF``.
        """
        lines = text.split("\n")
        if lines and not lines[-1]:
            lines.pop()

        records = 0
        for lineno, line in enumerate(lines, start=1):
            if line.endswith("\r"):
                line = line[:-1]
            if is_ignored(line):
                continue
            try:
                self._dispatch(tokenize(line))
            except TraceError as e:
                raise e.at(path, lineno)
            records += 1

        log.debug("%s: merged %d records", path, records)

    # Dispatch

    def _select_test(self, name: str) -> TestRecord:
        test = self.tests.get(name)
        if test is None:
            test = TestRecord(name)
            self.tests[name] = test
        self.current_test = test
        return test

    def _dispatch(self, record: Record) -> None:
        rtype = record.type
        args = record.args

        if rtype is RecordType.TN:
            if len(args) > 1:
                raise FormatError("expected one test name")
            self._select_test(args[0] if args else "")
            return

        if rtype is RecordType.SF:
            # TN is optional; files before any TN belong to the anonymous test.
            test = self.current_test or self._select_test("")
            try:
                self._handle_sf(test, args)
            except TraceError as e:
                raise _prefixed(e, rtype)
            return

        test = self.current_test
        if test is None or test.current_file is None:
            raise ConsistencyError("a test name and/or file record is missing")
        sf = test.current_file

        try:
            if rtype is RecordType.FN:
                self._handle_fn(sf, args)
            elif rtype is RecordType.FNDA:
                self._handle_fnda(sf, args)
            elif rtype is RecordType.DA:
                self._handle_da(sf, args)
            elif rtype is RecordType.BRDA:
                self._handle_brda(sf, args)
            elif rtype is RecordType.VER:
                self._handle_ver(sf, args)
            elif rtype in SUMMARY_TYPES:
                self._handle_summary(args)
            elif rtype is RecordType.END_OF_RECORD:
                if args:
                    raise FormatError("unexpected arguments")
                test.close_file()
            else:
                raise FormatError("unknown record type")
        except TraceError as e:
            raise _prefixed(e, rtype)

    # Handlers

    def _handle_sf(self, test: TestRecord, args: list[str]) -> None:
        if len(args) != 1:
            raise FormatError("expected 1 argument")
        if test.current_file is not None:
            raise ConsistencyError("expected end_of_record")
        sf = test.open_file(args[0])
        if self.config.needs_line_map:
            sf.load_line_map(self.fs)

    def _handle_fn(self, sf: SourceFileInfo, args: list[str]) -> None:
        if len(args) != 2:
            raise FormatError("expected 2 arguments")
        lineno = parse_unsigned(args[0]) or 0
        name, is_private = _split_function_name(
            sf, args[1], "the origin of the function doesn't match with current source file"
        )
        if not sf.line_in_range(lineno):
            raise FormatError("invalid line number")
        sf.get_or_create_function(name, lineno, is_private)

    def _handle_fnda(self, sf: SourceFileInfo, args: list[str]) -> None:
        if len(args) != 2:
            raise FormatError("expected 2 arguments")
        count = parse_unsigned(args[0])
        name, _ = _split_function_name(
            sf, args[1], "origin of the function doesn't match with the current source file"
        )
        func = sf.lookup_function(name)
        if func is None:
            raise ConsistencyError("function coverage info references to an undefined function")
        if count is None:
            raise FormatError("invalid execution count")
        func.count += count

    def _handle_summary(self, args: list[str]) -> None:
        if len(args) != 1:
            raise FormatError("bad argument")
        if parse_unsigned(args[0]) is None:
            raise FormatError("invalid integer")

    def _handle_da(self, sf: SourceFileInfo, args: list[str]) -> None:
        if len(args) not in (2, 3):
            raise FormatError("expected 2 or 3 arguments")
        lineno = parse_unsigned(args[0]) or 0
        count = parse_unsigned(args[1])

        if not sf.line_in_range(lineno):
            raise FormatError("invalid line number")
        if count is None:
            raise FormatError("invalid execution count")

        supplied = None
        if len(args) == 3 and not self.config.discard_checksums:
            supplied = _decode_checksum(args[2])

        line = sf.get_line(lineno)
        if not line.has_checksum:
            if self.config.generate_checksums or supplied is not None:
                computed = compute_digest(sf.read_line(lineno))
                if supplied is not None and supplied != computed:
                    raise ConsistencyError("checksum mismatch")
                line.attach_checksum(computed)
        elif supplied is not None:
            line.attach_checksum(supplied)

        line.count += count
        line.is_defined = True

    def _handle_brda(self, sf: SourceFileInfo, args: list[str]) -> None:
        if len(args) != 4:
            raise FormatError("expected 4 arguments")
        lineno = parse_unsigned(args[0]) or 0
        block = parse_unsigned(args[1])
        branch = parse_unsigned(args[2])

        if args[3] == "-":
            count = None
        else:
            count = parse_unsigned(args[3])
            if count is None:
                raise FormatError("invalid execution count")

        if not sf.line_in_range(lineno):
            raise FormatError("invalid line number")
        if block is None or block >= MAX_BRANCH_INDEX or branch is None or branch >= MAX_BRANCH_INDEX:
            raise FormatError("invalid block or branch number")

        sf.get_branch(lineno, block, branch).merge(count)

    def _handle_ver(self, sf: SourceFileInfo, args: list[str]) -> None:
        if len(args) != 1:
            raise FormatError("bad argument")
        version = parse_unsigned(args[0])
        if version is None:
            raise FormatError("invalid version ID")
        sf.set_version(version)


def _decode_checksum(text: str) -> bytes:
    """Decode a ``DA`` checksum field into a 16-byte digest."""
    if len(text) != CHECKSUM_TEXT_LENGTH:
        raise FormatError("invalid checksum")
    try:
        checksum = codec.decode(text)
    except codec.CodecError as e:
        raise FormatError(f"invalid checksum: {e}") from e
    if len(checksum) != DIGEST_LENGTH:
        raise FormatError("invalid checksum")
    return checksum


def _prefixed(error: TraceError, rtype: RecordType) -> TraceError:
    """Prefix the record tag onto an error message, once."""
    if error.path is None and not error.message.startswith("<"):
        error.message = f"{rtype.label} {error.message}"
        error.args = (error.message,)
    return error
