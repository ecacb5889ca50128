"""Tokenizer - Splits one trace line into a record type and arguments.

Trace lines look like ``TAG:arg1,arg2,...``; the only tag without a colon
is ``end_of_record``. The tokenizer is stateless; it knows nothing about
which records are legal where.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from lcovmerge.trace.errors import FormatError

MAX_ARGUMENTS = 4
END_OF_RECORD = "end_of_record"


class RecordType(Enum):
    """Record tags understood by the merger."""

    UNKNOWN = "<unknown>"
    TN = "TN"
    SF = "SF"
    VER = "VER"
    FN = "FN"
    FNDA = "FNDA"
    FNF = "FNF"
    FNH = "FNH"
    DA = "DA"
    BRDA = "BRDA"
    BRF = "BRF"
    BRH = "BRH"
    LF = "LF"
    LH = "LH"
    END_OF_RECORD = END_OF_RECORD

    @property
    def label(self) -> str:
        """Tag formatted for error messages, e.g. ``<DA>``."""
        if self is RecordType.UNKNOWN:
            return self.value
        return f"<{self.value}>"


# Summary records carry a single count that is recomputed on export.
SUMMARY_TYPES = frozenset(
    {
        RecordType.FNF,
        RecordType.FNH,
        RecordType.BRF,
        RecordType.BRH,
        RecordType.LF,
        RecordType.LH,
    }
)

_TAGS = {
    t.value: t for t in RecordType if t not in (RecordType.UNKNOWN, RecordType.END_OF_RECORD)
}


@dataclass
class Record:
    """A tokenized trace line."""

    type: RecordType
    args: list[str] = field(default_factory=list)


def is_ignored(line: str) -> bool:
    """Blank lines and ``#`` comments carry no record."""
    return not line or line.startswith("#")


def _split_tag(line: str) -> tuple[RecordType, str]:
    sep = line.find(":")
    if sep > 0:
        record_type = _TAGS.get(line[:sep])
        if record_type is not None:
            return record_type, line[sep + 1 :]
    if line.startswith(END_OF_RECORD):
        return RecordType.END_OF_RECORD, line[len(END_OF_RECORD) :]
    return RecordType.UNKNOWN, line


def classify(line: str) -> RecordType:
    """Return the record type of a line, or ``RecordType.UNKNOWN``."""
    return _split_tag(line)[0]


def split_arguments(remainder: str) -> list[str]:
    """Split the text after the tag into comma-separated arguments.

    Args:
        remainder: Everything after ``TAG:``

    Returns:
        Up to four argument strings; an empty remainder gives no arguments

    Raises:
        FormatError: On an empty field ("trailing commas") or more than
            four fields
    """
    if not remainder:
        return []

    args: list[str] = []
    for part in remainder.split(","):
        if not part:
            raise FormatError("trailing commas")
        args.append(part)
        if len(args) > MAX_ARGUMENTS:
            raise FormatError(f"too many arguments (max: {MAX_ARGUMENTS})")
    return args


def tokenize(line: str) -> Record:
    """Tokenize a single non-comment, non-blank trace line.

    Raises:
        FormatError: If the tag is unknown or the arguments are malformed
    """
    record_type, remainder = _split_tag(line)
    if record_type is RecordType.UNKNOWN:
        raise FormatError("unknown record type")
    return Record(record_type, split_arguments(remainder))
