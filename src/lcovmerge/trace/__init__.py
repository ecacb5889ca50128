"""Trace - LCOV trace tokenizing, parsing and the coverage data model.

Exports:
- TraceParser, MergeConfig: Parse and merge trace files
- TestRecord, SourceFileInfo: Merged coverage data
- TraceError, FormatError, ConsistencyError, TraceIOError: Failures
- RecordType, tokenize: Line tokenizer
"""

from lcovmerge.trace.errors import ConsistencyError, FormatError, TraceError, TraceIOError
from lcovmerge.trace.models import (
    BranchExecInfo,
    FunctionCoverageInfo,
    LineBranchCoverage,
    LineCoverageInfo,
    LineMapState,
    SourceFileInfo,
    TestRecord,
)
from lcovmerge.trace.parser import MergeConfig, TraceParser
from lcovmerge.trace.tokenizer import Record, RecordType, classify, split_arguments, tokenize

__all__ = [
    "BranchExecInfo",
    "ConsistencyError",
    "FormatError",
    "FunctionCoverageInfo",
    "LineBranchCoverage",
    "LineCoverageInfo",
    "LineMapState",
    "MergeConfig",
    "Record",
    "RecordType",
    "SourceFileInfo",
    "TestRecord",
    "TraceError",
    "TraceIOError",
    "TraceParser",
    "classify",
    "split_arguments",
    "tokenize",
]
