"""
lcovmerge - Merge LCOV coverage traces

lcovmerge combines trace files produced by parallel test shards or
repeated runs into one trace. Records are deduplicated by test name and
source file, execution counts are summed, line checksums are validated
or generated, and every summary count is recomputed on output.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("lcovmerge")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"  # Not installed
__license__ = "Apache-2.0"

from lcovmerge.merge import MergeSession, merge_traces
from lcovmerge.trace import (
    ConsistencyError,
    FormatError,
    MergeConfig,
    TestRecord,
    TraceError,
    TraceIOError,
    TraceParser,
)

__all__ = [
    "__version__",
    "ConsistencyError",
    "FormatError",
    "MergeConfig",
    "MergeSession",
    "TestRecord",
    "TraceError",
    "TraceIOError",
    "TraceParser",
    "merge_traces",
]
