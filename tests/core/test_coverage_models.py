"""Tests for the coverage data model."""

import io

import pytest

from lcovmerge.trace import (
    BranchExecInfo,
    ConsistencyError,
    LineMapState,
    SourceFileInfo,
    TestRecord,
    TraceIOError,
)
from tests.core.trace_test_helpers import MemoryFilesystem


def _load(lines: list[str], path: str = "/test.c") -> SourceFileInfo:
    fs = MemoryFilesystem({path: "".join(lines)})
    sf = SourceFileInfo(path)
    sf.load_line_map(fs)
    return sf


class TestLineMap:
    """Tests for lazy source loading and line lookup."""

    @pytest.mark.parametrize(
        "lines",
        [
            ["\n", "\n", "\r\n", "\n"],
            ["#include abcdefg\n", "\r\v\t\n", "tttuuu sshhd\n", "388477"],
            ["helloworld, helloworld"],
        ],
        ids=["empty-lines", "abnormal-newlines", "single-line"],
    )
    def test_lines_round_trip(self, lines):
        sf = _load(lines)

        assert sf.is_line_data_available
        assert sf.line_count == len(lines)
        assert sf.line_in_range(len(lines))
        assert not sf.line_in_range(len(lines) + 1)
        assert not sf.line_in_range(0)
        for i, expected in enumerate(lines, start=1):
            assert sf.read_line(i) == expected.encode()

    def test_strip_terminator(self):
        sf = _load(["first\r\n", "second\n", "third"])
        assert sf.read_line(1, strip_terminator=True) == b"first"
        assert sf.read_line(2, strip_terminator=True) == b"second"
        assert sf.read_line(3, strip_terminator=True) == b"third"

    def test_read_line_requires_loaded_map(self):
        with pytest.raises(ValueError, match="line map not loaded"):
            SourceFileInfo("/a.c").read_line(1)

    def test_read_line_out_of_range(self):
        sf = _load(["only\n"])
        with pytest.raises(IndexError, match="out of range"):
            sf.read_line(2)

    def test_empty_file_has_no_lines(self):
        sf = _load([])
        assert sf.is_line_data_available
        assert sf.line_count == 0
        assert not sf.line_in_range(1)

    def test_unloaded_range_is_lenient(self):
        sf = SourceFileInfo("/never/read.c")
        assert sf.line_map_state is LineMapState.NOT_LOADED
        assert sf.line_in_range(1)
        assert sf.line_in_range(4_000_000)
        assert not sf.line_in_range(0)

    def test_loaded_only_once(self):
        fs = MemoryFilesystem({"/a.c": "x\n"})
        sf = SourceFileInfo("/a.c")
        sf.load_line_map(fs)
        sf.load_line_map(fs)
        assert fs.reads == ["/a.c"]

    def test_missing_file_failure_is_cached(self):
        fs = MemoryFilesystem()
        sf = SourceFileInfo("/missing.c")

        with pytest.raises(TraceIOError, match="/missing.c"):
            sf.load_line_map(fs)
        assert sf.line_map_state is LineMapState.FAILED

        fs.add("/missing.c", "now present\n")
        with pytest.raises(TraceIOError):
            sf.load_line_map(fs)
        assert fs.reads == ["/missing.c"]

    def test_io_error(self):
        fs = MemoryFilesystem()
        fs.fail("/broken.c")
        with pytest.raises(TraceIOError, match="/broken.c"):
            SourceFileInfo("/broken.c").load_line_map(fs)


class TestSourceFileInfo:
    """Tests for function, line and branch storage."""

    @pytest.mark.parametrize(
        "path, basename",
        [("/src/lib/util.c", "util.c"), ("C:\\proj\\main.c", "main.c"), ("plain.c", "plain.c")],
    )
    def test_basename(self, path, basename):
        assert SourceFileInfo(path).basename == basename

    def test_function_created_once(self):
        sf = SourceFileInfo("/a.c")
        func, created = sf.get_or_create_function("main", 3)
        again, created_again = sf.get_or_create_function("main", 3)

        assert created and not created_again
        assert func is again
        assert sf.lookup_function("main") is func
        assert sf.lookup_function("other") is None

    def test_conflicting_function_line(self):
        sf = SourceFileInfo("/a.c")
        sf.get_or_create_function("main", 3)
        with pytest.raises(ConsistencyError, match="conflicting function definitions"):
            sf.get_or_create_function("main", 4)

    def test_conflicting_function_privacy(self):
        sf = SourceFileInfo("/a.c")
        sf.get_or_create_function("helper", 3, is_private=True)
        with pytest.raises(ConsistencyError, match="conflicting function definitions"):
            sf.get_or_create_function("helper", 3, is_private=False)

    def test_get_line_keeps_existing_entries(self):
        sf = SourceFileInfo("/a.c")
        line5 = sf.get_line(5)
        line5.count = 7
        sf.get_line(100)

        assert sorted(sf.lines) == [5, 100]
        assert sf.get_line(5) is line5
        assert sf.get_line(5).count == 7
        assert not sf.get_line(100).is_defined

    def test_huge_line_numbers_stay_sparse(self):
        sf = SourceFileInfo("/a.c")
        sf.get_line(4294967295).is_defined = True
        sf.get_branch(4294967295, 65534, 65534).merge(1)

        assert len(sf.lines) == 1
        assert len(sf.branches) == 1
        assert len(sf.branches[4294967295].blocks) == 1

        out = io.StringIO()
        sf.export(out)
        assert "DA:4294967295,0\n" in out.getvalue()
        assert "BRDA:4294967295,65534,65534,1\n" in out.getvalue()

    def test_get_branch_marks_defined(self):
        sf = SourceFileInfo("/a.c")
        branch = sf.get_branch(7, 1, 2)

        assert branch.is_defined
        assert branch.never_executed
        assert sf.branches[7].is_defined
        assert list(sf.branches[7].blocks) == [1]
        assert list(sf.branches[7].blocks[1]) == [2]

    @pytest.mark.parametrize("lineno", [0, -1])
    def test_get_line_rejects_invalid_number(self, lineno):
        with pytest.raises(ValueError, match="invalid line number"):
            SourceFileInfo("/a.c").get_line(lineno)

    @pytest.mark.parametrize("args", [(0, 0, 0), (1, 65535, 0), (1, 0, 65535), (1, -1, 0)])
    def test_get_branch_rejects_invalid_ids(self, args):
        with pytest.raises(ValueError):
            SourceFileInfo("/a.c").get_branch(*args)

    def test_version_set_then_checked(self):
        sf = SourceFileInfo("/a.c")
        sf.set_version(2)
        sf.set_version(2)
        with pytest.raises(ConsistencyError, match="version"):
            sf.set_version(3)
        assert sf.version == 2


class TestLineChecksum:
    def test_attach_is_immutable(self):
        sf = SourceFileInfo("/a.c")
        line = sf.get_line(1)
        line.attach_checksum(b"\x01" * 16)
        line.attach_checksum(b"\x01" * 16)
        with pytest.raises(ConsistencyError, match="conflicting checksum"):
            line.attach_checksum(b"\x02" * 16)
        assert line.checksum == b"\x01" * 16


class TestBranchExecInfo:
    """Tests for branch count merging."""

    def test_sentinel_replaced_by_count(self):
        branch = BranchExecInfo()
        branch.merge(None)
        branch.merge(3)
        assert branch.count == 3

    def test_counts_summed(self):
        branch = BranchExecInfo()
        branch.merge(3)
        branch.merge(2)
        assert branch.count == 5

    def test_sentinel_does_not_reset_count(self):
        branch = BranchExecInfo()
        branch.merge(4)
        branch.merge(None)
        assert branch.count == 4

    def test_zero_is_not_sentinel(self):
        branch = BranchExecInfo()
        branch.merge(0)
        assert not branch.never_executed


class TestExport:
    """Tests for canonical re-serialization."""

    def test_file_export_order_and_totals(self):
        sf = SourceFileInfo("/src/util.c")
        sf.get_or_create_function("main", 1)[0].count = 2
        sf.get_or_create_function("helper", 5, is_private=True)
        sf.get_line(1).count, sf.get_line(1).is_defined = 2, True
        sf.get_line(2).is_defined = True
        sf.get_line(3).checksum = bytes(16)
        sf.get_line(3).is_defined = True
        sf.get_branch(2, 0, 1).merge(None)
        sf.get_branch(2, 0, 0).merge(4)
        sf.get_branch(2, 1, 0).merge(0)

        out = io.StringIO()
        sf.export(out)

        assert out.getvalue().splitlines() == [
            "FN:1,main",
            "FN:5,util.c:helper",
            "FNDA:2,main",
            "FNDA:0,util.c:helper",
            "FNF:2",
            "FNH:1",
            "DA:1,2",
            "DA:2,0",
            "DA:3,0,AAAAAAAAAAAAAAAAAAAAAA==",
            "BRDA:2,0,0,4",
            "BRDA:2,0,1,-",
            "BRDA:2,1,0,0",
            "BRF:3",
            "BRH:1",
            "LF:3",
            "LH:1",
            "end_of_record",
        ]

    def test_empty_file_export(self):
        out = io.StringIO()
        SourceFileInfo("/a.c").export(out)
        assert out.getvalue() == "FNF:0\nFNH:0\nBRF:0\nBRH:0\nLF:0\nLH:0\nend_of_record\n"

    def test_test_record_export(self):
        test = TestRecord("unit")
        test.open_file("/a.c")
        test.close_file()
        test.open_file("/b.c")

        out = io.StringIO()
        test.export(out)
        lines = out.getvalue().splitlines()

        assert lines[0] == "TN:unit"
        assert [ln for ln in lines if ln.startswith("SF:")] == ["SF:/a.c", "SF:/b.c"]

    def test_anonymous_test_has_no_tn_line(self):
        test = TestRecord()
        test.open_file("/a.c")

        out = io.StringIO()
        test.export(out)
        assert out.getvalue().startswith("SF:/a.c\n")
        assert test.is_anonymous

    def test_close_without_open_file(self):
        with pytest.raises(ConsistencyError, match="no matching SF record"):
            TestRecord("unit").close_file()
