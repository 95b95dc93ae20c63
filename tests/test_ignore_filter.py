"""Tests for ignore filter module."""

import os
import pytest
from pathlib import Path

from wfh.ignore_filter import IgnoreFilter
from wfh.models import SyncUnit


def make_unit(tmp_path: Path, ignore_lines=None) -> SyncUnit:
    root = tmp_path / "root"
    path = root / "unit"
    path.mkdir(parents=True)
    if ignore_lines is not None:
        (path / ".gitignore").write_text("\n".join(ignore_lines) + "\n")
    return SyncUnit(path=path, root=root, remote_path=str(path))


class TestIgnoreFilter:
    """Tests for IgnoreFilter class."""

    def test_no_ignore_file_ignores_nothing(self, tmp_path):
        unit = make_unit(tmp_path)
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, unit.path / "a.log") is False
        assert ignore.is_ignored(unit, unit.path / "build" / "x.o") is False

    def test_matching_file(self, tmp_path):
        unit = make_unit(tmp_path, ["*.log"])
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, unit.path / "debug.log") is True
        assert ignore.is_ignored(unit, unit.path / "sub" / "trace.log") is True

    def test_non_matching_file(self, tmp_path):
        unit = make_unit(tmp_path, ["*.log"])
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, unit.path / "main.py") is False

    def test_ignored_directory_covers_descendants(self, tmp_path):
        unit = make_unit(tmp_path, ["build/"])
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, unit.path / "build" / "out" / "x.o") is True
        assert ignore.is_ignored(unit, unit.path / "build", is_directory=True) is True

    def test_directory_pattern_does_not_match_file(self, tmp_path):
        unit = make_unit(tmp_path, ["build/"])
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, unit.path / "build", is_directory=False) is False

    def test_bare_name_matches_parent_directory(self, tmp_path):
        unit = make_unit(tmp_path, ["node_modules"])
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, unit.path / "web" / "node_modules" / "pkg" / "index.js") is True

    def test_anchored_pattern(self, tmp_path):
        unit = make_unit(tmp_path, ["/dist"])
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, unit.path / "dist" / "app.js") is True
        assert ignore.is_ignored(unit, unit.path / "src" / "dist" / "app.js") is False

    def test_negation(self, tmp_path):
        unit = make_unit(tmp_path, ["*.log", "!keep.log"])
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, unit.path / "drop.log") is True
        assert ignore.is_ignored(unit, unit.path / "keep.log") is False

    def test_comments_and_blank_lines(self, tmp_path):
        unit = make_unit(tmp_path, ["# build output", "", "*.o"])
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, unit.path / "a.o") is True
        assert ignore.is_ignored(unit, unit.path / "# build output") is False

    def test_unit_root_is_never_ignored(self, tmp_path):
        unit = make_unit(tmp_path, ["*"])
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, unit.path) is False

    def test_path_outside_unit(self, tmp_path):
        unit = make_unit(tmp_path, ["*"])
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, tmp_path / "elsewhere.txt") is False

    def test_nested_ignore_files_not_consulted(self, tmp_path):
        unit = make_unit(tmp_path, ["*.log"])
        sub = unit.path / "sub"
        sub.mkdir()
        (sub / ".gitignore").write_text("*.txt\n")
        ignore = IgnoreFilter()

        assert ignore.is_ignored(unit, sub / "notes.txt") is False

    def test_edited_ignore_file_takes_effect(self, tmp_path):
        unit = make_unit(tmp_path, ["*.log"])
        ignore = IgnoreFilter()
        assert ignore.is_ignored(unit, unit.path / "data.csv") is False

        ignore_path = unit.path / ".gitignore"
        ignore_path.write_text("*.log\n*.csv\n")
        st = ignore_path.stat()
        os.utime(ignore_path, ns=(st.st_atime_ns, st.st_mtime_ns + 1_000_000_000))

        assert ignore.is_ignored(unit, unit.path / "data.csv") is True

    def test_removed_ignore_file(self, tmp_path):
        unit = make_unit(tmp_path, ["*.log"])
        ignore = IgnoreFilter()
        assert ignore.is_ignored(unit, unit.path / "a.log") is True

        (unit.path / ".gitignore").unlink()

        assert ignore.is_ignored(unit, unit.path / "a.log") is False

    def test_custom_ignore_file_name(self, tmp_path):
        unit = make_unit(tmp_path)
        (unit.path / ".wfhignore").write_text("*.bin\n")

        assert IgnoreFilter(".wfhignore").is_ignored(unit, unit.path / "x.bin") is True
        assert IgnoreFilter().is_ignored(unit, unit.path / "x.bin") is False

    def test_clear(self, tmp_path):
        unit = make_unit(tmp_path, ["*.log"])
        ignore = IgnoreFilter()
        ignore.is_ignored(unit, unit.path / "a.log")

        ignore.clear()

        assert ignore.is_ignored(unit, unit.path / "a.log") is True
