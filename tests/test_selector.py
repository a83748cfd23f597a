"""Tests for version enumeration and selection."""

import tempfile
from datetime import datetime
from pathlib import Path

import hypothesis.strategies as st
from hypothesis import given, settings

from jarbackup.selector import (
    diff_versions,
    has_diffs,
    jar_versions,
    last_version,
    last_version_from_list,
    latest_diff_in_window,
    list_jars,
    list_versions,
)
from jarbackup.version import Diff, Snapshot, TIMESTAMP_FORMAT


def make_dirs(base: Path, *names: str) -> None:
    for name in names:
        (base / name).mkdir(parents=True)


timestamps = st.datetimes(
    min_value=datetime(2000, 1, 1),
    max_value=datetime(2099, 12, 31),
).map(lambda d: d.strftime(TIMESTAMP_FORMAT))


class TestListVersions:
    """Tests for list_versions and last_version."""

    def test_sorts_ascending(self, temp_dir):
        make_dirs(temp_dir, "202401020000", "202312310000", "202401010000")
        assert list_versions(temp_dir) == [
            "202312310000",
            "202401010000",
            "202401020000",
        ]

    def test_ignores_non_version_entries(self, temp_dir):
        make_dirs(temp_dir, "202401010000", "diff", ".hidden", "20240101", "in_progress_202401020000")
        (temp_dir / "202401030000").write_text("a file, not a version")
        assert list_versions(temp_dir) == ["202401010000"]

    def test_missing_directory_is_empty(self, temp_dir):
        assert list_versions(temp_dir / "nope") == []
        assert last_version(temp_dir / "nope") is None

    def test_last_version(self, temp_dir):
        make_dirs(temp_dir, "202401010000", "202402010000", "202301010000")
        assert last_version(temp_dir) == "202402010000"

    @given(names=st.sets(timestamps, min_size=1, max_size=8))
    @settings(max_examples=20, deadline=None)
    def test_listing_matches_chronological_order(self, names):
        """Lexical order of listed versions equals chronological order."""
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            make_dirs(base, *names)
            listed = list_versions(base)
            as_dates = [datetime.strptime(n, TIMESTAMP_FORMAT) for n in listed]
            assert as_dates == sorted(as_dates)
            assert set(listed) == names
            assert last_version(base) == max(names)


class TestDiffs:
    """Tests for diff enumeration."""

    def test_diff_versions(self, temp_dir):
        snapshot = temp_dir / "202401010000"
        make_dirs(snapshot / "diff", "202401030000", "202401020000")
        assert diff_versions(snapshot) == ["202401020000", "202401030000"]
        assert has_diffs(snapshot)

    def test_no_diff_directory(self, temp_dir):
        snapshot = temp_dir / "202401010000"
        snapshot.mkdir()
        assert diff_versions(snapshot) == []
        assert not has_diffs(snapshot)


class TestWindowSelection:
    """Tests for selecting the latest diff within a date window."""

    VERSIONS = ["202401010000", "202401050000", "202401100000", "202401200000"]

    def test_latest_in_window(self):
        assert last_version_from_list(self.VERSIONS, "202401150000", "202401020000") == "202401100000"

    def test_bounds_are_inclusive(self):
        assert last_version_from_list(self.VERSIONS, "202401050000", "202401050000") == "202401050000"

    def test_empty_window(self):
        assert last_version_from_list(self.VERSIONS, "202401040000", "202401020000") is None

    def test_datetime_bounds(self):
        result = last_version_from_list(
            self.VERSIONS, datetime(2024, 1, 31), datetime(2024, 1, 1)
        )
        assert result == "202401200000"

    def test_latest_diff_in_window(self, temp_dir):
        make_dirs(temp_dir / "202401010000" / "diff", *self.VERSIONS[1:])
        assert latest_diff_in_window(
            temp_dir, "202401010000", "202401010000", "202401120000"
        ) == "202401100000"
        assert latest_diff_in_window(
            temp_dir, "202401010000", "202402010000", "202403010000"
        ) is None

    @given(
        names=st.lists(timestamps, min_size=0, max_size=10),
        bounds=st.tuples(timestamps, timestamps),
    )
    def test_window_result_is_latest_qualifying(self, names, bounds):
        start, end = min(bounds), max(bounds)
        result = last_version_from_list(names, end, start)
        qualifying = [n for n in names if start <= n <= end]
        if qualifying:
            assert result == max(qualifying)
        else:
            assert result is None


class TestJars:
    """Tests for jar discovery."""

    def test_list_jars(self, temp_dir):
        make_dirs(temp_dir, "b_jar/202401010000", "a_jar/202401010000", "empty_jar", ".cache/202401010000")
        assert [j.name for j in list_jars(temp_dir)] == ["a_jar", "b_jar"]

    def test_list_jars_missing_root(self, temp_dir):
        assert list_jars(temp_dir / "missing") == []

    def test_jar_versions_chronological(self, temp_dir):
        make_dirs(
            temp_dir,
            "202401010000/diff/202401020000",
            "202401010000/diff/202402010000",
            "202401150000",
        )
        assert jar_versions(temp_dir) == [
            Snapshot("202401010000"),
            Diff("202401010000", "202401020000"),
            Snapshot("202401150000"),
            Diff("202401010000", "202402010000"),
        ]
