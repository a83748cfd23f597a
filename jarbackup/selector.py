"""Version enumeration and selection for jarbackup.

Versions are discovered by scanning the immediate children of a directory
for names with the fixed-width timestamp shape. No other metadata is
consulted, so a listing is always consistent with what is on disk.
"""

from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union
import logging

from jarbackup.version import (
    DIFF_DIRNAME,
    Diff,
    Snapshot,
    Version,
    is_timestamp,
    to_timestamp,
)


logger = logging.getLogger(__name__)


def list_versions(directory: Path) -> List[str]:
    """
    List version timestamps found directly under a directory.

    Only child directories whose names fully match the timestamp shape are
    considered. Hidden entries, files, and in-progress names are ignored.

    Args:
        directory: Jar root (for snapshots) or a snapshot's diff directory

    Returns:
        Timestamps sorted ascending; empty if the directory does not exist
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    versions = [
        entry.name
        for entry in directory.iterdir()
        if entry.is_dir() and is_timestamp(entry.name)
    ]
    return sorted(versions)


def last_version(directory: Path) -> Optional[str]:
    """Return the most recent version under a directory, or None."""
    versions = list_versions(directory)
    return versions[-1] if versions else None


def diff_versions(snapshot_dir: Path) -> List[str]:
    """List the diff timestamps nested under a snapshot directory."""
    return list_versions(Path(snapshot_dir) / DIFF_DIRNAME)


def has_diffs(snapshot_dir: Path) -> bool:
    """Return True if the snapshot has at least one diff."""
    return bool(diff_versions(snapshot_dir))


def last_version_from_list(
    versions: Iterable[str],
    end: Union[str, datetime],
    start: Union[str, datetime],
) -> Optional[str]:
    """
    Pick the latest version whose timestamp lies in [start, end].

    Both bounds are inclusive. Since timestamps are fixed width, the window
    test is a plain string comparison.

    Args:
        versions: Version timestamps in any order
        end: Upper bound (datetime or timestamp string)
        start: Lower bound (datetime or timestamp string)

    Returns:
        The latest qualifying timestamp, or None if none qualifies
    """
    end_ts = to_timestamp(end)
    start_ts = to_timestamp(start)

    candidates = [v for v in versions if start_ts <= v <= end_ts]
    if not candidates:
        return None
    return max(candidates)


def latest_diff_in_window(
    jar_root: Path,
    base_version: str,
    start: Union[str, datetime],
    end: Union[str, datetime],
) -> Optional[str]:
    """
    Find the latest diff of a snapshot taken within a date window.

    Args:
        jar_root: Root directory of the jar
        base_version: Timestamp of the owning snapshot
        start: Start of the window (inclusive)
        end: End of the window (inclusive)

    Returns:
        Diff timestamp, or None if no diff falls in the window
    """
    diffs = diff_versions(Path(jar_root) / base_version)
    return last_version_from_list(diffs, end, start)


def list_jars(root: Path) -> List[Path]:
    """
    List the jars stored under a backup root.

    A jar is an immediate child directory holding at least one snapshot.

    Args:
        root: Backup root directory

    Returns:
        Jar root paths sorted by name
    """
    root = Path(root)
    if not root.is_dir():
        return []

    jars = []
    for entry in sorted(root.iterdir()):
        if not entry.is_dir() or entry.name.startswith("."):
            continue
        if list_versions(entry):
            jars.append(entry)
        else:
            logger.debug(f"Skipping {entry}: no snapshots")
    return jars


def jar_versions(jar_root: Path) -> List[Version]:
    """
    List every version of a jar, snapshots and diffs together.

    Returns:
        Tagged versions in chronological order
    """
    versions: List[Version] = []
    for snapshot_ts in list_versions(jar_root):
        versions.append(Snapshot(snapshot_ts))
        for diff_ts in diff_versions(Path(jar_root) / snapshot_ts):
            versions.append(Diff(snapshot_ts, diff_ts))
    versions.sort(key=lambda v: (v.timestamp, v.is_diff))
    return versions
