"""Version identifiers for jarbackup.

A version is either a snapshot living directly under a jar root, or a diff
living under ``<jar_root>/<snapshot>/diff/<timestamp>``. Both are named by a
fixed-width ``YYYYMMDDHHMM`` timestamp, so lexical order is chronological.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, Union
import re

from jarbackup.errors import InvalidVersionLayout


# Timestamp format for version directories
TIMESTAMP_FORMAT = "%Y%m%d%H%M"

TIMESTAMP_PATTERN = re.compile(r"^[0-9]{12}$")

# Name of the directory holding a snapshot's diffs
DIFF_DIRNAME = "diff"

# Manifest file stored in every version directory
INDEX_FILENAME = "index.json"


def is_timestamp(name: str) -> bool:
    """Return True if name has the fixed-width version timestamp shape."""
    return bool(TIMESTAMP_PATTERN.match(name))


def generate_timestamp(now: Optional[datetime] = None) -> str:
    """Generate a version timestamp for the given (or current) time."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(timestamp: str) -> datetime:
    """
    Parse a version timestamp into a datetime.

    Raises:
        ValueError: If the timestamp does not have the version shape
    """
    if not is_timestamp(timestamp):
        raise ValueError(f"Invalid version timestamp: {timestamp!r}")
    return datetime.strptime(timestamp, TIMESTAMP_FORMAT)


def to_timestamp(value: Union[str, datetime]) -> str:
    """Normalize a datetime or timestamp string to a version timestamp."""
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    if not is_timestamp(value):
        raise ValueError(f"Invalid version timestamp: {value!r}")
    return value


@dataclass(frozen=True)
class Snapshot:
    """A full backup version directly under the jar root."""
    timestamp: str

    @property
    def snapshot_timestamp(self) -> str:
        return self.timestamp

    @property
    def is_diff(self) -> bool:
        return False

    def snapshot_dir(self, jar_root: Path) -> Path:
        return Path(jar_root) / self.timestamp

    def directory(self, jar_root: Path) -> Path:
        return self.snapshot_dir(jar_root)

    def __str__(self) -> str:
        return self.timestamp


@dataclass(frozen=True)
class Diff:
    """An incremental version nested under its base snapshot."""
    snapshot_timestamp: str
    timestamp: str

    @property
    def is_diff(self) -> bool:
        return True

    @property
    def base(self) -> Snapshot:
        return Snapshot(self.snapshot_timestamp)

    def snapshot_dir(self, jar_root: Path) -> Path:
        return Path(jar_root) / self.snapshot_timestamp

    def directory(self, jar_root: Path) -> Path:
        return self.snapshot_dir(jar_root) / DIFF_DIRNAME / self.timestamp

    def __str__(self) -> str:
        return f"{self.snapshot_timestamp}/{DIFF_DIRNAME}/{self.timestamp}"


Version = Union[Snapshot, Diff]


def locate_version(location: Path) -> Tuple[Path, Version]:
    """
    Derive the jar root and tagged version from an index location.

    The location may be a version directory or the index file inside it.
    A diff is recognized by its ``<snapshot>/diff/<timestamp>`` ancestry;
    anything else with a timestamp name is a snapshot.

    Args:
        location: Version directory or path to its index manifest

    Returns:
        Tuple of (jar_root, version)

    Raises:
        InvalidVersionLayout: If the location is not named like a version
    """
    path = Path(location).absolute()
    if path.name == INDEX_FILENAME:
        path = path.parent

    if not is_timestamp(path.name):
        raise InvalidVersionLayout(f"Not a version directory: {location}")

    parent = path.parent
    if parent.name == DIFF_DIRNAME and is_timestamp(parent.parent.name):
        snapshot_dir = parent.parent
        return snapshot_dir.parent, Diff(snapshot_dir.name, path.name)

    return parent, Snapshot(path.name)
