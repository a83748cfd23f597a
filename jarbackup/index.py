"""Snapshot index manifests for jarbackup.

Each version directory contains an ``index.json`` manifest mapping every
relative path of the backed-up tree to its metadata:

    {
      "format": 1,
      "files": {
        "src": {"mode": 493, "uid": 501, "gid": 20,
                "checksum": null, "timestamp": "202401010000"},
        "src/main.py": {"mode": 420, "uid": 501, "gid": 20,
                        "checksum": "9f86d0...", "timestamp": "202312310000"}
      }
    }

A null checksum marks a directory. ``timestamp`` names the version whose
directory stores the entry's blob, which may be an earlier version than the
one the manifest belongs to.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple
import json
import logging
import re

from jarbackup.cas import atomic_write
from jarbackup.errors import MalformedIndex, StorageIOError
from jarbackup.version import INDEX_FILENAME, is_timestamp


logger = logging.getLogger(__name__)

INDEX_FORMAT_VERSION = 1

CHECKSUM_PATTERN = re.compile(r"^[0-9a-f]{64}$")



def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    """object_pairs_hook for json.loads that refuses repeated keys."""
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise MalformedIndex(f"Duplicate key in index: {key!r}")
        result[key] = value
    return result

@dataclass(frozen=True)
class IndexEntry:
    """Metadata for a single path in a snapshot index."""
    mode: int
    uid: int
    gid: int
    checksum: Optional[str]
    timestamp: str  # Version whose directory holds the content

    @property
    def is_directory(self) -> bool:
        return self.checksum is None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "mode": self.mode,
            "uid": self.uid,
            "gid": self.gid,
            "checksum": self.checksum,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, path: str, data: Any) -> "IndexEntry":
        """
        Create from dictionary (JSON deserialization).

        Raises:
            MalformedIndex: If a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise MalformedIndex(f"Entry for '{path}' is not an object")

        values = {}
        for key in ("mode", "uid", "gid"):
            if key not in data:
                raise MalformedIndex(f"Entry for '{path}' is missing '{key}'")
            value = data[key]
            # bool is an int subclass but never a valid id or mode
            if not isinstance(value, int) or isinstance(value, bool):
                raise MalformedIndex(
                    f"Entry for '{path}' has invalid '{key}': {value!r}"
                )
            values[key] = value

        checksum = data.get("checksum")
        if checksum is not None and (
            not isinstance(checksum, str) or not CHECKSUM_PATTERN.fullmatch(checksum)
        ):
            raise MalformedIndex(
                f"Entry for '{path}' has invalid checksum: {checksum!r}"
            )

        timestamp = data.get("timestamp")
        if not isinstance(timestamp, str) or not is_timestamp(timestamp):
            raise MalformedIndex(
                f"Entry for '{path}' has invalid timestamp: {timestamp!r}"
            )

        return cls(checksum=checksum, timestamp=timestamp, **values)


def _manifest_path(version_path: Path) -> Path:
    path = Path(version_path)
    if path.name == INDEX_FILENAME:
        return path
    return path / INDEX_FILENAME


class SnapshotIndex:
    """
    The parsed manifest of one version.

    Paths are unique keys. Iteration and ``sorted_paths`` yield paths in
    ascending lexical order, which places every directory before the
    paths nested inside it.
    """

    def __init__(self, entries: Optional[Dict[str, IndexEntry]] = None):
        self.entries: Dict[str, IndexEntry] = dict(entries or {})

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, path: str) -> bool:
        return path in self.entries

    def __getitem__(self, path: str) -> IndexEntry:
        return self.entries[path]

    def __iter__(self) -> Iterator[Tuple[str, IndexEntry]]:
        for path in self.sorted_paths():
            yield path, self.entries[path]

    def add(self, path: str, entry: IndexEntry) -> None:
        self.entries[path] = entry

    def sorted_paths(self) -> List[str]:
        return sorted(self.entries)

    def file_entries(self) -> List[Tuple[str, IndexEntry]]:
        """Return (path, entry) pairs for entries that carry content."""
        return [(path, entry) for path, entry in self if not entry.is_directory]

    def to_dict(self) -> dict:
        return {
            "format": INDEX_FORMAT_VERSION,
            "files": {path: entry.to_dict() for path, entry in self},
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SnapshotIndex":
        """
        Build an index from decoded manifest data.

        Raises:
            MalformedIndex: If the structure does not match the manifest format
        """
        if not isinstance(data, dict) or not isinstance(data.get("files"), dict):
            raise MalformedIndex("Index manifest must contain a 'files' object")

        fmt = data.get("format", INDEX_FORMAT_VERSION)
        if fmt != INDEX_FORMAT_VERSION:
            raise MalformedIndex(f"Unsupported index format: {fmt!r}")

        return cls({
            path: IndexEntry.from_dict(path, entry)
            for path, entry in data["files"].items()
        })

    @classmethod
    def load(cls, version_path: Path) -> "SnapshotIndex":
        """
        Load the index of a version.

        Args:
            version_path: Version directory, or the manifest file itself

        Returns:
            Parsed SnapshotIndex

        Raises:
            StorageIOError: If the manifest cannot be read
            MalformedIndex: If the manifest cannot be parsed
        """
        manifest_path = _manifest_path(version_path)
        try:
            content = manifest_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageIOError(
                f"Failed to read index {manifest_path}: {e}", manifest_path
            ) from e

        try:
            data = json.loads(content, object_pairs_hook=_reject_duplicate_keys)
        except json.JSONDecodeError as e:
            raise MalformedIndex(f"Invalid index {manifest_path}: {e}") from e

        index = cls.from_dict(data)
        logger.debug(f"Loaded index {manifest_path} with {len(index)} entries")
        return index

    def save(self, version_path: Path) -> Path:
        """
        Write the manifest into a version directory.

        Returns:
            Path of the written manifest

        Raises:
            StorageIOError: If the manifest cannot be written
        """
        manifest_path = _manifest_path(version_path)
        data = json.dumps(self.to_dict(), indent=2, sort_keys=True)
        try:
            manifest_path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write(manifest_path, data.encode("utf-8"))
        except OSError as e:
            raise StorageIOError(
                f"Failed to write index {manifest_path}: {e}", manifest_path
            ) from e
        return manifest_path
