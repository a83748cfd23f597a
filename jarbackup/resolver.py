"""Version chain resolution for jarbackup.

An index entry does not store its content alongside the manifest when the
content is unchanged since an earlier version. Instead its ``timestamp``
names the version that holds the blob. The resolver maps that provenance to
a physical directory, checking in order:

1. the target version itself,
2. the target's base snapshot (when the target is a diff),
3. any diff of the same snapshot with a matching timestamp.

The first match wins. A timestamp that matches none of them means the index
is inconsistent with the jar.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from jarbackup.errors import InvalidTimestampReference
from jarbackup.index import IndexEntry
from jarbackup.selector import diff_versions
from jarbackup.version import DIFF_DIRNAME, Version


@dataclass(frozen=True)
class ResolvedContent:
    """Location of an entry's blob."""
    source_dir: Path
    checksum: str


class VersionChainResolver:
    """
    Resolves entry provenance to the version directory holding its bytes.

    The resolver is stateless: the same (jar_root, target, timestamp)
    always resolves to the same directory.
    """

    def resolve_source_dir(
        self,
        jar_root: Path,
        target: Version,
        source_timestamp: str,
        diffs: Optional[List[str]] = None,
    ) -> Path:
        """
        Find the directory of the version named by source_timestamp.

        Args:
            jar_root: Root directory of the jar
            target: Version being restored
            source_timestamp: Provenance timestamp of an entry
            diffs: Diff timestamps of the target's snapshot, if already
                listed; scanned from disk otherwise

        Returns:
            Path of the version directory

        Raises:
            InvalidTimestampReference: If no version in the chain matches
        """
        if source_timestamp == target.timestamp:
            return target.directory(jar_root)

        snapshot_dir = target.snapshot_dir(jar_root)
        if target.is_diff and source_timestamp == target.snapshot_timestamp:
            return snapshot_dir

        if diffs is None:
            diffs = diff_versions(snapshot_dir)

        for diff in diffs:
            if diff == source_timestamp:
                return snapshot_dir / DIFF_DIRNAME / diff

        raise InvalidTimestampReference(
            f"Invalid timestamp in backup index: {source_timestamp} is not "
            f"part of the chain of {target}",
            source_timestamp,
        )

    def resolve(
        self,
        jar_root: Path,
        target: Version,
        entry: IndexEntry,
        diffs: Optional[List[str]] = None,
    ) -> ResolvedContent:
        """
        Locate the blob holding an entry's content.

        Raises:
            ValueError: If the entry is a directory and has no content
            InvalidTimestampReference: If the entry's timestamp is unresolvable
        """
        if entry.checksum is None:
            raise ValueError("Directory entries have no content to resolve")

        source_dir = self.resolve_source_dir(
            jar_root, target, entry.timestamp, diffs
        )
        return ResolvedContent(source_dir=source_dir, checksum=entry.checksum)
