"""Integrity verification for jarbackup versions.

Checks that every file entry of a version's index resolves through the
version chain to a blob whose SHA-256 still matches the recorded checksum.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import fnmatch
import logging

from jarbackup.cas import ContentStore, compute_checksum
from jarbackup.errors import BlobNotFound, InvalidTimestampReference
from jarbackup.index import SnapshotIndex
from jarbackup.resolver import VersionChainResolver
from jarbackup.selector import diff_versions
from jarbackup.version import locate_version


logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    """Result of verifying one version."""
    version: str
    entries_checked: int = 0
    unresolved_entries: List[str] = field(default_factory=list)
    missing_blobs: List[str] = field(default_factory=list)
    corrupted_blobs: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not (self.unresolved_entries or self.missing_blobs or self.corrupted_blobs)

    @property
    def files_failed(self) -> int:
        return (
            len(self.unresolved_entries)
            + len(self.missing_blobs)
            + len(self.corrupted_blobs)
        )


class ChainVerifier:
    """Verifies that a version can be fully restored from its jar."""

    def __init__(
        self,
        store: Optional[ContentStore] = None,
        resolver: Optional[VersionChainResolver] = None,
    ):
        self.store = store or ContentStore()
        self.resolver = resolver or VersionChainResolver()

    def verify(
        self,
        index_location: Path,
        pattern: Optional[str] = None,
    ) -> VerificationResult:
        """
        Verify every file entry of the version at index_location.

        Args:
            index_location: Version directory or its index manifest
            pattern: Optional glob pattern to filter entry paths

        Returns:
            VerificationResult listing unresolved, missing and corrupted entries

        Raises:
            InvalidVersionLayout: If index_location is not a version directory
            StorageIOError: If the index or a blob cannot be read
            MalformedIndex: If the index cannot be parsed
        """
        jar_root, version = locate_version(Path(index_location))
        index = SnapshotIndex.load(version.directory(jar_root))
        diffs = diff_versions(version.snapshot_dir(jar_root))
        result = VerificationResult(version=str(version))

        for path, entry in index.file_entries():
            if pattern and not fnmatch.fnmatch(path, pattern):
                continue
            result.entries_checked += 1

            try:
                content = self.resolver.resolve(jar_root, version, entry, diffs)
            except InvalidTimestampReference as e:
                logger.warning(f"{path}: {e}")
                result.unresolved_entries.append(path)
                continue

            try:
                data = self.store.get(content.source_dir, content.checksum)
            except BlobNotFound:
                logger.warning(f"{path}: blob {content.checksum} missing from {content.source_dir}")
                result.missing_blobs.append(path)
                continue

            if compute_checksum(data) != content.checksum:
                logger.warning(f"{path}: blob {content.checksum} is corrupted")
                result.corrupted_blobs.append(path)

        logger.info(
            f"Verified {result.entries_checked} entries of {version}: "
            f"{result.files_failed} failed"
        )
        return result
