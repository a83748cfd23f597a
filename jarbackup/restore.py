"""Restore engine for jarbackup.

Rebuilds a directory tree from one version's index. Content is located
through the version chain resolver and read from the content store.

Failures are split in two classes:
- Storage failures (index or blob unreadable, destination not writable)
  raise and abort the restore.
- Per-entry failures (permissions not applicable, unresolvable timestamp,
  unsafe path, existing file when overwriting is disabled) are recorded in
  the RestoreReport and the restore continues with the next entry.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple
import logging
import os
import stat
import tempfile
import time

from jarbackup.cas import ContentStore
from jarbackup.errors import (
    InvalidTimestampReference,
    PermissionApplyError,
    StorageIOError,
)
from jarbackup.index import IndexEntry, SnapshotIndex
from jarbackup.logger import (
    log_entry_failure,
    log_restore_completion,
    log_restore_start,
)
from jarbackup.resolver import VersionChainResolver
from jarbackup.selector import diff_versions
from jarbackup.version import Version, locate_version


logger = logging.getLogger(__name__)


class FailureKind(Enum):
    """Kinds of per-entry restore failures."""
    PERMISSION_APPLY = "permission_apply"
    INVALID_TIMESTAMP_REFERENCE = "invalid_timestamp_reference"
    INVALID_PATH = "invalid_path"
    FILE_EXISTS = "file_exists"


@dataclass
class EntryFailure:
    """A non-fatal failure on a single index entry."""
    path: str
    kind: FailureKind
    message: str


@dataclass
class RestoreReport:
    """Result of a restore operation."""
    version: Version
    destination: Path
    entries_processed: int = 0
    files_restored: int = 0
    directories_created: int = 0
    bytes_written: int = 0
    duration_seconds: float = 0.0
    failures: List[EntryFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when every entry was restored without failure."""
        return not self.failures

    def failures_of(self, kind: FailureKind) -> List[EntryFailure]:
        return [f for f in self.failures if f.kind == kind]

    def to_dict(self) -> dict:
        return {
            "version": str(self.version),
            "destination": str(self.destination),
            "entries_processed": self.entries_processed,
            "files_restored": self.files_restored,
            "directories_created": self.directories_created,
            "bytes_written": self.bytes_written,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "failures": [
                {"path": f.path, "kind": f.kind.value, "message": f.message}
                for f in self.failures
            ],
        }


def apply_permissions(
    path: Path,
    entry: IndexEntry,
    fd: Optional[int] = None,
    apply_ownership: bool = True,
) -> Optional[PermissionApplyError]:
    """
    Apply an entry's mode and ownership to a restored path.

    When fd is given the change is made through the open descriptor, so a
    read-only mode does not prevent the content from being written after.

    Args:
        path: Restored path (used for path-based calls and messages)
        entry: Index entry carrying mode, uid and gid
        fd: Optional open file descriptor of the path
        apply_ownership: Whether to change owner and group

    Returns:
        None on success, otherwise the error describing what failed
    """
    mode = stat.S_IMODE(entry.mode)
    try:
        if fd is not None:
            os.fchmod(fd, mode)
            if apply_ownership:
                os.fchown(fd, entry.uid, entry.gid)
        else:
            os.chmod(path, mode)
            if apply_ownership:
                os.chown(path, entry.uid, entry.gid)
    except OSError as e:
        return PermissionApplyError(
            f"Failed to apply mode {oct(mode)} owner {entry.uid}:{entry.gid} "
            f"to {path}: {e}"
        )
    return None


def _safe_relative_path(path: str) -> Optional[PurePosixPath]:
    """Return path as a relative path, or None if it could escape the root."""
    relative = PurePosixPath(path)
    if relative.is_absolute() or not relative.parts or ".." in relative.parts:
        return None
    return relative


def _make_writable(path: Path) -> None:
    """Grant the owner write and search access to an existing directory."""
    if os.access(path, os.W_OK | os.X_OK):
        return
    try:
        os.chmod(path, stat.S_IMODE(path.stat().st_mode) | stat.S_IRWXU)
    except OSError as e:
        raise StorageIOError(
            f"Cannot make directory {path} writable: {e}", path
        ) from e


class RestoreEngine:
    """
    Reconstructs a version's tree into a destination directory.

    Entries are processed in ascending lexical order of their paths, so
    a directory is always created before anything inside it. Directory
    modes and owners are applied last, deepest first, so a read-only
    directory does not block restoring its contents.
    """

    def __init__(
        self,
        store: Optional[ContentStore] = None,
        resolver: Optional[VersionChainResolver] = None,
        overwrite: bool = True,
        apply_ownership: bool = True,
    ):
        """
        Initialize the restore engine.

        Args:
            store: Content store to read blobs from
            resolver: Resolver for entry provenance
            overwrite: Replace existing destination files; when False they
                are left untouched and reported
            apply_ownership: Whether to restore owner and group
        """
        self.store = store or ContentStore()
        self.resolver = resolver or VersionChainResolver()
        self.overwrite = overwrite
        self.apply_ownership = apply_ownership

    def restore(
        self,
        index: SnapshotIndex,
        target: Version,
        jar_root: Path,
        destination_root: Path,
    ) -> RestoreReport:
        """
        Restore every entry of an index.

        Args:
            index: Index of the version being restored
            target: The version the index belongs to
            jar_root: Root directory of the jar
            destination_root: Directory to rebuild the tree in

        Returns:
            RestoreReport with counts and per-entry failures

        Raises:
            StorageIOError: If a blob cannot be read or the destination
                cannot be written
        """
        start_time = time.time()
        jar_root = Path(jar_root)
        destination_root = Path(destination_root)
        report = RestoreReport(version=target, destination=destination_root)

        log_restore_start(logger, target, jar_root, destination_root)

        # One scan of the chain serves every entry of this restore
        diffs = diff_versions(target.snapshot_dir(jar_root))

        try:
            destination_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(
                f"Cannot create restore destination {destination_root}: {e}",
                destination_root,
            ) from e

        directories: List[Tuple[str, Path, IndexEntry]] = []

        for path, entry in index:
            report.entries_processed += 1

            relative = _safe_relative_path(path)
            if relative is None:
                self._record(report, path, FailureKind.INVALID_PATH,
                             f"Refusing to restore unsafe path '{path}'")
                continue

            restore_path = destination_root.joinpath(*relative.parts)
            if entry.is_directory:
                self._restore_directory(report, path, restore_path)
                directories.append((path, restore_path, entry))
            else:
                self._restore_file(
                    report, path, restore_path, entry, target, jar_root, diffs
                )

        for path, restore_path, entry in reversed(directories):
            error = apply_permissions(
                restore_path, entry, apply_ownership=self.apply_ownership
            )
            if error is not None:
                self._record(report, path, FailureKind.PERMISSION_APPLY, str(error))

        report.duration_seconds = time.time() - start_time
        log_restore_completion(logger, report)
        return report

    def _record(
        self,
        report: RestoreReport,
        path: str,
        kind: FailureKind,
        message: str,
    ) -> None:
        failure = EntryFailure(path=path, kind=kind, message=message)
        report.failures.append(failure)
        log_entry_failure(logger, failure)

    def _restore_directory(
        self,
        report: RestoreReport,
        path: str,
        restore_path: Path,
    ) -> None:
        # A directory left read-only by an earlier restore must accept new content
        if restore_path.is_dir():
            _make_writable(restore_path)
            return

        try:
            restore_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(
                f"Cannot create directory {restore_path}: {e}", restore_path
            ) from e
        report.directories_created += 1

    def _restore_file(
        self,
        report: RestoreReport,
        path: str,
        restore_path: Path,
        entry: IndexEntry,
        target: Version,
        jar_root: Path,
        diffs: List[str],
    ) -> None:
        try:
            content = self.resolver.resolve(jar_root, target, entry, diffs)
        except InvalidTimestampReference as e:
            self._record(report, path, FailureKind.INVALID_TIMESTAMP_REFERENCE,
                         str(e))
            return

        if not self.overwrite and restore_path.exists():
            self._record(report, path, FailureKind.FILE_EXISTS,
                         f"Not overwriting existing file {restore_path}")
            return

        data = self.store.get(content.source_dir, content.checksum)

        try:
            restore_path.parent.mkdir(parents=True, exist_ok=True)
            error = self._write_file(restore_path, entry, data)
        except OSError as e:
            raise StorageIOError(
                f"Cannot write {restore_path}: {e}", restore_path
            ) from e

        if error is not None:
            self._record(report, path, FailureKind.PERMISSION_APPLY, str(error))

        report.files_restored += 1
        report.bytes_written += len(data)
        logger.debug(f"Restored {path} from {content.source_dir}")

    def _write_file(
        self,
        restore_path: Path,
        entry: IndexEntry,
        data: bytes,
    ) -> Optional[PermissionApplyError]:
        """
        Write data to a temporary file beside restore_path and rename it
        into place, so an existing read-only file is replaced rather than
        truncated.

        Returns:
            The permission error from applying the entry's mode, if any

        Raises:
            OSError: If the file cannot be written or renamed
        """
        fd, tmp_name = tempfile.mkstemp(prefix=".tmp_", dir=str(restore_path.parent))
        try:
            with os.fdopen(fd, "wb") as f:
                error = apply_permissions(
                    restore_path, entry, fd=f.fileno(),
                    apply_ownership=self.apply_ownership,
                )
                f.write(data)
            os.replace(tmp_name, restore_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return error



def restore_backup_to(
    destination_path: Path,
    index_location: Path,
    store: Optional[ContentStore] = None,
    engine: Optional[RestoreEngine] = None,
) -> RestoreReport:
    """
    Restore the version at index_location into destination_path.

    The jar root and whether the version is a snapshot or a diff are
    derived from the location once, then passed explicitly to the engine.

    Args:
        destination_path: Directory to restore into
        index_location: Version directory or its index manifest
        store: Content store to read blobs from (ignored if engine is given)
        engine: Preconfigured restore engine

    Returns:
        RestoreReport for the completed restore

    Raises:
        InvalidVersionLayout: If index_location is not a version directory
        StorageIOError: If the index or a blob cannot be read
        MalformedIndex: If the index cannot be parsed
    """
    jar_root, version = locate_version(Path(index_location))
    index = SnapshotIndex.load(version.directory(jar_root))

    if engine is None:
        engine = RestoreEngine(store=store)
    return engine.restore(index, version, jar_root, Path(destination_path))
