"""Helpers that lay out jars on disk the way a jar writer does."""

import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from jarbackup.cas import ContentStore, compute_checksum
from jarbackup.index import IndexEntry, SnapshotIndex
from jarbackup.version import Diff, Snapshot, Version


# A tree maps relative paths to file content, or None for a directory
Tree = Dict[str, Optional[bytes]]

FILE_MODE = 0o644
DIR_MODE = 0o755


class JarBuilder:
    """
    Writes snapshots and diffs into a jar root.

    A snapshot stores every file's blob itself. A diff stores only content
    that changed since the previous version of its chain and references
    unchanged content by the timestamp of the version that stored it.
    """

    def __init__(self, jar_root: Path, store: Optional[ContentStore] = None):
        self.jar_root = Path(jar_root)
        self.store = store or ContentStore()
        self.uid = os.getuid()
        self.gid = os.getgid()
        # path -> (content, timestamp of the version holding it), per snapshot
        self._chains: Dict[str, Dict[str, Tuple[bytes, str]]] = {}

    def snapshot(self, timestamp: str, tree: Tree) -> Snapshot:
        version = Snapshot(timestamp)
        self._chains[timestamp] = {}
        self._write(version, tree, self._chains[timestamp])
        return version

    def diff(self, snapshot_timestamp: str, timestamp: str, tree: Tree) -> Diff:
        version = Diff(snapshot_timestamp, timestamp)
        self._write(version, tree, self._chains[snapshot_timestamp])
        return version

    def _write(
        self,
        version: Version,
        tree: Tree,
        known: Dict[str, Tuple[bytes, str]],
    ) -> None:
        version_dir = version.directory(self.jar_root)
        version_dir.mkdir(parents=True, exist_ok=True)
        index = SnapshotIndex()

        for path, content in tree.items():
            if content is None:
                index.add(path, IndexEntry(
                    DIR_MODE, self.uid, self.gid, None, version.timestamp
                ))
                continue

            previous = known.get(path)
            if previous is not None and previous[0] == content:
                source_timestamp = previous[1]
                checksum = compute_checksum(content)
            else:
                source_timestamp = version.timestamp
                checksum = self.store.put(version_dir, content)
                known[path] = (content, source_timestamp)

            index.add(path, IndexEntry(
                FILE_MODE, self.uid, self.gid, checksum, source_timestamp
            ))

        index.save(version_dir)


def read_tree(root: Path) -> Tree:
    """Read a restored directory back into a Tree."""
    tree: Tree = {}
    for path in sorted(Path(root).rglob("*")):
        rel = path.relative_to(root).as_posix()
        tree[rel] = None if path.is_dir() else path.read_bytes()
    return tree
