"""Property-based tests for restoring snapshot/diff chains."""

import tempfile
from pathlib import Path

import hypothesis.strategies as st
from hypothesis import given, settings

from jarbackup.restore import restore_backup_to

from jar_helpers import JarBuilder, read_tree


# Small fixed namespace so successive versions overlap in paths and content
file_names = st.sampled_from(["a.txt", "b.bin", "dir/c.txt", "dir/sub/d.txt"])
contents = st.sampled_from([b"", b"alpha", b"beta", b"\x00\xff" * 8, b"gamma\n" * 20])
trees = st.dictionaries(file_names, contents, max_size=4)


def with_directories(files):
    """Add directory entries for every parent of the given files."""
    tree = dict(files)
    for path in files:
        parts = path.split("/")[:-1]
        for i in range(1, len(parts) + 1):
            tree["/".join(parts[:i])] = None
    return tree


class TestChainRestoreProperties:

    @given(base=trees, diffs=st.lists(trees, max_size=4))
    @settings(max_examples=25, deadline=None)
    def test_every_version_restores_its_tree(self, base, diffs):
        """Each version of a chain restores exactly the tree it recorded."""
        with tempfile.TemporaryDirectory() as tmp:
            tmp = Path(tmp)
            jar = JarBuilder(tmp / "jar")
            snapshot_ts = "202401010000"

            versions = [(jar.snapshot(snapshot_ts, with_directories(base)),
                         with_directories(base))]
            for i, files in enumerate(diffs, start=1):
                tree = with_directories(files)
                version = jar.diff(snapshot_ts, f"2024010101{i:02d}", tree)
                versions.append((version, tree))

            for n, (version, tree) in enumerate(versions):
                dest = tmp / f"restore-{n}"
                report = restore_backup_to(dest, version.directory(jar.jar_root))

                assert report.success
                assert read_tree(dest) == tree

    @given(files=trees)
    @settings(max_examples=15, deadline=None)
    def test_restore_is_repeatable(self, files):
        """Restoring twice into the same destination yields the same tree."""
        with tempfile.TemporaryDirectory() as tmp:
            tmp = Path(tmp)
            jar = JarBuilder(tmp / "jar")
            tree = with_directories(files)
            version = jar.snapshot("202401010000", tree)
            dest = tmp / "dest"

            first = restore_backup_to(dest, version.directory(jar.jar_root))
            second = restore_backup_to(dest, version.directory(jar.jar_root))

            assert first.success and second.success
            assert read_tree(dest) == tree
