"""Tests for the content-addressed store."""

import hashlib
import tempfile
from pathlib import Path

import hypothesis.strategies as st
import pytest
from hypothesis import given, settings

from jarbackup.cas import ContentStore, atomic_write, compute_checksum
from jarbackup.encryption import BlobCipher
from jarbackup.errors import BlobNotFound, StorageIOError


def blob_files(version_dir: Path):
    return sorted(p.name for p in version_dir.iterdir() if p.is_file())


class TestContentStore:
    """Tests for put/get on a version directory."""

    def test_put_names_blob_by_sha256(self, temp_dir):
        store = ContentStore()
        checksum = store.put(temp_dir, b"hello")
        assert checksum == hashlib.sha256(b"hello").hexdigest()
        assert (temp_dir / checksum).read_bytes() == b"hello"

    def test_get_returns_stored_bytes(self, temp_dir):
        store = ContentStore()
        checksum = store.put(temp_dir, b"\x00\x01binary\xff")
        assert store.get(temp_dir, checksum) == b"\x00\x01binary\xff"

    def test_get_missing_blob_raises_not_found(self, temp_dir):
        store = ContentStore()
        with pytest.raises(BlobNotFound) as exc_info:
            store.get(temp_dir, compute_checksum(b"never stored"))
        assert isinstance(exc_info.value, StorageIOError)

    def test_get_unreadable_blob_raises_storage_error(self, temp_dir):
        store = ContentStore()
        checksum = compute_checksum(b"dir")
        (temp_dir / checksum).mkdir()
        with pytest.raises(StorageIOError):
            store.get(temp_dir, checksum)

    def test_put_creates_version_directory(self, temp_dir):
        store = ContentStore()
        version_dir = temp_dir / "jar" / "202401010000"
        checksum = store.put(version_dir, b"data")
        assert store.exists(version_dir, checksum)

    def test_put_does_not_rewrite_existing_blob(self, temp_dir):
        store = ContentStore()
        checksum = store.put(temp_dir, b"data")
        blob = temp_dir / checksum
        mtime_before = blob.stat().st_mtime_ns
        inode_before = blob.stat().st_ino
        store.put(temp_dir, b"data")
        assert blob.stat().st_ino == inode_before
        assert blob.stat().st_mtime_ns == mtime_before

    def test_put_leaves_no_temporary_files(self, temp_dir):
        store = ContentStore()
        store.put(temp_dir, b"one")
        store.put(temp_dir, b"two")
        assert all(not name.startswith(".tmp_") for name in blob_files(temp_dir))
        assert len(blob_files(temp_dir)) == 2

    def test_put_unwritable_location_raises(self, temp_dir):
        store = ContentStore()
        blocker = temp_dir / "not_a_dir"
        blocker.write_text("file")
        with pytest.raises(StorageIOError):
            store.put(blocker / "version", b"data")

    def test_empty_content(self, temp_dir):
        store = ContentStore()
        checksum = store.put(temp_dir, b"")
        assert store.get(temp_dir, checksum) == b""

    @given(data=st.binary(max_size=512), copies=st.integers(min_value=2, max_value=5))
    @settings(max_examples=20, deadline=None)
    def test_identical_content_stored_once(self, data, copies):
        """Storing the same bytes repeatedly yields one blob file."""
        with tempfile.TemporaryDirectory() as tmp:
            version_dir = Path(tmp)
            store = ContentStore()
            checksums = {store.put(version_dir, data) for _ in range(copies)}
            assert len(checksums) == 1
            assert blob_files(version_dir) == [checksums.pop()]


class TestEncryptedStore:
    """Tests for a content store with encryption at rest."""

    KEY = b"k" * 32

    def test_blob_on_disk_is_ciphertext(self, temp_dir):
        store = ContentStore(cipher=BlobCipher(self.KEY))
        checksum = store.put(temp_dir, b"secret content")
        assert checksum == compute_checksum(b"secret content")
        assert (temp_dir / checksum).read_bytes() != b"secret content"
        assert store.get(temp_dir, checksum) == b"secret content"

    def test_empty_blob_is_stored_empty(self, temp_dir):
        store = ContentStore(cipher=BlobCipher(self.KEY))
        checksum = store.put(temp_dir, b"")
        assert (temp_dir / checksum).read_bytes() == b""
        assert store.get(temp_dir, checksum) == b""

    def test_wrong_key_cannot_read_plaintext(self, temp_dir):
        ContentStore(cipher=BlobCipher(self.KEY)).put(temp_dir, b"secret content")
        checksum = compute_checksum(b"secret content")
        other = ContentStore(cipher=BlobCipher(b"x" * 32))
        try:
            data = other.get(temp_dir, checksum)
        except StorageIOError:
            return
        assert data != b"secret content"

    def test_corrupted_ciphertext_raises_storage_error(self, temp_dir):
        store = ContentStore(cipher=BlobCipher(self.KEY))
        checksum = store.put(temp_dir, b"secret content")
        (temp_dir / checksum).write_bytes(b"garbage")
        with pytest.raises(StorageIOError):
            store.get(temp_dir, checksum)


class TestAtomicWrite:
    """Tests for the temp-file-and-rename writer."""

    def test_writes_content(self, temp_dir):
        target = temp_dir / "file"
        atomic_write(target, b"content")
        assert target.read_bytes() == b"content"

    def test_replaces_existing(self, temp_dir):
        target = temp_dir / "file"
        target.write_bytes(b"old")
        atomic_write(target, b"new")
        assert target.read_bytes() == b"new"

    def test_cleans_up_on_failure(self, temp_dir):
        target = temp_dir / "dir_target"
        target.mkdir()
        (target / "child").write_text("x")
        with pytest.raises(OSError):
            atomic_write(target, b"content")
        assert [p.name for p in temp_dir.iterdir()] == ["dir_target"]
