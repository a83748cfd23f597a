"""Content-addressed blob storage for jarbackup.

Every version directory holds its blobs flat, each named by the SHA-256
hex digest of its plaintext. A blob is written once and never modified, so
identical content stored twice in the same version occupies one file.
"""

from pathlib import Path
from typing import Optional
import hashlib
import logging
import os
import tempfile

from jarbackup.encryption import BlobCipher, DecryptionError
from jarbackup.errors import BlobNotFound, StorageIOError


logger = logging.getLogger(__name__)


def compute_checksum(data: bytes) -> str:
    """Return the hex-encoded SHA-256 digest used to name a blob."""
    return hashlib.sha256(data).hexdigest()


def atomic_write(path: Path, data: bytes) -> None:
    """
    Write bytes to path so that readers never observe a partial file.

    The content goes to a temporary file in the same directory, is flushed
    to disk, and is then renamed over the final name.

    Raises:
        OSError: If any step of the write fails
    """
    fd, tmp_name = tempfile.mkstemp(prefix=".tmp_", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class ContentStore:
    """
    Stores and retrieves blobs inside version directories.

    The store keeps no per-version state; every call names the version
    directory it operates on. An optional BlobCipher encrypts blob bytes at
    rest, while checksums are always computed over the plaintext.
    """

    def __init__(self, cipher: Optional[BlobCipher] = None):
        """
        Initialize the content store.

        Args:
            cipher: Optional cipher applied to blob bytes on disk
        """
        self.cipher = cipher

    def blob_path(self, version_dir: Path, checksum: str) -> Path:
        return Path(version_dir) / checksum

    def exists(self, version_dir: Path, checksum: str) -> bool:
        return self.blob_path(version_dir, checksum).is_file()

    def put(self, version_dir: Path, data: bytes) -> str:
        """
        Store data in a version directory.

        Writing is skipped when a blob with the same checksum is already
        present.

        Args:
            version_dir: Snapshot or diff directory
            data: Plaintext content

        Returns:
            Checksum naming the blob

        Raises:
            StorageIOError: If the blob cannot be written
        """
        checksum = compute_checksum(data)
        path = self.blob_path(version_dir, checksum)

        if path.exists():
            logger.debug(f"Blob {checksum} already present in {version_dir}")
            return checksum

        stored = self.cipher.encrypt(data) if self.cipher is not None else data
        try:
            Path(version_dir).mkdir(parents=True, exist_ok=True)
            atomic_write(path, stored)
        except OSError as e:
            raise StorageIOError(f"Failed to write blob {path}: {e}", path) from e

        logger.debug(f"Stored blob {checksum} ({len(data)} bytes) in {version_dir}")
        return checksum

    def get(self, version_dir: Path, checksum: str) -> bytes:
        """
        Read a blob from a version directory.

        Args:
            version_dir: Directory holding the blob
            checksum: Blob checksum

        Returns:
            Plaintext content

        Raises:
            BlobNotFound: If no blob with this checksum exists
            StorageIOError: If the blob cannot be read
        """
        path = self.blob_path(version_dir, checksum)
        try:
            stored = path.read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFound(f"Blob not found: {path}", path) from e
        except OSError as e:
            raise StorageIOError(f"Failed to read blob {path}: {e}", path) from e

        if self.cipher is None or not stored:
            return stored
        try:
            return self.cipher.decrypt(stored)
        except DecryptionError as e:
            raise StorageIOError(f"Failed to decrypt blob {path}: {e}", path) from e
