"""Symmetric encryption of blob bytes at rest.

Blobs are encrypted with AES-256 in CBC mode and PKCS7 padding. A random
IV is generated per call and stored as the first block of the ciphertext.

Empty plaintext is never passed through the cipher: ``encrypt`` returns
None for it. ``decrypt`` has no such shortcut and rejects empty input,
since an empty ciphertext cannot carry an IV or a padded block.
"""

import os
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes


KEY_LENGTH_BYTES = 32  # AES-256
BLOCK_SIZE_BITS = 128
IV_LENGTH_BYTES = 16


class EncryptionError(Exception):
    """Base exception for encryption-related errors."""
    pass


class DecryptionError(EncryptionError):
    """Raised when ciphertext cannot be decrypted."""
    pass


def _check_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_LENGTH_BYTES:
        raise EncryptionError(
            f"Key must be {KEY_LENGTH_BYTES} bytes for AES-256"
        )


def encrypt(key: bytes, data: bytes) -> Optional[bytes]:
    """
    Encrypt data with AES-256-CBC.

    Args:
        key: 32-byte key
        data: Plaintext bytes

    Returns:
        IV followed by ciphertext, or None when data is empty

    Raises:
        EncryptionError: If the key has the wrong length
    """
    _check_key(key)
    if not data:
        return None

    iv = os.urandom(IV_LENGTH_BYTES)
    padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(data) + padder.finalize()

    encryptor = Cipher(algorithms.AES(bytes(key)), modes.CBC(iv)).encryptor()
    return iv + encryptor.update(padded) + encryptor.finalize()


def decrypt(key: bytes, data: bytes) -> bytes:
    """
    Decrypt data produced by ``encrypt``.

    Args:
        key: 32-byte key
        data: IV followed by ciphertext

    Returns:
        Plaintext bytes

    Raises:
        EncryptionError: If the key has the wrong length
        DecryptionError: If the ciphertext is truncated, empty, or was not
            produced with this key
    """
    _check_key(key)
    iv, body = data[:IV_LENGTH_BYTES], data[IV_LENGTH_BYTES:]

    try:
        decryptor = Cipher(algorithms.AES(bytes(key)), modes.CBC(iv)).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptionError(f"Decryption failed: {e}") from e


class BlobCipher:
    """Binds a session key for encrypting blobs in a content store."""

    def __init__(self, key: bytes):
        _check_key(key)
        self._key = bytes(key)

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt blob content; empty content is stored as empty bytes."""
        return encrypt(self._key, data) or b""

    def decrypt(self, data: bytes) -> bytes:
        return decrypt(self._key, data)
