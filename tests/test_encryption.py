"""Tests for blob encryption.

The empty-input behavior is asymmetric on purpose: encrypting nothing
returns None without using the cipher, while decrypting always runs the
cipher and so rejects empty ciphertext.
"""

import os

import hypothesis.strategies as st
import pytest
from hypothesis import given

from jarbackup.encryption import (
    BlobCipher,
    DecryptionError,
    EncryptionError,
    IV_LENGTH_BYTES,
    decrypt,
    encrypt,
)


KEY = bytes(range(32))


class TestEncryptDecrypt:
    """Tests for the encrypt/decrypt pair."""

    def test_round_trip(self):
        ciphertext = encrypt(KEY, b"backup content")
        assert ciphertext != b"backup content"
        assert decrypt(KEY, ciphertext) == b"backup content"

    def test_ciphertext_is_block_aligned_with_iv(self):
        ciphertext = encrypt(KEY, b"x" * 16)
        # IV + one data block + one full padding block
        assert len(ciphertext) == IV_LENGTH_BYTES + 32

    def test_random_iv_per_call(self):
        assert encrypt(KEY, b"same") != encrypt(KEY, b"same")

    @given(data=st.binary(min_size=1, max_size=256))
    def test_decrypt_inverts_encrypt(self, data):
        assert decrypt(KEY, encrypt(KEY, data)) == data

    def test_wrong_key_length_rejected(self):
        with pytest.raises(EncryptionError):
            encrypt(b"short", b"data")
        with pytest.raises(EncryptionError):
            decrypt(b"short", b"data")

    def test_truncated_ciphertext_rejected(self):
        ciphertext = encrypt(KEY, b"some longer backup content")
        with pytest.raises(DecryptionError):
            decrypt(KEY, ciphertext[:-5])


class TestEmptyDataAsymmetry:
    """Regression tests pinning the empty-data behavior."""

    def test_encrypt_empty_returns_none(self):
        assert encrypt(KEY, b"") is None

    def test_decrypt_empty_is_not_special_cased(self):
        """Empty ciphertext goes through the cipher and fails there."""
        with pytest.raises(DecryptionError):
            decrypt(KEY, b"")

    def test_encrypt_empty_still_validates_key(self):
        with pytest.raises(EncryptionError):
            encrypt(b"", b"")


class TestBlobCipher:
    """Tests for the session-bound cipher used by the content store."""

    def test_round_trip(self):
        cipher = BlobCipher(os.urandom(32))
        assert cipher.decrypt(cipher.encrypt(b"blob")) == b"blob"

    def test_empty_blob_encrypts_to_empty_bytes(self):
        assert BlobCipher(KEY).encrypt(b"") == b""

    def test_rejects_bad_key(self):
        with pytest.raises(EncryptionError):
            BlobCipher(b"0" * 31)
