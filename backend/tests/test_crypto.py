"""
Music Journal Backend — Crypto Envelope Unit Tests
====================================================

What we test:
    ✅ Round trip, including the empty string and non-ASCII text
    ✅ Fresh IV per call (same plaintext → different blobs)
    ✅ Blob layout: 32 hex chars of IV, ':', whole blocks of ciphertext
    ✅ Malformed blobs and the wrong key raise DecryptionError
    ✅ load_key rejects keys that are not 256-bit hex
"""

import os

import pytest

from musicjournal.crypto import (
    IV_SIZE,
    decrypt,
    decrypt_optional,
    encrypt,
    encrypt_optional,
    load_key,
)
from musicjournal.exceptions import ConfigurationError, DecryptionError


class TestRoundTrip:

    @pytest.mark.parametrize(
        "plaintext",
        ["", "hello", "a" * 16, "Ünïcødé ♫ 音楽", "line one\nline two: with a colon"],
    )
    def test_decrypt_returns_original(self, key, plaintext):
        assert decrypt(encrypt(plaintext, key), key) == plaintext

    def test_same_plaintext_gives_different_blobs(self, key):
        first = encrypt("same words", key)
        second = encrypt("same words", key)
        assert first != second
        assert first.split(":")[0] != second.split(":")[0]

    def test_optional_helpers_pass_none_through(self, key):
        assert encrypt_optional(None, key) is None
        assert decrypt_optional(None, key) is None
        assert decrypt_optional(encrypt_optional("x", key), key) == "x"


class TestBlobFormat:

    def test_iv_and_ciphertext_are_hex(self, key):
        iv_hex, sep, ct_hex = encrypt("sixteen byte msg", key).partition(":")
        assert sep == ":"
        assert len(iv_hex) == IV_SIZE * 2
        bytes.fromhex(iv_hex)
        # 16 bytes of text plus a full PKCS7 padding block
        assert len(bytes.fromhex(ct_hex)) == 32

    def test_empty_string_still_produces_one_block(self, key):
        _, _, ct_hex = encrypt("", key).partition(":")
        assert len(bytes.fromhex(ct_hex)) == 16


class TestDecryptionFailures:

    @pytest.mark.parametrize(
        "blob",
        [
            "no-separator-here",
            "zz:00",
            "00:" + "00" * 16,  # IV too short
            "00" * 16 + ":",  # no ciphertext
            "00" * 16 + ":" + "00" * 5,  # partial block
        ],
    )
    def test_malformed_blob_raises(self, key, blob):
        with pytest.raises(DecryptionError):
            decrypt(blob, key)

    def test_wrong_key_raises(self, key):
        blob = encrypt("A long enough entry that spans several cipher blocks.", key)
        other_key = bytes(reversed(key))
        with pytest.raises(DecryptionError):
            decrypt(blob, other_key)

    def test_tampered_iv_raises(self, key):
        # Flipping IV byte 0 turns 'd' (0x64) into 0x9B, a bare UTF-8
        # continuation byte, so the first plaintext byte is undecodable.
        iv_hex, _, ct_hex = encrypt("do not touch", key).partition(":")
        iv = bytearray(bytes.fromhex(iv_hex))
        iv[0] ^= 0xFF
        with pytest.raises(DecryptionError):
            decrypt(iv.hex() + ":" + ct_hex, key)


class TestLoadKey:

    def test_accepts_64_hex_chars(self):
        raw = os.urandom(32)
        assert load_key(raw.hex()) == raw

    @pytest.mark.parametrize("value", ["", "abcd", "g" * 64, "00" * 31, "00" * 33])
    def test_rejects_bad_keys(self, value):
        with pytest.raises(ConfigurationError):
            load_key(value)
