"""
Music Journal Backend — Crypto Envelope
=========================================

What:  Symmetric encryption of individual text fields before they reach the database.
Why:   Journal titles, text, cover and image references are personal. They are
       stored only as ciphertext, so a copied database file reveals nothing.
How:   AES-256-CBC with PKCS7 padding via the `cryptography` package.
       Every call draws a fresh 16-byte IV from the OS CSPRNG.
Who:   Called by JournalStore on the write path (encrypt) and read path (decrypt).

Blob format:
    hex(iv) ":" hex(ciphertext)

    e.g. "9f1c...e2:4b7a...0d"

    The IV travels with the ciphertext, so a blob is self-contained and
    decryptable with the key alone. Decryption splits on the FIRST ':'.

Properties:
    - Pure and stateless; safe under concurrent use.
    - Empty strings round-trip (PKCS7 always emits at least one block).
    - None never reaches encrypt(); use encrypt_optional() for nullable columns.
"""

import os
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from musicjournal.exceptions import ConfigurationError, DecryptionError

#: AES-256 key length in bytes
KEY_SIZE = 32

#: CBC initialization vector length in bytes (128 bits)
IV_SIZE = 16

SEPARATOR = ":"


def load_key(hex_key: str) -> bytes:
    """
    Parse the configured ENCRYPTION_KEY (64 hex chars) into raw key bytes.

    Raises:
        ConfigurationError: key is missing, not hex, or not 256 bits.
    """
    try:
        key = bytes.fromhex(hex_key.strip())
    except (AttributeError, ValueError) as e:
        raise ConfigurationError(
            message="ENCRYPTION_KEY must be a hex string",
            context={"error_type": type(e).__name__},
        ) from e
    if len(key) != KEY_SIZE:
        raise ConfigurationError(
            message=f"ENCRYPTION_KEY must decode to {KEY_SIZE} bytes",
            context={"length": len(key)},
        )
    return key


def encrypt(plaintext: str, key: bytes) -> str:
    """
    Encrypt a string and return a self-describing `iv:ciphertext` hex blob.

    Two calls with the same plaintext and key return different blobs.
    """
    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return iv.hex() + SEPARATOR + ciphertext.hex()


def decrypt(blob: str, key: bytes) -> str:
    """
    Reverse encrypt().

    Raises:
        DecryptionError: the blob is malformed or was not produced with this key.
    """
    iv_hex, sep, ciphertext_hex = blob.partition(SEPARATOR)
    if not sep:
        raise DecryptionError(
            message="Ciphertext blob is missing the IV separator",
        )

    try:
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(ciphertext_hex)
    except ValueError as e:
        raise DecryptionError(message="Ciphertext blob is not valid hex") from e

    if len(iv) != IV_SIZE:
        raise DecryptionError(
            message="Ciphertext blob has an invalid IV",
            context={"iv_length": len(iv)},
        )
    if not ciphertext or len(ciphertext) % IV_SIZE:
        raise DecryptionError(
            message="Ciphertext length is not a whole number of blocks",
            context={"ciphertext_length": len(ciphertext)},
        )

    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        data = unpadder.update(padded) + unpadder.finalize()
        return data.decode("utf-8")
    except ValueError as e:
        # Bad padding and invalid UTF-8 both surface as ValueError;
        # either way the key does not match or the blob is corrupt.
        raise DecryptionError(
            message="Ciphertext could not be decrypted with the configured key",
            context={"error_type": type(e).__name__},
        ) from e


def encrypt_optional(plaintext: Optional[str], key: bytes) -> Optional[str]:
    """Encrypt a nullable field; None stays None."""
    if plaintext is None:
        return None
    return encrypt(plaintext, key)


def decrypt_optional(blob: Optional[str], key: bytes) -> Optional[str]:
    """Decrypt a nullable field; None stays None."""
    if blob is None:
        return None
    return decrypt(blob, key)
