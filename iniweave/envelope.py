"""
iniweave Envelope - optional compression and encryption around document bytes.

Layers, outermost first:
  - Encryption: header + salt (16) + nonce (12) + ciphertext + tag (16)
    AES-256-GCM keyed with PBKDF2-HMAC-SHA256; the tag authenticates
    everything, so a wrong password and tampering look the same
  - Compression: zlib stream (Adler-32 checked)

save: text bytes -> compress -> encrypt
load: decrypt -> decompress -> text bytes
"""

from __future__ import annotations

import hashlib
import logging
import os
import zlib
from typing import TYPE_CHECKING

from iniweave.dialect import ENCRYPTED_HEADER, PBKDF2_ITERATIONS
from iniweave.errors import DecompressionError, DecryptionError

if TYPE_CHECKING:
    from iniweave.dialect import Dialect

logger = logging.getLogger(__name__)

# AAD (Additional Authenticated Data) for AES-GCM binding
_AES_AAD = b"INI-ENC/1.0"

SALT_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16
MIN_PAYLOAD = SALT_SIZE + NONCE_SIZE + TAG_SIZE


# =============================================================================
# Compression
# =============================================================================

def compress(data: bytes) -> bytes:
    return zlib.compress(data, 9)


def decompress(data: bytes) -> bytes:
    """Inverse of compress(). Raises DecompressionError for anything else."""
    decompressor = zlib.decompressobj()
    try:
        result = decompressor.decompress(data)
        result += decompressor.flush()
    except zlib.error as exc:
        raise DecompressionError(f"Corrupt compressed data: {exc}") from exc
    if not decompressor.eof:
        raise DecompressionError("Truncated compressed data")
    if decompressor.unused_data:
        raise DecompressionError("Trailing bytes after compressed data")
    return result


# =============================================================================
# AES-256-GCM Encryption
# =============================================================================

def _derive_key(password: str, salt: bytes) -> bytes:
    """Derive a 256-bit key from a password using PBKDF2."""
    return hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        iterations=PBKDF2_ITERATIONS,
        dklen=32,
    )


def encrypt_bytes(data: bytes, password: str) -> bytes:
    """
    Encrypt raw bytes with AES-256-GCM using a password.
    Returns: header + salt (16) + nonce (12) + ciphertext + tag (16)

    A fresh salt and nonce are drawn on every call.
    """
    try:
        from cryptography.hazmat.primitives.ciphers.aead import AESGCM
    except ImportError:
        raise ImportError(
            "The 'cryptography' package is required for encryption. "
            "Install it with: pip install cryptography"
        )

    if not password:
        raise ValueError("Encryption password cannot be empty")

    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    key = _derive_key(password, salt)

    ciphertext = AESGCM(key).encrypt(nonce, data, _AES_AAD)
    return ENCRYPTED_HEADER + salt + nonce + ciphertext


def decrypt_bytes(data: bytes, password: str) -> bytes:
    """
    Decrypt bytes produced by encrypt_bytes().

    Raises DecryptionError for a missing header, a short payload, a wrong
    password or modified bytes.
    """
    try:
        from cryptography.exceptions import InvalidTag
        from cryptography.hazmat.primitives.ciphers.aead import AESGCM
    except ImportError:
        raise ImportError(
            "The 'cryptography' package is required for decryption. "
            "Install it with: pip install cryptography"
        )

    if not is_encrypted(data):
        raise DecryptionError("Data is not encrypted (missing header)")

    payload = data[len(ENCRYPTED_HEADER):]
    if len(payload) < MIN_PAYLOAD:
        raise DecryptionError(
            f"Encrypted payload too short: {len(payload)} bytes "
            f"(minimum {MIN_PAYLOAD} bytes: 16 salt + 12 nonce + 16 tag)"
        )

    salt = payload[:SALT_SIZE]
    nonce = payload[SALT_SIZE:SALT_SIZE + NONCE_SIZE]
    ciphertext = payload[SALT_SIZE + NONCE_SIZE:]

    key = _derive_key(password or "", salt)
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, _AES_AAD)
    except InvalidTag:
        raise DecryptionError("Wrong password or tampered data") from None


def is_encrypted(data: bytes) -> bool:
    """Check if data carries the encrypted envelope header."""
    return data.startswith(ENCRYPTED_HEADER)


# =============================================================================
# Dialect-driven pipeline
# =============================================================================

def seal(data: bytes, dialect: Dialect) -> bytes:
    """Apply the dialect's envelope to serialized text bytes."""
    if dialect.compression:
        data = compress(data)
    if dialect.is_encrypted:
        data = encrypt_bytes(data, dialect.encryption_password)
    return data


def unseal(data: bytes, dialect: Dialect) -> bytes:
    """Remove the dialect's envelope, innermost layer last."""
    if dialect.is_encrypted:
        data = decrypt_bytes(data, dialect.encryption_password)
    if dialect.compression:
        data = decompress(data)
    if dialect.compression or dialect.is_encrypted:
        logger.debug("Unsealed %d bytes of document text", len(data))
    return data
