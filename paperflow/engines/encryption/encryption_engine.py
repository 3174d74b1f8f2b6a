"""
Encryption Engine - authenticated encryption of whole files.

Blob layout produced by encrypt():

    nonce (12 bytes) || ciphertext || GCM tag (16 bytes)

Keys are 256-bit AES keys exported as standard base64 of the raw bytes.
A fresh key is generated for every upload, so a key never sees two nonces
in practice; a fresh random nonce is still drawn on every call.

The engine is synchronous and CPU-bound. Async callers run it through
asyncio.to_thread.
"""

import base64
import binascii
import hashlib
import os
from typing import Optional, Type

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel

from paperflow.kernel.errors import (
    DecryptionError,
    EncryptionError,
    PaperflowError,
    ValidationError,
)
from paperflow.logging_config import get_logger

logger = get_logger(__name__)

KEY_SIZE_BYTES = 32
NONCE_SIZE_BYTES = 12
TAG_SIZE_BYTES = 16


class EncryptedPayload(BaseModel):
    """Result of encrypting one file with a freshly generated key."""

    key: str
    nonce: bytes
    ciphertext: bytes  # encrypted bytes with the tag appended

    def to_blob(self) -> bytes:
        return self.nonce + self.ciphertext


class EncryptionEngine:
    """
    AES-256-GCM over the full plaintext, single shot.

    Usage:
        engine = EncryptionEngine()
        key = engine.generate_key()
        blob = engine.encrypt(data, key)
        assert engine.decrypt(blob, key) == data
    """

    def generate_key(self) -> str:
        """New random 256-bit key, base64 encoded."""
        raw = AESGCM.generate_key(bit_length=KEY_SIZE_BYTES * 8)
        return base64.b64encode(raw).decode("ascii")

    def encrypt(self, plaintext: bytes, key: str) -> bytes:
        """
        Encrypt plaintext under key and return nonce || ciphertext+tag.

        Raises:
            ValidationError: plaintext or key is missing
            EncryptionError: key cannot be imported or the cipher call fails
        """
        if plaintext is None:
            raise ValidationError("No file content provided for encryption")
        if key is None:
            raise ValidationError("No encryption key provided")

        cipher = AESGCM(self._import_key(key, EncryptionError))
        nonce = os.urandom(NONCE_SIZE_BYTES)
        try:
            ciphertext = cipher.encrypt(nonce, bytes(plaintext), None)
        except (OverflowError, ValueError, TypeError) as e:
            raise EncryptionError(f"Failed to encrypt file: {e}") from e
        return nonce + ciphertext

    def encrypt_with_new_key(self, plaintext: bytes) -> EncryptedPayload:
        """Generate a key and encrypt with it; the usual upload path."""
        key = self.generate_key()
        blob = self.encrypt(plaintext, key)
        return EncryptedPayload(
            key=key,
            nonce=blob[:NONCE_SIZE_BYTES],
            ciphertext=blob[NONCE_SIZE_BYTES:],
        )

    def decrypt(self, blob: bytes, key: str) -> bytes:
        """
        Split off the nonce and decrypt the remainder.

        Raises:
            DecryptionError: empty or malformed key, truncated blob, wrong key
                or tag mismatch
        """
        if blob is None:
            raise ValidationError("No encrypted content provided for decryption")
        if key is None:
            raise ValidationError("No decryption key provided")

        cipher = AESGCM(self._import_key(key, DecryptionError))
        data = bytes(blob)
        if len(data) < NONCE_SIZE_BYTES + TAG_SIZE_BYTES:
            raise DecryptionError("Encrypted file is truncated or corrupted")

        nonce, ciphertext = data[:NONCE_SIZE_BYTES], data[NONCE_SIZE_BYTES:]
        try:
            return cipher.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise DecryptionError(
                "Failed to decrypt file. The key may be incorrect or the file may be corrupted."
            ) from e

    def is_available(self) -> bool:
        """Round-trip a sample through AES-GCM with a throwaway key."""
        try:
            cipher = AESGCM(bytes(KEY_SIZE_BYTES))
            nonce = bytes(NONCE_SIZE_BYTES)
            return cipher.decrypt(nonce, cipher.encrypt(nonce, b"check", None), None) == b"check"
        except Exception:
            logger.exception("AES-GCM primitive unavailable")
            return False

    def generate_hash(self, data: bytes) -> str:
        """SHA-256 of data, hex encoded. Used for integrity checks in logs."""
        return hashlib.sha256(data).hexdigest()

    def _import_key(self, key: Optional[str], error_cls: Type[PaperflowError]) -> bytes:
        if not key:
            raise error_cls("Encryption key is empty")
        try:
            raw = base64.b64decode(key, validate=True)
        except (binascii.Error, ValueError) as e:
            raise error_cls("Encryption key is not valid base64") from e
        if len(raw) != KEY_SIZE_BYTES:
            raise error_cls(
                f"Encryption key must be {KEY_SIZE_BYTES} bytes, got {len(raw)}"
            )
        return raw
