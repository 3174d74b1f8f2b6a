"""
Encryption Engine - AES-256-GCM encrypt-before-upload.
"""

from paperflow.engines.encryption.encryption_engine import (
    EncryptionEngine,
    EncryptedPayload,
    KEY_SIZE_BYTES,
    NONCE_SIZE_BYTES,
)

__all__ = [
    "EncryptionEngine",
    "EncryptedPayload",
    "KEY_SIZE_BYTES",
    "NONCE_SIZE_BYTES",
]
