"""
Error taxonomy for the encryption engine, workflow and file services.

Services raise these to their immediate caller; the API layer turns them
into HTTP responses (see paperflow.main). None of them is retried here.
"""

from typing import Optional


class PaperflowError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(PaperflowError):
    """Malformed input; the operation was refused with no mutation."""

    code = "validation_error"


class InvalidTransitionError(ValidationError):
    """Action is not legal from the record's current workflow status."""

    code = "invalid_transition"

    def __init__(self, from_status: str, action: str, role: Optional[str] = None):
        detail = f"Cannot {action} a file in status {from_status}"
        if role:
            detail += f" as {role}"
        super().__init__(detail)
        self.from_status = from_status
        self.action = action
        self.role = role


class EncryptionError(PaperflowError):
    """Key import or cipher call failed while encrypting."""

    code = "encryption_failed"


class DecryptionError(PaperflowError):
    """Wrong key, corrupted ciphertext, tag mismatch or empty result."""

    code = "decryption_failed"


class NotFoundError(PaperflowError):
    """Referenced record does not exist."""

    code = "not_found"


class FileExpiredError(PaperflowError):
    """File passed its expiration timestamp."""

    code = "file_expired"


class StorageError(PaperflowError):
    """Blob or document store call failed (network, permission, quota)."""

    code = "storage_unavailable"


class NotificationDispatchError(PaperflowError):
    """Notification or email could not be emitted. Logged, never propagated."""

    code = "notification_failed"
