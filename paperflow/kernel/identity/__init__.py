"""
Identity Core - Authentication and user management.
"""

from paperflow.kernel.identity.password import PasswordHasher, verify_password, hash_password
from paperflow.kernel.identity.jwt import JWTManager, AccessTokenPayload
from paperflow.kernel.identity.identity_service import IdentityService

__all__ = [
    "PasswordHasher",
    "verify_password",
    "hash_password",
    "JWTManager",
    "AccessTokenPayload",
    "IdentityService",
]
