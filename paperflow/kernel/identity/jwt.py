"""
JWT access tokens for API authentication.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from paperflow.config import get_settings


class AccessTokenPayload(BaseModel):
    """Decoded access token."""

    sub: str  # User ID
    email: str
    role: str
    exp: datetime
    iat: datetime
    jti: str


class JWTManager:
    """
    Issues and verifies HS256 access tokens.

    The role claim is informational only; permission checks always reload
    the user, so a role change takes effect on the next request.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.access_token_expire_minutes = (
            access_token_expire_minutes or settings.access_token_expire_minutes
        )

    def create_access_token(
        self,
        user_id: uuid.UUID,
        email: str,
        role: str,
        expires_delta: Optional[timedelta] = None,
    ) -> tuple[str, datetime]:
        """
        Returns:
            Tuple of (token, expiration_datetime)
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.access_token_expire_minutes))
        payload = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "exp": expire,
            "iat": now,
            "jti": str(uuid.uuid4()),
            "type": "access",
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return token, expire

    def verify_access_token(self, token: str) -> Optional[AccessTokenPayload]:
        """Decode a token; None if it is invalid, expired or not an access token."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

        if payload.get("type") != "access":
            return None

        return AccessTokenPayload(
            sub=payload["sub"],
            email=payload["email"],
            role=payload["role"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            jti=payload["jti"],
        )
