"""
Password hashing with bcrypt.
"""

import bcrypt

BCRYPT_ROUNDS = 12

# bcrypt ignores everything past 72 bytes
_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Hash and verify account passwords."""

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("utf-8")

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """False for a wrong password or a malformed stored hash."""
        try:
            return bcrypt.checkpw(_encode(plain_password), hashed_password.encode("utf-8"))
        except ValueError:
            return False


_default_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return _default_hasher.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return _default_hasher.verify(plain_password, hashed_password)
