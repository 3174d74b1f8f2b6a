"""Unit tests for password hashing."""

import pytest

from paperflow.kernel.identity.password import (
    PasswordHasher,
    hash_password,
    verify_password,
)


class TestPasswordHasher:
    """Tests for PasswordHasher."""

    @pytest.fixture
    def hasher(self) -> PasswordHasher:
        return PasswordHasher(rounds=4)

    def test_hash_creates_different_hashes(self, hasher):
        """Same password should create different hashes (due to salt)."""
        password = "TestPassword123"
        hash1 = hasher.hash(password)
        hash2 = hasher.hash(password)

        assert hash1 != hash2
        assert hash1.startswith("$2b$")  # bcrypt prefix

    def test_verify_correct_password(self, hasher):
        hashed = hasher.hash("TestPassword123")
        assert hasher.verify("TestPassword123", hashed) is True

    def test_verify_wrong_password(self, hasher):
        hashed = hasher.hash("TestPassword123")
        assert hasher.verify("WrongPassword", hashed) is False

    def test_malformed_hash_does_not_verify(self, hasher):
        assert hasher.verify("TestPassword123", "not-a-bcrypt-hash") is False

    def test_convenience_functions(self):
        """Test hash_password and verify_password functions."""
        password = "TestPassword123"
        hashed = hash_password(password)

        assert verify_password(password, hashed) is True
        assert verify_password("wrong", hashed) is False
