"""
Password hashing - the credential verifier used at sign-in.

bcrypt with a fixed work factor. verify_password never raises on a malformed
hash; it simply does not match.
"""

import bcrypt

from src.utils.logging import get_logger

logger = get_logger(__name__)

BCRYPT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72  # bcrypt ignores anything past 72 bytes


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """
    Hash a password using bcrypt.

    Raises:
        ValueError: If password is empty or longer than bcrypt accepts
    """
    if not password:
        raise ValueError("Password cannot be empty")

    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password exceeds maximum length of {MAX_PASSWORD_BYTES} bytes")

    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False

    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


class BcryptVerifier:
    """Credential verifier collaborator: verify(plain, hash) / hash(plain)."""

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds

    def verify(self, plaintext: str, hashed: str) -> bool:
        return verify_password(plaintext, hashed)

    def hash(self, plaintext: str) -> str:
        return hash_password(plaintext, rounds=self.rounds)
