"""Password hashing for account credentials."""

import asyncio

from argon2 import PasswordHasher as Argon2Hasher
from argon2 import Type
from argon2.exceptions import InvalidHashError, VerificationError

from quire.errors import InvariantViolation

# Encoded Argon2id verifiers are always exactly this long
PASSWORD_HASH_LENGTH = 101


class PasswordHasher:
    """Argon2id password verifiers of a fixed encoded length."""

    # Pinned so that the encoded verifier is always PASSWORD_HASH_LENGTH chars:
    # "$argon2id$v=19$m=65536,t=3,p=4$" + 22 salt chars + "$" + 47 hash chars
    TIME_COST = 3
    MEMORY_COST = 65536
    PARALLELISM = 4
    HASH_LEN = 35
    SALT_LEN = 16

    def __init__(self):
        self._hasher = Argon2Hasher(
            time_cost=self.TIME_COST,
            memory_cost=self.MEMORY_COST,
            parallelism=self.PARALLELISM,
            hash_len=self.HASH_LEN,
            salt_len=self.SALT_LEN,
            type=Type.ID,
        )

    @staticmethod
    def check_length(verifier: str) -> str:
        """Fail loudly if a verifier does not have the expected length.

        A different length means the hashing parameters drifted, which would
        break every stored credential.
        """
        if len(verifier) != PASSWORD_HASH_LENGTH:
            raise InvariantViolation(
                f"Unexpected password hash length: {len(verifier)} "
                f"(expected {PASSWORD_HASH_LENGTH})"
            )
        return verifier

    def hash(self, plaintext: str) -> str:
        """Hash a password into a verifier."""
        return self.check_length(self._hasher.hash(plaintext))

    def verify(self, plaintext: str, verifier: str) -> bool:
        """Check a password against a stored verifier."""
        self.check_length(verifier)
        try:
            return self._hasher.verify(verifier, plaintext)
        except (VerificationError, InvalidHashError):
            return False

    async def hash_async(self, plaintext: str) -> str:
        """Hash off the event loop (Argon2 is deliberately slow)."""
        return await asyncio.to_thread(self.hash, plaintext)

    async def verify_async(self, plaintext: str, verifier: str) -> bool:
        """Verify off the event loop."""
        return await asyncio.to_thread(self.verify, plaintext, verifier)
