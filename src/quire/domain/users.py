"""Account repository: registration, login and profile changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

import asyncpg

from quire.infrastructure.database import DatabasePool, failure_for
from quire.infrastructure.passwords import PasswordHasher
from quire.metrics import track_operation

from .base import MAX_EMAIL_LENGTH, Failure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Email and plaintext password as submitted by a user."""

    email: str
    password: str

    def check_validity(self) -> Failure | None:
        if not 1 <= len(self.email) <= MAX_EMAIL_LENGTH:
            return Failure.TOO_LONG
        return None


class UserRepository:
    """Manage accounts that own posts."""

    def __init__(self, db_pool: DatabasePool, hasher: PasswordHasher | None = None):
        """Initialize with database pool and password hasher."""
        self.db_pool = db_pool
        self.hasher = hasher or PasswordHasher()

    @track_operation("create_user")
    async def create_user(self, credentials: Credentials) -> UUID | Failure:
        """Create a new account, returning its id."""
        failure = credentials.check_validity()
        if failure is not None:
            return failure
        verifier = await self.hasher.hash_async(credentials.password)

        try:
            async with self.db_pool.acquire() as conn:
                user_id = await conn.fetchval(
                    """
                    INSERT INTO users (email, pass_argon2id)
                    VALUES ($1, $2)
                    RETURNING id
                    """,
                    credentials.email,
                    verifier,
                )
        except asyncpg.PostgresError as e:
            failure = failure_for(e)
            if failure is None:
                raise
            return failure

        logger.info(f"Registered account {user_id}")
        return user_id

    @track_operation("login_user")
    async def login_user(self, credentials: Credentials) -> UUID | Failure:
        """Check credentials and return the account id."""
        return await self._find_user(credentials.email, credentials.password)

    async def find_user_by_email(self, email: str) -> UUID | Failure:
        """Find an account id by email alone.

        This bypasses password checking and must be treated with care.
        """
        return await self._find_user(email, None)

    async def _find_user(self, email: str, password: str | None) -> UUID | Failure:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, pass_argon2id FROM users WHERE email = $1",
                email,
            )
        if row is None:
            return Failure.NOT_FOUND
        if password is not None and not await self.hasher.verify_async(
            password, row["pass_argon2id"]
        ):
            return Failure.NOT_PERMITTED
        return row["id"]

    async def find_email_for_user(self, user_id: UUID) -> str | None:
        """Get the email of an account, if it exists."""
        async with self.db_pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT email FROM users WHERE id = $1", user_id
            )

    async def user_exists(self, user_id: UUID) -> bool:
        """Whether the account exists (and so may create posts)."""
        async with self.db_pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT EXISTS (SELECT 1 FROM users WHERE id = $1)", user_id
            )

    @track_operation("update_user")
    async def update_user(
        self, user_id: UUID, credentials: Credentials
    ) -> Failure | None:
        """Replace an account's email and password. Returns None on success."""
        failure = credentials.check_validity()
        if failure is not None:
            return failure
        verifier = await self.hasher.hash_async(credentials.password)

        try:
            async with self.db_pool.acquire() as conn:
                result = await conn.execute(
                    """
                    UPDATE users
                    SET email = $2, pass_argon2id = $3, updated_at = now()
                    WHERE id = $1
                    """,
                    user_id,
                    credentials.email,
                    verifier,
                )
        except asyncpg.PostgresError as e:
            failure = failure_for(e)
            if failure is None:
                raise
            return failure

        if result == "UPDATE 0":
            return Failure.NOT_FOUND
        return None

    @track_operation("delete_user")
    async def delete_user(self, user_id: UUID) -> Failure | None:
        """Delete an account. Its posts stay behind without an owner."""
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("DELETE FROM users WHERE id = $1", user_id)
        if result == "DELETE 0":
            return Failure.NOT_FOUND
        logger.info(f"Deleted account {user_id}; its posts are now orphaned")
        return None
