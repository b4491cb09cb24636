"""Repository tests against a mocked connection - no database required."""
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import asyncpg
import pendulum
import pytest

from quire.domain import AccessLevel, Contents, Failure, InvariantViolation
from quire.domain.repository import ContentRepository
from quire.domain.users import Credentials, UserRepository
from quire.infrastructure.database import failure_for

OWNER = uuid4()
STRANGER = uuid4()
STORED_AT = pendulum.datetime(2024, 3, 1, tz="UTC")


class MockPool:
    """Stands in for DatabasePool, handing out one mocked connection."""

    def __init__(self):
        self.conn = AsyncMock()

        @asynccontextmanager
        async def transaction():
            yield

        self.conn.transaction = MagicMock(side_effect=transaction)

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


def post_row(author=OWNER, public=False, updated_at=STORED_AT):
    return {"id": 7, "author_id": author, "public": public, "updated_at": updated_at}


@pytest.fixture
def pool() -> MockPool:
    return MockPool()


@pytest.fixture
def repository(pool) -> ContentRepository:
    return ContentRepository(pool)


class TestCreateContent:
    """Test inserts and the conflict retry."""

    async def test_insert(self, repository, pool):
        assert await repository.create_content(OWNER, Contents("My Post", "body")) == "my-post"
        args = pool.conn.execute.call_args.args
        assert args[1:] == ("my-post", "My Post", "body", OWNER)

    async def test_slug_conflict_retries_with_suffix(self, repository, pool):
        pool.conn.execute.side_effect = [asyncpg.UniqueViolationError("duplicate"), "INSERT 0 1"]
        pool.conn.fetchval.return_value = False

        slug = await repository.create_content(OWNER, Contents("My Post!", "body"))

        assert slug.startswith("my-post.")
        assert len(slug) == len("my-post.") + 32
        retried = pool.conn.execute.call_args.args
        assert retried[1] == slug
        assert retried[2] == "My Post!"  # the title itself was free

    async def test_title_conflict_suffixes_title(self, repository, pool):
        pool.conn.execute.side_effect = [asyncpg.UniqueViolationError("duplicate"), "INSERT 0 1"]
        pool.conn.fetchval.return_value = True

        slug = await repository.create_content(OWNER, Contents("My Post", "body"))

        retried = pool.conn.execute.call_args.args
        assert retried[2] == f"My Post ({slug.rsplit('.', 1)[1]})"

    async def test_second_conflict_is_fatal(self, repository, pool):
        pool.conn.execute.side_effect = asyncpg.UniqueViolationError("duplicate")
        pool.conn.fetchval.return_value = False

        with pytest.raises(InvariantViolation, match="UNIQUE conflict"):
            await repository.create_content(OWNER, Contents("My Post", "body"))

    async def test_unknown_owner(self, repository, pool):
        pool.conn.execute.side_effect = asyncpg.ForeignKeyViolationError("no such user")
        assert await repository.create_content(OWNER, Contents("T", "")) is Failure.NOT_PERMITTED

    async def test_title_too_long(self, repository, pool):
        assert await repository.create_content(OWNER, Contents("x" * 251, "")) is (
            Failure.TOO_LONG
        )
        pool.conn.execute.assert_not_called()

    async def test_other_database_errors_propagate(self, repository, pool):
        pool.conn.execute.side_effect = asyncpg.PostgresConnectionError("gone")
        with pytest.raises(asyncpg.PostgresConnectionError):
            await repository.create_content(OWNER, Contents("T", ""))


class TestOwnedWrites:
    """Test the lock, ownership check and write of the update family."""

    async def test_update(self, repository, pool):
        pool.conn.fetchrow.return_value = post_row()

        assert await repository.update_content(OWNER, "t", Contents("T", "new")) is None

        assert "FOR UPDATE" in pool.conn.fetchrow.call_args.args[0]
        assert pool.conn.execute.call_args.args[1:] == (7, "T", "new")

    async def test_missing_post(self, repository, pool):
        pool.conn.fetchrow.return_value = None
        assert await repository.delete_content(OWNER, "t") is Failure.NOT_FOUND
        pool.conn.execute.assert_not_called()

    @pytest.mark.parametrize("owner", [STRANGER, None])
    async def test_not_owner(self, repository, pool, owner):
        pool.conn.fetchrow.return_value = post_row()
        assert await repository.update_visibility(owner, "t", True) is Failure.NOT_PERMITTED
        pool.conn.execute.assert_not_called()

    async def test_update_if_newer_skips_older_file(self, repository, pool):
        pool.conn.fetchrow.return_value = post_row()

        result = await repository.update_content_if_newer(
            OWNER, "t", Contents("T", "new"), STORED_AT
        )

        assert result is False
        pool.conn.execute.assert_not_called()

    async def test_update_if_newer_applies_newer_file(self, repository, pool):
        pool.conn.fetchrow.return_value = post_row()
        result = await repository.update_content_if_newer(
            OWNER, "t", Contents("T", "new"), STORED_AT.add(seconds=1)
        )
        assert result is True

    async def test_title_clash_on_update(self, repository, pool):
        pool.conn.fetchrow.return_value = post_row()
        pool.conn.execute.side_effect = asyncpg.UniqueViolationError("title")
        assert await repository.update_content(OWNER, "t", Contents("Taken", "")) is (
            Failure.CONFLICT
        )

    async def test_rename_too_long(self, repository, pool):
        assert await repository.rename_slug(OWNER, "t", "x" * 251) is Failure.TOO_LONG

    async def test_set_owner_to_unknown_email(self, repository, pool):
        pool.conn.fetchrow.return_value = post_row()
        pool.conn.fetchval.return_value = None
        assert await repository.set_owner(OWNER, "t", "nobody@example.com") is (
            Failure.NOT_FOUND
        )
        pool.conn.execute.assert_not_called()

    async def test_set_owner(self, repository, pool):
        new_owner = uuid4()
        pool.conn.fetchrow.return_value = post_row()
        pool.conn.fetchval.return_value = new_owner
        assert await repository.set_owner(OWNER, "t", "bob@example.com") is None
        assert pool.conn.execute.call_args.args[1:] == (7, new_owner)


class TestReads:
    """Test access levels and listing rows."""

    @pytest.mark.parametrize(
        ("viewer", "public", "distinguish", "expected"),
        [
            (OWNER, False, False, AccessLevel.WRITE),
            (OWNER, True, False, AccessLevel.WRITE),
            (OWNER, True, True, AccessLevel.WRITE_PUBLIC),
            (STRANGER, True, False, AccessLevel.READ),
            (None, True, False, AccessLevel.READ),
            (STRANGER, False, False, AccessLevel.NONE),
            (None, False, True, AccessLevel.NONE),
        ],
    )
    async def test_permission(self, repository, pool, viewer, public, distinguish, expected):
        pool.conn.fetchrow.return_value = post_row(public=public)
        level = await repository.get_permission(viewer, "t", distinguish_public=distinguish)
        assert level is expected

    async def test_permission_of_missing_post(self, repository, pool):
        pool.conn.fetchrow.return_value = None
        assert await repository.get_permission(OWNER, "t") is None

    async def test_private_content(self, repository, pool):
        pool.conn.fetchrow.return_value = {
            "display_title": "T",
            "contents": "body",
            "author_id": OWNER,
            "public": False,
        }
        assert await repository.get_content(OWNER, "t") == Contents("T", "body")
        assert await repository.get_content(None, "t") is Failure.NOT_PERMITTED

    async def test_listing(self, repository, pool):
        pool.conn.fetch.return_value = [
            {"slug": "b", "display_title": "B", "updated_at": STORED_AT, "author_id": OWNER},
            {"slug": "a", "display_title": "A", "updated_at": STORED_AT, "author_id": STRANGER},
        ]

        entries = await repository.list_available(OWNER, STORED_AT.add(days=1), 2)

        assert [(e.slug, e.access_level) for e in entries] == [
            ("b", AccessLevel.WRITE),
            ("a", AccessLevel.READ),
        ]
        assert pool.conn.fetch.call_args.args[1:] == (OWNER, STORED_AT.add(days=1), 2)


class TestUserRepository:
    """Test accounts with a stubbed hasher."""

    @pytest.fixture
    def hasher(self):
        hasher = MagicMock()
        hasher.hash_async = AsyncMock(return_value="verifier")
        hasher.verify_async = AsyncMock(return_value=True)
        return hasher

    @pytest.fixture
    def users(self, pool, hasher) -> UserRepository:
        return UserRepository(pool, hasher)

    async def test_create(self, users, pool):
        user_id = uuid4()
        pool.conn.fetchval.return_value = user_id
        assert await users.create_user(Credentials("a@example.com", "pw")) == user_id
        assert pool.conn.fetchval.call_args.args[1:] == ("a@example.com", "verifier")

    async def test_duplicate_email(self, users, pool):
        pool.conn.fetchval.side_effect = asyncpg.UniqueViolationError("email")
        assert await users.create_user(Credentials("a@example.com", "pw")) is Failure.CONFLICT

    async def test_login(self, users, pool, hasher):
        user_id = uuid4()
        pool.conn.fetchrow.return_value = {"id": user_id, "pass_argon2id": "verifier"}
        assert await users.login_user(Credentials("a@example.com", "pw")) == user_id

        hasher.verify_async.return_value = False
        assert await users.login_user(Credentials("a@example.com", "bad")) is (
            Failure.NOT_PERMITTED
        )

    async def test_unknown_email(self, users, pool):
        pool.conn.fetchrow.return_value = None
        assert await users.login_user(Credentials("a@example.com", "pw")) is Failure.NOT_FOUND

    async def test_find_by_email_skips_password(self, users, pool, hasher):
        user_id = uuid4()
        pool.conn.fetchrow.return_value = {"id": user_id, "pass_argon2id": "verifier"}
        assert await users.find_user_by_email("a@example.com") == user_id
        hasher.verify_async.assert_not_called()

    async def test_update_missing_account(self, users, pool):
        pool.conn.execute.return_value = "UPDATE 0"
        assert await users.update_user(uuid4(), Credentials("a@example.com", "pw")) is (
            Failure.NOT_FOUND
        )

    async def test_delete(self, users, pool):
        pool.conn.execute.return_value = "DELETE 1"
        assert await users.delete_user(uuid4()) is None
        pool.conn.execute.return_value = "DELETE 0"
        assert await users.delete_user(uuid4()) is Failure.NOT_FOUND


def test_failure_mapping():
    assert failure_for(asyncpg.UniqueViolationError("x")) is Failure.CONFLICT
    assert failure_for(asyncpg.ForeignKeyViolationError("x")) is Failure.NOT_PERMITTED
    assert failure_for(asyncpg.StringDataRightTruncationError("x")) is Failure.TOO_LONG
    assert failure_for(asyncpg.PostgresSyntaxError("x")) is None
