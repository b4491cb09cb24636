"""Tests for domain models."""
import pytest

from quire.domain import (
    MAX_EMAIL_LENGTH,
    AccessLevel,
    Contents,
    Credentials,
    Failure,
    NewPost,
    UnexpectedAccessLevel,
)


class TestAccessLevel:
    """Test the derived access levels."""

    def test_read_and_write_flags(self):
        assert not AccessLevel.NONE.can_read
        assert AccessLevel.READ.can_read and not AccessLevel.READ.can_write
        assert AccessLevel.WRITE.can_read and AccessLevel.WRITE.can_write
        assert AccessLevel.WRITE_PUBLIC.can_write

    def test_verify_accepts_members(self):
        for level in AccessLevel:
            assert AccessLevel.verify(level) is level

    @pytest.mark.parametrize("value", ["write", 3, None])
    def test_verify_rejects_everything_else(self, value):
        with pytest.raises(UnexpectedAccessLevel):
            AccessLevel.verify(value)


class TestContents:
    """Test the Contents value type."""

    def test_slug_comes_from_title(self):
        assert Contents(title="Hello, World!", body="x").slug == "hello-world"

    def test_with_body_keeps_title(self):
        contents = Contents(title="T", body="# T")
        rendered = contents.with_body("<h1>T</h1>")
        assert rendered == Contents(title="T", body="<h1>T</h1>")
        assert contents.body == "# T"

    def test_is_immutable(self):
        contents = Contents(title="T", body="b")
        with pytest.raises(AttributeError):
            contents.title = "other"

    def test_new_post_from_contents(self):
        post = NewPost.from_contents(Contents(title="My Post", body="b"))
        assert post == NewPost(slug="my-post", title="My Post", body="b")
        assert post.check_validity() is None


class TestCredentials:
    """Test credential validation."""

    def test_valid(self):
        assert Credentials("a@example.com", "pw").check_validity() is None

    @pytest.mark.parametrize("email", ["", "a" * (MAX_EMAIL_LENGTH + 1)])
    def test_email_length(self, email):
        assert Credentials(email, "pw").check_validity() is Failure.TOO_LONG

    def test_failures_are_values(self):
        assert Failure.NOT_FOUND == "not_found"
        assert isinstance(Failure.CONFLICT, str)
