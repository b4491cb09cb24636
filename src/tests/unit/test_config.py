"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from quire.config import Settings


class TestSettings:
    """Test our custom Settings validation logic."""

    def test_defaults(self, monkeypatch):
        """The cache TTL bounds listing staleness at one minute by default."""
        monkeypatch.delenv("CACHE_TTL_SECONDS", raising=False)
        monkeypatch.delenv("DB_SCHEMA", raising=False)
        settings = Settings(_env_file=None)
        assert settings.cache_ttl_seconds == 60.0
        assert settings.db_schema == "public"
        assert settings.listing_page_size <= settings.listing_max_page_size

    def test_ttl_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("CACHE_TTL_SECONDS", "0")

        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None)

        assert "Invalid CACHE_TTL_SECONDS" in str(exc_info.value)

    def test_max_entries_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("CACHE_MAX_ENTRIES", "0")

        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None)

        assert "Invalid CACHE_MAX_ENTRIES" in str(exc_info.value)

    @pytest.mark.parametrize("schema", ["blog; DROP TABLE posts", "with-dash", ""])
    def test_schema_name_must_be_plain(self, monkeypatch, schema):
        monkeypatch.setenv("DB_SCHEMA", schema)

        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None)

        assert "Invalid DB_SCHEMA" in str(exc_info.value)

    def test_database_url_is_split(self, monkeypatch):
        for var in ("DB_HOST", "DB_PORT", "DB_USER", "DB_PASSWORD", "DB_NAME"):
            monkeypatch.delenv(var, raising=False)
        monkeypatch.setenv("DATABASE_URL", "postgresql://writer:pw@db.internal:6543/blog")

        settings = Settings(_env_file=None)

        assert settings.db_host == "db.internal"
        assert settings.db_port == 6543
        assert settings.db_user == "writer"
        assert settings.db_password == "pw"
        assert settings.db_name == "blog"

    def test_port_alias(self, monkeypatch):
        monkeypatch.delenv("PORT", raising=False)
        monkeypatch.setenv("QUIRE_PORT", "8123")
        assert Settings(_env_file=None).port == 8123
