"""Tests for settings normalization."""

import pytest

from app.settings import DEFAULT_DATABASE_URL, Settings


class TestDatabaseUrl:
    """Test database URL normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("postgres://u:p@db.example.com/app", "postgresql+asyncpg://u:p@db.example.com/app"),
            ("postgresql://u:p@db.example.com/app", "postgresql+asyncpg://u:p@db.example.com/app"),
            ("postgresql+asyncpg://u:p@localhost/app", "postgresql+asyncpg://u:p@localhost/app"),
            (
                "postgres://u:p@db.example.com/app?sslmode=require&application_name=api",
                "postgresql+asyncpg://u:p@db.example.com/app?application_name=api",
            ),
            ("sqlite+aiosqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
        ],
    )
    def test_normalized(self, raw, expected):
        """Test driver and sslmode rewriting."""
        assert Settings(DATABASE_URL=raw).database_url == expected

    def test_empty_falls_back_to_default(self):
        """Test the fallback for an empty URL."""
        assert Settings(DATABASE_URL="").database_url == DEFAULT_DATABASE_URL

    def test_is_postgres(self):
        """Test backend detection."""
        assert Settings(DATABASE_URL="postgres://u:p@h/app").is_postgres
        assert not Settings(DATABASE_URL="sqlite+aiosqlite:///:memory:").is_postgres
