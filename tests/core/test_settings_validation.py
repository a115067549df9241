"""
Tests para Settings: normalización de DATABASE_URL y valores positivos.
"""

import pytest
from pydantic import ValidationError

from gymcore.core.config import Settings


class TestDatabaseUrl:

    def test_postgres_scheme_uses_asyncpg(self):
        settings = Settings(SECRET_KEY="k", DATABASE_URL="postgres://user:pw@db:5432/gym")
        assert settings.DATABASE_URL == "postgresql+asyncpg://user:pw@db:5432/gym"

    def test_postgresql_scheme_gets_driver(self):
        settings = Settings(SECRET_KEY="k", DATABASE_URL="postgresql://user:pw@db:5432/gym")
        assert settings.DATABASE_URL == "postgresql+asyncpg://user:pw@db:5432/gym"

    def test_async_url_is_kept(self):
        settings = Settings(SECRET_KEY="k", DATABASE_URL="sqlite+aiosqlite:///./x.db")
        assert settings.DATABASE_URL == "sqlite+aiosqlite:///./x.db"


class TestPositiveValues:

    @pytest.mark.parametrize("field", [
        "CHECKIN_TOKEN_TTL_SECONDS",
        "GRACE_PERIOD_DAYS",
        "WAITLIST_SWEEP_BATCH_SIZE",
        "SWEEP_TIMEOUT_SECONDS",
    ])
    def test_rejects_zero(self, field):
        with pytest.raises(ValidationError):
            Settings(SECRET_KEY="k", **{field: 0})

    def test_defaults(self):
        settings = Settings(SECRET_KEY="k")
        assert settings.CHECKIN_TOKEN_TTL_SECONDS == 120
        assert settings.GRACE_PERIOD_DAYS == 7
        assert settings.GRACE_EXPIRY_NOTICE_HOURS == 24
