import asyncio
import os

import psycopg
import pytest

from inspection_import.config.settings import Settings
from inspection_import.messaging.postgres_bus import build_conninfo


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "inspections_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def postgres_conninfo(test_settings: Settings) -> str:
    conninfo = build_conninfo(test_settings)

    async def check_connection() -> None:
        conn = await psycopg.AsyncConnection.connect(conninfo, connect_timeout=3)
        await conn.close()

    try:
        asyncio.run(check_connection())
    except psycopg.Error as e:
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to run")
    return conninfo
