import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest

from medchain.config.settings import Settings
from medchain.database.connection import close_pool, get_connection, init_pool

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "medchain" / "database" / "schema.sql"


def _test_settings() -> Settings:
    env = os.environ.get
    return Settings(
        db_database=env("DB_DATABASE", "medchain_test"),
        encryption_secret=env("ENCRYPTION_SECRET", "integration-secret"),
        ipfs_api_url=env("IPFS_API_URL", "http://ipfs.test:5001"),
        ledger_rpc_url=env("LEDGER_RPC_URL", "http://ledger.test:8545"),
        ledger_private_key=env(
            "LEDGER_PRIVATE_KEY",
            "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318",
        ),
        ledger_contract_address=env(
            "LEDGER_CONTRACT_ADDRESS", "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB"
        ),
    )


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        with get_connection() as conn:
            conn.execute(SCHEMA_PATH.read_text(encoding="utf-8"))
            conn.commit()
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a scratch database"
        )
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(integration_pool: None) -> Generator[list[str], None, None]:
    """Collect ingestion ids created by a test and delete them afterwards."""
    cleanup: list[str] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for ingestion_id in cleanup:
                cur.execute("DELETE FROM ingestion_records WHERE id = %s", (ingestion_id,))
        conn.commit()
