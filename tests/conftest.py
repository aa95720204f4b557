"""Root conftest — a real SQLite database per test, a gateway over it, and an HTTP client.

Invariants:
    - Every test gets a fresh file database in tmp_path, seeded with the same fixtures
    - The app under test gets the gateway injected; its lifespan never builds a pool
    - The pool is bounded like production (no overflow) so leaks show up as checkouts

Design Decisions:
    - File database over :memory: — every pooled connection sees the same data
    - ASGITransport: no server process, streamed bodies are collected by httpx
"""

import os

# Ensure tests don't pick up a developer's database settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///unused.db")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from sqlrest.infrastructure.table_gateway import TableGateway  # noqa: E402
from sqlrest.main import create_app  # noqa: E402

from tests.helpers import SCHEMA, SEED, make_engine, run_statements  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    engine = make_engine(tmp_path / "test.db")
    await run_statements(engine, SCHEMA + SEED)
    yield engine
    await engine.dispose()


@pytest.fixture
async def gateway(engine):
    return TableGateway(engine, database_name="db")


@pytest.fixture
async def client(gateway):
    """HTTP client against an app wired to the seeded gateway."""
    app = create_app(gateway=gateway)
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c
