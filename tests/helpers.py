"""Test helpers — throwaway SQLite engines, fixture schema, pool inspection."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool


SCHEMA = [
    """CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT UNIQUE,
        age INTEGER
    )""",
    """CREATE TABLE orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        item TEXT,
        qty INTEGER
    )""",
    "CREATE TABLE tags (label TEXT, note TEXT)",
    "CREATE TABLE codes (code TEXT PRIMARY KEY, label TEXT)",
]

SEED = [
    "INSERT INTO users (name, email, age) VALUES "
    "('ada', 'ada@example.com', 36), "
    "('grace', 'grace@example.com', 45), "
    "('linus', 'linus@example.com', 36)",
    "INSERT INTO orders (user_id, item, qty) VALUES "
    "(1, 'notebook', 2), (1, 'pencil', 10), (2, 'compiler', 1)",
    "INSERT INTO tags (label, note) VALUES ('red', 'warm'), ('blue', 'cold')",
]


def make_engine(path):
    """File-backed SQLite engine with a bounded pool, like production."""
    return create_async_engine(
        f"sqlite+aiosqlite:///{path}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=5,
        max_overflow=0,
    )


async def run_statements(engine, statements):
    async with engine.begin() as conn:
        for statement in statements:
            await conn.execute(text(statement))


def checked_out(engine) -> int:
    """Connections currently held outside the pool."""
    return engine.sync_engine.pool.checkedout()


async def collect(events):
    """Drain a gateway event stream into a list."""
    return [event async for event in events]
