import aiosqlite
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional
import logging

logger = logging.getLogger(__name__)

_DT_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Fixed-width UTC text so that string order matches time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_DT_FORMAT)


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_unique_violation(error: Exception, column: str) -> bool:
    message = str(error)
    return "UNIQUE constraint failed" in message and f".{column}" in message


class Database:
    def __init__(self, path: str):
        self.path = path

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        conn = await aiosqlite.connect(self.path)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL;")
        await conn.execute("PRAGMA foreign_keys=ON;")
        try:
            yield conn
        finally:
            await conn.close()

    async def execute(self, query: str, params: tuple = ()) -> int:
        async with self.connect() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.rowcount

    async def insert(self, query: str, params: tuple = ()) -> int:
        async with self.connect() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetchone(self, query: str, params: tuple = ()):
        async with self.connect() as conn:
            cursor = await conn.execute(query, params)
            return await cursor.fetchone()

    async def fetchall(self, query: str, params: tuple = ()):
        async with self.connect() as conn:
            cursor = await conn.execute(query, params)
            return await cursor.fetchall()

    async def init_tables(self) -> None:
        """Create content, feed and fetch-log tables."""
        async with self.connect() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS articles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    hash TEXT NOT NULL UNIQUE,
                    title TEXT NOT NULL,
                    summary TEXT NOT NULL DEFAULT '',
                    content TEXT NOT NULL DEFAULT '',
                    author TEXT,
                    source TEXT NOT NULL,
                    source_url TEXT NOT NULL,
                    feed_url TEXT,
                    published_at TEXT NOT NULL,
                    fetched_at TEXT NOT NULL,
                    category TEXT NOT NULL,
                    tags TEXT NOT NULL DEFAULT '[]',
                    is_breaking INTEGER NOT NULL DEFAULT 0,
                    read_time TEXT,
                    status TEXT NOT NULL DEFAULT 'active',
                    views INTEGER NOT NULL DEFAULT 0,
                    language TEXT,
                    image_url TEXT
                )
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS videos (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    hash TEXT NOT NULL UNIQUE,
                    video_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    thumbnail TEXT,
                    video_url TEXT,
                    channel_name TEXT NOT NULL,
                    channel_id TEXT,
                    feed_url TEXT,
                    duration TEXT,
                    published_at TEXT NOT NULL,
                    fetched_at TEXT NOT NULL,
                    category TEXT NOT NULL,
                    tags TEXT NOT NULL DEFAULT '[]',
                    status TEXT NOT NULL DEFAULT 'active',
                    view_count INTEGER NOT NULL DEFAULT 0,
                    like_count INTEGER NOT NULL DEFAULT 0,
                    comment_count INTEGER NOT NULL DEFAULT 0,
                    language TEXT
                )
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS feeds (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    url TEXT NOT NULL UNIQUE,
                    kind TEXT NOT NULL,
                    category TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    fetch_interval INTEGER NOT NULL DEFAULT 30,
                    failure_count INTEGER NOT NULL DEFAULT 0,
                    avg_response_time REAL NOT NULL DEFAULT 0,
                    health_score INTEGER NOT NULL DEFAULT 100,
                    last_fetched_at TEXT,
                    last_success_at TEXT,
                    description TEXT,
                    language TEXT
                )
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS fetch_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    feed_id INTEGER NOT NULL,
                    feed_url TEXT NOT NULL,
                    fetched_at TEXT NOT NULL,
                    success INTEGER NOT NULL,
                    response_time REAL NOT NULL,
                    items_found INTEGER NOT NULL DEFAULT 0,
                    new_items INTEGER NOT NULL DEFAULT 0,
                    error_message TEXT,
                    status_code INTEGER
                )
            """)
            for table in ("articles", "videos"):
                await conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_published ON {table}(published_at DESC)"
                )
                await conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_category ON {table}(category, published_at DESC)"
                )
                await conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_status ON {table}(status, published_at DESC)"
                )
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_fetch_logs_feed ON fetch_logs(feed_id, fetched_at DESC)"
            )
            await conn.commit()
            logger.info("Database tables initialized")
