"""
Feed descriptors and the append-only fetch log.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiosqlite

from core.entities import FeedDescriptor, FeedKind, FetchLog
from services.database import Database, from_db_time, is_unique_violation, to_db_time

logger = logging.getLogger(__name__)

_FEED_COLUMNS = (
    "name", "url", "kind", "category", "is_active", "fetch_interval",
    "failure_count", "avg_response_time", "health_score",
    "last_fetched_at", "last_success_at", "description", "language",
)


def _feed_to_row(feed: FeedDescriptor) -> Dict[str, Any]:
    data = feed.model_dump(exclude={"id"})
    data["kind"] = FeedKind(feed.kind).value
    data["is_active"] = int(feed.is_active)
    data["last_fetched_at"] = to_db_time(feed.last_fetched_at)
    data["last_success_at"] = to_db_time(feed.last_success_at)
    return {k: data[k] for k in _FEED_COLUMNS}


def _feed_from_row(row: aiosqlite.Row) -> FeedDescriptor:
    data = dict(row)
    data["is_active"] = bool(data["is_active"])
    data["last_fetched_at"] = from_db_time(data["last_fetched_at"])
    data["last_success_at"] = from_db_time(data["last_success_at"])
    return FeedDescriptor(**data)


class FeedRepository:
    def __init__(self, database: Database):
        self.db = database

    async def create(self, feed: FeedDescriptor) -> Optional[FeedDescriptor]:
        """Insert a feed. Returns None when the URL is already registered."""
        row = _feed_to_row(feed)
        try:
            new_id = await self.db.insert(
                f"INSERT INTO feeds ({', '.join(row)}) VALUES ({', '.join('?' for _ in row)})",
                tuple(row.values()),
            )
        except aiosqlite.IntegrityError as e:
            if is_unique_violation(e, "url"):
                return None
            raise
        return feed.model_copy(update={"id": new_id})

    async def get(self, feed_id: int) -> Optional[FeedDescriptor]:
        row = await self.db.fetchone("SELECT * FROM feeds WHERE id = ?", (feed_id,))
        return _feed_from_row(row) if row else None

    async def get_by_url(self, url: str) -> Optional[FeedDescriptor]:
        row = await self.db.fetchone("SELECT * FROM feeds WHERE url = ?", (url,))
        return _feed_from_row(row) if row else None

    async def list_active(self) -> List[FeedDescriptor]:
        rows = await self.db.fetchall("SELECT * FROM feeds WHERE is_active = 1 ORDER BY id")
        return [_feed_from_row(r) for r in rows]

    async def list_all(self) -> List[FeedDescriptor]:
        rows = await self.db.fetchall("SELECT * FROM feeds ORDER BY health_score DESC, id")
        return [_feed_from_row(r) for r in rows]

    async def save(self, feed: FeedDescriptor) -> None:
        """Write back every column of an existing feed row."""
        row = _feed_to_row(feed)
        assignments = ", ".join(f"{k} = ?" for k in row)
        await self.db.execute(
            f"UPDATE feeds SET {assignments} WHERE id = ?",
            (*row.values(), feed.id),
        )

    async def update(self, feed_id: int, **changes: Any) -> Optional[FeedDescriptor]:
        feed = await self.get(feed_id)
        if feed is None:
            return None
        updated = FeedDescriptor.model_validate({**feed.model_dump(), **changes, "id": feed_id})
        await self.save(updated)
        return updated

    async def delete(self, feed_id: int) -> bool:
        return await self.db.execute("DELETE FROM feeds WHERE id = ?", (feed_id,)) > 0

    async def get_total_count(self) -> int:
        row = await self.db.fetchone("SELECT COUNT(*) FROM feeds")
        return row[0]


class FetchLogRepository:
    def __init__(self, database: Database):
        self.db = database

    async def append(self, log: FetchLog) -> int:
        return await self.db.insert(
            """
            INSERT INTO fetch_logs
            (feed_id, feed_url, fetched_at, success, response_time,
             items_found, new_items, error_message, status_code)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                log.feed_id, log.feed_url, to_db_time(log.fetched_at), int(log.success),
                log.response_time, log.items_found, log.new_items,
                log.error_message, log.status_code,
            ),
        )

    async def recent(self, feed_id: int, limit: int = 20) -> List[FetchLog]:
        rows = await self.db.fetchall(
            "SELECT * FROM fetch_logs WHERE feed_id = ? ORDER BY fetched_at DESC, id DESC LIMIT ?",
            (feed_id, limit),
        )
        logs = []
        for row in rows:
            data = dict(row)
            data["success"] = bool(data["success"])
            data["fetched_at"] = from_db_time(data["fetched_at"])
            logs.append(FetchLog(**data))
        return logs

    async def stats(self, feed_id: int, since: Optional[datetime] = None) -> Dict[str, Any]:
        """Aggregate attempts, successes and timings for one feed."""
        query = """
            SELECT COUNT(*), COALESCE(SUM(success), 0), AVG(response_time),
                   COALESCE(SUM(items_found), 0), COALESCE(SUM(new_items), 0)
            FROM fetch_logs WHERE feed_id = ?
        """
        params: tuple = (feed_id,)
        if since is not None:
            query += " AND fetched_at >= ?"
            params = (feed_id, to_db_time(since))
        attempts, successes, avg_time, found, new = await self.db.fetchone(query, params)
        return {
            "attempts": attempts,
            "successes": successes,
            "failures": attempts - successes,
            "success_rate": (successes / attempts) if attempts else 0.0,
            "avg_response_time": float(avg_time or 0.0),
            "items_found": found,
            "new_items": new,
        }
