"""
Content store - articles and videos keyed by their dedup hash.
"""
import json
import logging
from dataclasses import asdict, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Generic, List, Optional, Tuple, TypeVar

import aiosqlite

from core.entities import CanonicalArticle, CanonicalVideo, ContentFilters, ContentStatus, Page
from services.database import Database, from_db_time, is_unique_violation, to_db_time

logger = logging.getLogger(__name__)

R = TypeVar("R", CanonicalArticle, CanonicalVideo)

_TIME_FIELDS = ("published_at", "fetched_at")


def _escape_like(text: str) -> str:
    """Match `%` and `_` literally in a LIKE pattern."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ContentRepository(Generic[R]):
    """
    Shared persistence for canonical records.
    Subclasses declare the table, record type and the searchable columns.
    """

    table: str
    record_type: type
    source_column: str
    search_columns: Tuple[str, ...]

    def __init__(self, database: Database):
        self.db = database

    def _to_row(self, record: R) -> dict:
        row = asdict(record)
        row.pop("id", None)
        row["tags"] = json.dumps(list(record.tags))
        row["status"] = ContentStatus(record.status).value
        for name in _TIME_FIELDS:
            row[name] = to_db_time(row[name])
        if "is_breaking" in row:
            row["is_breaking"] = int(row["is_breaking"])
        return row

    def _from_row(self, row: aiosqlite.Row) -> R:
        data = dict(row)
        data["tags"] = json.loads(data.get("tags") or "[]")
        data["status"] = ContentStatus(data["status"])
        for name in _TIME_FIELDS:
            data[name] = from_db_time(data[name])
        if "is_breaking" in data:
            data["is_breaking"] = bool(data["is_breaking"])
        return self.record_type(**data)

    async def create(self, record: R) -> Optional[R]:
        """
        Insert a record. Returns None when its hash is already stored.
        """
        row = self._to_row(record)
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        try:
            new_id = await self.db.insert(
                f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders})",
                tuple(row.values()),
            )
        except aiosqlite.IntegrityError as e:
            if is_unique_violation(e, "hash"):
                logger.debug(f"Duplicate {self.table} hash skipped: {record.hash[:12]}")
                return None
            raise
        return replace(record, id=new_id)

    async def get_by_hash(self, content_hash: str) -> Optional[R]:
        row = await self.db.fetchone(f"SELECT * FROM {self.table} WHERE hash = ?", (content_hash,))
        return self._from_row(row) if row else None

    async def get_by_id(self, record_id: int) -> Optional[R]:
        row = await self.db.fetchone(f"SELECT * FROM {self.table} WHERE id = ?", (record_id,))
        return self._from_row(row) if row else None

    def _where(self, filters: ContentFilters) -> Tuple[str, List[Any]]:
        clauses = ["status = ?"]
        params: List[Any] = [ContentStatus(filters.status).value]
        if filters.category:
            clauses.append("category = ?")
            params.append(filters.category)
        if filters.source:
            clauses.append(f"{self.source_column} = ?")
            params.append(filters.source)
        if filters.search:
            like = f"%{_escape_like(filters.search.strip())}%"
            clauses.append(
                "(" + " OR ".join(f"{c} LIKE ? ESCAPE '\\'" for c in self.search_columns) + ")"
            )
            params.extend(like for _ in self.search_columns)
        return " AND ".join(clauses), params

    async def get_page(
        self,
        filters: Optional[ContentFilters] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        """Newest-first page of records matching the filters."""
        filters = filters or ContentFilters()
        page = max(1, page)
        limit = max(1, limit)
        where, params = self._where(filters)
        rows = await self.db.fetchall(
            f"SELECT * FROM {self.table} WHERE {where} "
            f"ORDER BY published_at DESC, id DESC LIMIT ? OFFSET ?",
            (*params, limit, (page - 1) * limit),
        )
        total = await self.count(filters)
        return Page(items=[self._from_row(r) for r in rows], total=total, page=page, limit=limit)

    async def count(self, filters: ContentFilters) -> int:
        where, params = self._where(filters)
        row = await self.db.fetchone(f"SELECT COUNT(*) FROM {self.table} WHERE {where}", tuple(params))
        return row[0]

    async def get_total_count(self) -> int:
        row = await self.db.fetchone(f"SELECT COUNT(*) FROM {self.table}")
        return row[0]

    async def update_status(self, record_id: int, status: ContentStatus) -> bool:
        changed = await self.db.execute(
            f"UPDATE {self.table} SET status = ? WHERE id = ?",
            (ContentStatus(status).value, record_id),
        )
        return changed > 0

    async def update_category(self, record_id: int, category: str) -> bool:
        changed = await self.db.execute(
            f"UPDATE {self.table} SET category = ? WHERE id = ?", (category, record_id)
        )
        return changed > 0

    async def delete_older_than(self, days: int, now: Optional[datetime] = None) -> int:
        """Purge non-archived records published before the retention horizon."""
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        count = await self.db.execute(
            f"DELETE FROM {self.table} WHERE published_at < ? AND status != ?",
            (to_db_time(cutoff), ContentStatus.ARCHIVED.value),
        )
        logger.info(f"Pruned {count} {self.table} older than {days} days")
        return count


class ArticleRepository(ContentRepository[CanonicalArticle]):
    table = "articles"
    record_type = CanonicalArticle
    source_column = "source"
    search_columns = ("title", "summary", "content")

    async def increment_views(self, record_id: int) -> None:
        await self.db.execute("UPDATE articles SET views = views + 1 WHERE id = ?", (record_id,))


class VideoRepository(ContentRepository[CanonicalVideo]):
    table = "videos"
    record_type = CanonicalVideo
    source_column = "channel_name"
    search_columns = ("title", "description")

    async def increment_views(self, record_id: int) -> None:
        await self.db.execute("UPDATE videos SET view_count = view_count + 1 WHERE id = ?", (record_id,))
