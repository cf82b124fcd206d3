"""Domain operations for commit records received via webhooks."""

import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from commit_relay.models.commit import CommitRecord

logger = logging.getLogger(__name__)

# Upper bound on rows read per proxy request
DEFAULT_SCAN_LIMIT = 100


def _now_seconds(now: int | None) -> int:
    return int(time.time()) if now is None else now


class CommitOperations:
    """
    Operations for the commits table.

    Note: This doesn't extend BaseOperations because records are keyed by
    (repo, timestamp), are never updated, and are not user-scoped.
    """

    def __init__(self) -> None:
        self.model = CommitRecord

    async def put(self, db: AsyncSession, record: CommitRecord) -> bool:
        """
        Insert a commit record, leaving an existing row with the same key untouched.

        Returns:
            True if a row was inserted, False if the key already existed.
        """
        stmt = (
            insert(self.model)
            .values(**record.model_dump())
            .on_conflict_do_nothing(index_elements=["repo", "timestamp"])
        )
        result = await db.execute(stmt)
        await db.flush()
        return bool(result.rowcount)

    async def scan_by_author(
        self,
        db: AsyncSession,
        username: str,
        *,
        limit: int = DEFAULT_SCAN_LIMIT,
        now: int | None = None,
    ) -> list[CommitRecord]:
        """
        Fetch unexpired commits by one author, newest first.

        Args:
            db: Database session
            username: Resolved GitHub username stored on the record
            limit: Maximum number of rows to read
            now: Current epoch seconds (defaults to wall clock)
        """
        statement = (
            select(self.model)
            .where(
                self.model.author_username == username,  # type: ignore[arg-type]
                self.model.ttl > _now_seconds(now),  # type: ignore[arg-type]
            )
            .order_by(self.model.timestamp.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def delete_expired(self, db: AsyncSession, *, now: int | None = None) -> int:
        """Delete records whose ttl has passed. Returns the number removed."""
        stmt = delete(self.model).where(
            self.model.ttl <= _now_seconds(now)  # type: ignore[arg-type]
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount or 0


commit_ops = CommitOperations()


class CommitStore(Protocol):
    """Key-value view of the commits table used by the ingestor and relay."""

    async def put(self, record: CommitRecord) -> None: ...

    async def scan_by_author(
        self, username: str, limit: int = DEFAULT_SCAN_LIMIT
    ) -> list[CommitRecord]: ...


class SqlCommitStore:
    """
    CommitStore backed by the commits table.

    Every call runs in its own session. Each put commits on its own, so
    writes that succeeded stay durable when a later write in the same
    push fails or the request is cancelled.
    """

    def __init__(self, session_maker: Callable[[], Any]) -> None:
        self._session_maker = session_maker

    async def put(self, record: CommitRecord) -> None:
        async with self._session_maker() as db:
            inserted = await commit_ops.put(db, record)
            await db.commit()
        if not inserted:
            logger.debug(f"Commit {record.repo}@{record.timestamp} already stored")

    async def scan_by_author(
        self, username: str, limit: int = DEFAULT_SCAN_LIMIT
    ) -> list[CommitRecord]:
        async with self._session_maker() as db:
            return await commit_ops.scan_by_author(db, username, limit=limit)
