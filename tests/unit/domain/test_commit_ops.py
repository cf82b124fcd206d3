"""Unit tests for CommitOperations and SqlCommitStore — all DB calls mocked."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from commit_relay.domain.commit_operations import CommitOperations, SqlCommitStore

from tests.helpers.mock_factories import (
    make_commit_record,
    mock_rowcount_result,
    mock_scalars_result,
)


def _compile(stmt):
    return stmt.compile(dialect=postgresql.dialect())


def _session_maker(db: AsyncMock) -> MagicMock:
    """Session maker whose sessions are all ``db``."""
    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=db)
    session_cm.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session_cm)


class TestPut:
    """Tests for conditional insert of commit records."""

    def setup_method(self):
        self.ops = CommitOperations()
        self.db = AsyncMock()

    @pytest.mark.anyio
    async def test_insert_does_nothing_on_key_conflict(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(1))

        inserted = await self.ops.put(self.db, make_commit_record())

        assert inserted is True
        sql = str(_compile(self.db.execute.call_args.args[0]))
        assert "INSERT INTO commits" in sql
        assert "ON CONFLICT (repo, timestamp) DO NOTHING" in sql
        self.db.flush.assert_awaited_once()

    @pytest.mark.anyio
    async def test_existing_key_returns_false(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(0))

        assert await self.ops.put(self.db, make_commit_record()) is False

    @pytest.mark.anyio
    async def test_all_fields_are_written(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(1))
        record = make_commit_record(added=["a.txt"], modified=["b.txt"])

        await self.ops.put(self.db, record)

        params = _compile(self.db.execute.call_args.args[0]).params
        assert params["repo"] == "dmleblanc/site"
        assert params["timestamp"] == record.timestamp
        assert params["sha"] == record.sha
        assert params["author_username"] == "alice"
        assert params["added"] == ["a.txt"]
        assert params["modified"] == ["b.txt"]


class TestScanByAuthor:
    """Tests for the per-author read."""

    def setup_method(self):
        self.ops = CommitOperations()
        self.db = AsyncMock()

    @pytest.mark.anyio
    async def test_returns_rows(self):
        rows = [make_commit_record(timestamp=2), make_commit_record(timestamp=1)]
        self.db.execute = AsyncMock(return_value=mock_scalars_result(rows))

        result = await self.ops.scan_by_author(self.db, "alice", now=1_700_000_000)

        assert result == rows

    @pytest.mark.anyio
    async def test_filters_author_and_expiry_newest_first_with_limit(self):
        self.db.execute = AsyncMock(return_value=mock_scalars_result([]))

        await self.ops.scan_by_author(self.db, "alice", limit=25, now=1_700_000_000)

        compiled = _compile(self.db.execute.call_args.args[0])
        sql = str(compiled)
        assert "commits.author_username =" in sql
        assert "commits.ttl >" in sql
        assert "ORDER BY commits.timestamp DESC" in sql
        assert "LIMIT" in sql
        assert set(compiled.params.values()) == {"alice", 1_700_000_000, 25}


class TestDeleteExpired:
    """Tests for ttl reclamation."""

    def setup_method(self):
        self.ops = CommitOperations()
        self.db = AsyncMock()

    @pytest.mark.anyio
    async def test_returns_rows_removed(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(3))

        assert await self.ops.delete_expired(self.db, now=1_700_000_000) == 3

        compiled = _compile(self.db.execute.call_args.args[0])
        assert "DELETE FROM commits" in str(compiled)
        assert "commits.ttl <=" in str(compiled)
        assert list(compiled.params.values()) == [1_700_000_000]
        self.db.flush.assert_awaited_once()

    @pytest.mark.anyio
    async def test_unknown_rowcount_is_zero(self):
        self.db.execute = AsyncMock(return_value=mock_rowcount_result(None))

        assert await self.ops.delete_expired(self.db) == 0


class TestSqlCommitStore:
    """Tests for the session-per-call store."""

    @pytest.mark.anyio
    async def test_put_commits_its_own_session(self):
        db = AsyncMock()
        db.execute = AsyncMock(return_value=mock_rowcount_result(1))
        store = SqlCommitStore(_session_maker(db))

        await store.put(make_commit_record())
        await store.put(make_commit_record(timestamp=1_760_000_000_001))

        assert db.commit.await_count == 2

    @pytest.mark.anyio
    async def test_duplicate_put_is_not_an_error(self):
        db = AsyncMock()
        db.execute = AsyncMock(return_value=mock_rowcount_result(0))
        store = SqlCommitStore(_session_maker(db))

        await store.put(make_commit_record())

        db.commit.assert_awaited_once()

    @pytest.mark.anyio
    async def test_put_failure_propagates(self):
        db = AsyncMock()
        db.execute = AsyncMock(side_effect=ConnectionError("db down"))
        store = SqlCommitStore(_session_maker(db))

        with pytest.raises(ConnectionError):
            await store.put(make_commit_record())

        db.commit.assert_not_awaited()

    @pytest.mark.anyio
    async def test_scan_by_author(self):
        rows = [make_commit_record()]
        db = AsyncMock()
        db.execute = AsyncMock(return_value=mock_scalars_result(rows))
        store = SqlCommitStore(_session_maker(db))

        assert await store.scan_by_author("alice", 50) == rows
