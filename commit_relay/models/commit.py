"""Commit record model for commits received via push webhooks."""

from typing import Any

from sqlalchemy import JSON, BigInteger, Column, Index, Text
from sqlmodel import Field, SQLModel


class CommitRecord(SQLModel, table=True):
    """
    One commit from a push webhook.

    Identity is (repo, timestamp). Commits arriving in the same push get
    consecutive millisecond timestamps so the key never collides within a
    batch. Rows are written once and never updated; they are reclaimed
    after ``ttl`` (epoch seconds).
    """

    __tablename__ = "commits"
    __table_args__ = (
        Index("ix_commits_author_username_timestamp", "author_username", "timestamp"),
        Index("ix_commits_ttl", "ttl"),
    )

    repo: str = Field(
        primary_key=True,
        max_length=500,
        description="GitHub repo full name (owner/repo)",
    )
    timestamp: int = Field(
        primary_key=True,
        sa_type=BigInteger,
        sa_column_kwargs={"autoincrement": False},
        description="Receipt time in epoch milliseconds plus position in the push",
    )
    ttl: int = Field(sa_type=BigInteger, nullable=False)

    sha: str = Field(max_length=40, nullable=False)
    message: str = Field(default="", sa_column=Column(Text, nullable=False))
    url: str = Field(default="", max_length=1000)

    author_name: str | None = Field(default=None, max_length=255)
    author_email: str | None = Field(default=None, max_length=255)
    author_username: str = Field(default="unknown", max_length=255, nullable=False)

    added: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    removed: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    modified: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    @property
    def short_repo_name(self) -> str:
        """Repository name without the owner (``owner/name`` -> ``name``)."""
        return self.repo.rsplit("/", 1)[-1]

    def to_item(self) -> dict[str, Any]:
        """Document shape with the author fields nested."""
        return {
            "repo": self.repo,
            "timestamp": self.timestamp,
            "ttl": self.ttl,
            "sha": self.sha,
            "message": self.message,
            "url": self.url,
            "author": {
                "name": self.author_name,
                "email": self.author_email,
                "username": self.author_username,
            },
            "added": list(self.added),
            "removed": list(self.removed),
            "modified": list(self.modified),
        }
