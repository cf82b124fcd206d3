"""Add commits table for push webhook commit records

Revision ID: 3b7e91c4d2a6
Revises:
Create Date: 2026-10-12 10:00:00.000000

One row per commit received via a push webhook, keyed by (repo, timestamp).
Rows carry an epoch-seconds ttl; the scheduler deletes them once it passes.
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e91c4d2a6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "commits",
        sa.Column("repo", sa.String(500), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("ttl", sa.BigInteger(), nullable=False),
        sa.Column("sha", sa.String(40), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("url", sa.String(1000), nullable=False),
        sa.Column("author_name", sa.String(255), nullable=True),
        sa.Column("author_email", sa.String(255), nullable=True),
        sa.Column("author_username", sa.String(255), nullable=False),
        sa.Column("added", sa.JSON(), nullable=False),
        sa.Column("removed", sa.JSON(), nullable=False),
        sa.Column("modified", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("repo", "timestamp"),
    )

    # Recent commits by author, newest first
    op.create_index(
        "ix_commits_author_username_timestamp",
        "commits",
        ["author_username", "timestamp"],
    )

    # Expiry sweeps
    op.create_index("ix_commits_ttl", "commits", ["ttl"])


def downgrade() -> None:
    op.drop_index("ix_commits_ttl", table_name="commits")
    op.drop_index("ix_commits_author_username_timestamp", table_name="commits")
    op.drop_table("commits")
