from commit_relay.domain.commit_operations import (
    CommitStore,
    SqlCommitStore,
    commit_ops,
)

__all__ = [
    "commit_ops",
    "CommitStore",
    "SqlCommitStore",
]
