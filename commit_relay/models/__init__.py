from commit_relay.models.commit import CommitRecord

__all__ = [
    "CommitRecord",
]
