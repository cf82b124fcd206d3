from commit_relay.api.v1 import proxy, webhook

__all__ = [
    "proxy",
    "webhook",
]
