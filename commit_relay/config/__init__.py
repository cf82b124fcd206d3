"""Configuration package."""

from commit_relay.config.settings import Settings, settings

__all__ = [
    "Settings",
    "settings",
]
