"""Blocking access to the token stores."""

from .sync_wrapper import SyncTokenStore

__all__ = [
    "SyncTokenStore",
]
