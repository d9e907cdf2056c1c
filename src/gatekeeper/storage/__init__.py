"""Token and ban storage implementations."""

from ..config import Config
from .base import Ban, Permission, Token, TokenStore
from .postgres import PostgresTokenStore
from .sqlite import SQLiteTokenStore

BACKENDS = {
    "postgres": PostgresTokenStore,
    "sqlite": SQLiteTokenStore,
}


async def connect(config: Config) -> TokenStore:
    """Open a store for the backend named by ``config.backend``."""
    try:
        store_cls = BACKENDS[config.backend]
    except KeyError:
        raise ValueError(f"Unknown database backend: {config.backend!r}") from None
    return await store_cls.connect(config)


__all__ = [
    "connect",
    "TokenStore",
    "PostgresTokenStore",
    "SQLiteTokenStore",
    "Token",
    "Ban",
    "Permission",
]
