"""Synchronous wrapper around the async token stores."""

import asyncio
import threading
from typing import Any, Awaitable, List, Optional, TypeVar

from .. import storage
from ..config import Config
from ..errors import DatabaseConnectionError
from ..storage.base import Ban, Permission, Token, TokenStore

T = TypeVar("T")


class SyncTokenStore:
    """Blocking facade over a :class:`TokenStore`.

    Each call blocks the calling thread until the database answers. The
    wrapper owns a private event loop, and a lock serializes callers from
    different threads so only one statement uses the connection at a time.

    Example:
        ```python
        from gatekeeper import Permission, SyncTokenStore
        from gatekeeper.config import get_config

        with SyncTokenStore.connect(get_config()) as store:
            store.ensure_schema()
            store.ensure_genesis_token()

            secret = store.create_token(Permission.ADMIN, 42)
            print(store.get_token_by_secret(secret))

            store.upsert_ban(7, "spam")
            print(store.list_bans())
        ```
    """

    def __init__(self, store: TokenStore, loop: asyncio.AbstractEventLoop):
        """Wrap a connected store and the loop it was connected on.

        Use :meth:`connect` to build one from configuration.
        """
        self._store = store
        self._loop = loop
        self._lock = threading.Lock()

    @classmethod
    def connect(cls, config: Config) -> "SyncTokenStore":
        """Open a store for ``config.backend`` on a fresh event loop.

        Raises:
            DatabaseConnectionError: On network or authentication failure
        """
        loop = asyncio.new_event_loop()
        try:
            store = loop.run_until_complete(storage.connect(config))
        except BaseException:
            loop.close()
            raise
        return cls(store, loop)

    def _run(self, coro: Awaitable[T]) -> T:
        with self._lock:
            if self._loop.is_closed():
                coro.close()
                raise DatabaseConnectionError("Database connection is closed")
            return self._loop.run_until_complete(coro)

    def __enter__(self) -> "SyncTokenStore":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def ensure_schema(self) -> None:
        self._run(self._store.ensure_schema())

    def ensure_genesis_token(self, root_owner_id: Optional[int] = None) -> Optional[str]:
        """Create the id 1 Root token if missing.

        Returns:
            The plaintext secret when a token was created, None otherwise
        """
        return self._run(self._store.ensure_genesis_token(root_owner_id))

    def list_tokens(self) -> List[Token]:
        return self._run(self._store.list_tokens())

    def get_token_by_id(self, token_id: int) -> Optional[Token]:
        return self._run(self._store.get_token_by_id(token_id))

    def get_token_by_secret(self, secret: str) -> Optional[Token]:
        return self._run(self._store.get_token_by_secret(secret))

    def create_token(self, permission: Permission, owner_user_id: int) -> str:
        """Issue a token and return its plaintext secret."""
        return self._run(self._store.create_token(permission, owner_user_id))

    def delete_token_by_id(self, token_id: int) -> None:
        self._run(self._store.delete_token_by_id(token_id))

    def list_bans(self) -> List[Ban]:
        return self._run(self._store.list_bans())

    def get_ban(self, user_id: int) -> Optional[Ban]:
        return self._run(self._store.get_ban(user_id))

    def upsert_ban(self, user_id: int, reason: str) -> None:
        self._run(self._store.upsert_ban(user_id, reason))

    def delete_ban(self, user_id: int) -> None:
        self._run(self._store.delete_ban(user_id))

    def close(self) -> None:
        """Close the connection and the event loop."""
        with self._lock:
            if self._loop.is_closed():
                return
            try:
                self._loop.run_until_complete(self._store.close())
            finally:
                self._loop.close()
