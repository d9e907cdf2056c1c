"""SQLite-based token and ban storage."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

import aiosqlite

from ..config import Config
from ..errors import DatabaseConnectionError, QueryError, SchemaError, UniquenessError
from ..logging import get_logger
from .base import GENESIS_TOKEN_ID, Ban, Permission, Token, TokenStore

logger = get_logger("storage.sqlite")

# SQLite has no enum types, the CHECK constraint stands in for `permission`.
# AUTOINCREMENT keeps ids from being reused, like a PostgreSQL SERIAL.
SCHEMA = (
    (
        "banlist",
        """
        CREATE TABLE IF NOT EXISTS banlist (
            id INTEGER NOT NULL PRIMARY KEY,
            reason TEXT NOT NULL,
            date TEXT NOT NULL
        )
        """,
    ),
    (
        "tokens",
        """
        CREATE TABLE IF NOT EXISTS tokens (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            token TEXT NOT NULL UNIQUE,
            permissions TEXT NOT NULL CHECK (permissions IN ('User', 'Admin', 'Root')),
            userid INTEGER NOT NULL
        )
        """,
    ),
    (
        # A fresh id sequence starts at 2, id 1 belongs to the genesis token
        "genesis id reservation",
        f"""
        INSERT INTO sqlite_sequence (name, seq)
        SELECT 'tokens', {GENESIS_TOKEN_ID}
        WHERE NOT EXISTS (SELECT 1 FROM sqlite_sequence WHERE name = 'tokens')
        """,
    ),
)

TOKEN_COLUMNS = "id, token, permissions, userid"
BAN_COLUMNS = "id, reason, date"

# Server-side timestamp, millisecond precision
NOW = "strftime('%Y-%m-%d %H:%M:%f', 'now')"


def _token_from_row(row: aiosqlite.Row) -> Token:
    return Token(
        id=row["id"],
        token=row["token"],
        permissions=Permission.from_db(row["permissions"]),
        userid=row["userid"],
    )


def _ban_from_row(row: aiosqlite.Row) -> Ban:
    return Ban(id=row["id"], reason=row["reason"], date=datetime.fromisoformat(row["date"]))


class SQLiteTokenStore(TokenStore):
    """SQLite implementation of token and ban storage over one connection."""

    def __init__(self, config: Config, connection: aiosqlite.Connection):
        """Wrap an open connection.

        Use :meth:`connect` to open one from configuration.
        """
        super().__init__(config)
        self._connection: Optional[aiosqlite.Connection] = connection
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(cls, config: Config) -> "SQLiteTokenStore":
        """Open the database file at ``config.database.sqlite_path``.

        Raises:
            DatabaseConnectionError: If the file cannot be opened
        """
        db_path = config.database.sqlite_path
        logger.debug(f"Connecting to database (path={db_path})")
        try:
            if db_path != ":memory:":
                # Ensure directory exists
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            connection = await aiosqlite.connect(db_path)
        except (OSError, aiosqlite.Error) as e:
            raise DatabaseConnectionError(f"Could not open SQLite database {db_path}: {e}") from e
        connection.row_factory = aiosqlite.Row
        logger.debug("Connected to SQLite")
        return cls(config, connection)

    def _get_connection(self) -> aiosqlite.Connection:
        """Get the open connection."""
        if self._connection is None:
            raise DatabaseConnectionError("Database connection is closed")
        return self._connection

    async def _fetch(self, query: str, *args: Any) -> List[aiosqlite.Row]:
        async with self._lock:
            conn = self._get_connection()
            try:
                cursor = await conn.execute(query, args)
                return list(await cursor.fetchall())
            except (aiosqlite.Error, OverflowError, ValueError) as e:
                raise QueryError(str(e)) from e

    async def _write(self, query: str, *args: Any, error=QueryError) -> None:
        """Execute a write and commit it."""
        async with self._lock:
            conn = self._get_connection()
            try:
                await conn.execute(query, args)
                await conn.commit()
            except (aiosqlite.Error, OverflowError, ValueError) as e:
                await self._rollback(conn)
                if isinstance(e, aiosqlite.IntegrityError) and "UNIQUE" in str(e):
                    raise UniquenessError(str(e)) from e
                raise error(str(e)) from e

    async def _rollback(self, conn: aiosqlite.Connection) -> None:
        """Roll back a failed write without masking the error that caused it."""
        try:
            await conn.rollback()
        except aiosqlite.Error as e:
            logger.warning(f"Rollback failed: {e}")

    async def ensure_schema(self) -> None:
        """Create tables if they don't exist."""
        for name, query in SCHEMA:
            logger.debug(f"Creating {name} if it doesn't exist")
            await self._write(query, error=SchemaError)

    async def list_tokens(self) -> List[Token]:
        logger.debug("Getting all tokens")
        rows = await self._fetch(f"SELECT {TOKEN_COLUMNS} FROM tokens")
        return [_token_from_row(row) for row in rows]

    async def get_token_by_id(self, token_id: int) -> Optional[Token]:
        logger.debug(f"Getting token by id (id={token_id})")
        rows = await self._fetch(f"SELECT {TOKEN_COLUMNS} FROM tokens WHERE id = ?", token_id)
        return _token_from_row(rows[0]) if rows else None

    async def get_token_by_secret(self, secret: str) -> Optional[Token]:
        logger.debug("Getting token by secret")
        rows = await self._fetch(f"SELECT {TOKEN_COLUMNS} FROM tokens WHERE token = ?", secret)
        return _token_from_row(rows[0]) if rows else None

    async def _insert_token(
        self,
        secret: str,
        permission: Permission,
        owner_user_id: int,
        token_id: Optional[int] = None,
    ) -> None:
        await self._write(
            "INSERT INTO tokens (id, token, permissions, userid) VALUES (?, ?, ?, ?)",
            token_id,
            secret,
            permission.to_db(),
            owner_user_id,
        )

    async def delete_token_by_id(self, token_id: int) -> None:
        logger.debug(f"Deleting token by id (id={token_id})")
        await self._write("DELETE FROM tokens WHERE id = ?", token_id)

    async def list_bans(self) -> List[Ban]:
        logger.debug("Getting all bans")
        rows = await self._fetch(f"SELECT {BAN_COLUMNS} FROM banlist")
        return [_ban_from_row(row) for row in rows]

    async def get_ban(self, user_id: int) -> Optional[Ban]:
        logger.debug(f"Getting ban (id={user_id})")
        rows = await self._fetch(f"SELECT {BAN_COLUMNS} FROM banlist WHERE id = ?", user_id)
        return _ban_from_row(rows[0]) if rows else None

    async def upsert_ban(self, user_id: int, reason: str) -> None:
        logger.debug(f"Upserting ban (id={user_id}, reason={reason!r})")
        await self._write(
            f"""
            INSERT INTO banlist (id, reason, date)
            VALUES (?, ?, {NOW})
            ON CONFLICT(id) DO UPDATE SET
                reason = excluded.reason,
                date = excluded.date
            """,
            user_id,
            reason,
        )

    async def delete_ban(self, user_id: int) -> None:
        logger.debug(f"Deleting ban (id={user_id})")
        await self._write("DELETE FROM banlist WHERE id = ?", user_id)

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.debug("Closed SQLite connection")
