"""PostgreSQL-based token and ban storage."""

import asyncio
from typing import Any, List, Optional

import asyncpg

from ..config import Config
from ..errors import DatabaseConnectionError, QueryError, SchemaError, UniquenessError
from ..logging import get_logger
from .base import GENESIS_TOKEN_ID, Ban, Permission, Token, TokenStore

logger = get_logger("storage.postgres")

CREATE_BANLIST = """
    CREATE TABLE IF NOT EXISTS banlist (
        id integer NOT NULL PRIMARY KEY,
        reason text NOT NULL,
        date timestamp NOT NULL);"""

CREATE_PERMISSION_TYPE = """
    DO $$
    BEGIN
        IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'permission') THEN
            CREATE TYPE permission AS ENUM ('User', 'Admin', 'Root');
        END IF;
    END$$;"""

CREATE_TOKENS = """
    CREATE TABLE IF NOT EXISTS tokens (
        id SERIAL,
        token text NOT NULL PRIMARY KEY,
        permissions permission NOT NULL,
        userid integer NOT NULL);"""

# A fresh id sequence starts at 2, id 1 belongs to the genesis token
RESERVE_GENESIS_ID = f"""
    SELECT setval('tokens_id_seq', {GENESIS_TOKEN_ID})
    FROM tokens_id_seq
    WHERE NOT is_called;"""

TOKEN_COLUMNS = "id, token, permissions, userid"
BAN_COLUMNS = "id, reason, date"


def _token_from_row(row: asyncpg.Record) -> Token:
    return Token(
        id=row["id"],
        token=row["token"],
        permissions=Permission.from_db(row["permissions"]),
        userid=row["userid"],
    )


def _ban_from_row(row: asyncpg.Record) -> Ban:
    return Ban(id=row["id"], reason=row["reason"], date=row["date"])


class PostgresTokenStore(TokenStore):
    """PostgreSQL implementation of token and ban storage over one connection."""

    def __init__(self, config: Config, connection: asyncpg.Connection):
        """Wrap an established connection.

        Use :meth:`connect` to open one from configuration.
        """
        super().__init__(config)
        self._connection: Optional[asyncpg.Connection] = connection
        # One statement in flight per connection
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(cls, config: Config) -> "PostgresTokenStore":
        """Open the connection described by ``config.database``.

        Raises:
            DatabaseConnectionError: On network or authentication failure
        """
        db = config.database
        logger.debug(
            f"Connecting to database (host={db.host}, port={db.port}, "
            f"name={db.name}, username={db.username})"
        )
        try:
            connection = await asyncpg.connect(
                host=db.host,
                port=db.port,
                database=db.name,
                user=db.username,
                password=db.password,
                server_settings={"application_name": config.application_name},
            )
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise DatabaseConnectionError(
                f"Could not connect to PostgreSQL at {db.host}:{db.port}/{db.name}: {e}"
            ) from e
        logger.debug("Connected to PostgreSQL")
        return cls(config, connection)

    def _get_connection(self) -> asyncpg.Connection:
        """Get the open connection."""
        if self._connection is None or self._connection.is_closed():
            raise DatabaseConnectionError("Database connection is closed")
        return self._connection

    async def _run(self, method: str, query: str, *args: Any, error=QueryError) -> Any:
        """Run ``query`` through ``connection.<method>`` and map driver errors."""
        async with self._lock:
            conn = self._get_connection()
            try:
                return await getattr(conn, method)(query, *args)
            except asyncpg.UniqueViolationError as e:
                raise UniquenessError(str(e)) from e
            except ValueError as e:
                # Arguments the driver could not encode, the connection is fine
                raise error(str(e)) from e
            except (OSError, asyncpg.InterfaceError) as e:
                raise DatabaseConnectionError(str(e)) from e
            except asyncpg.PostgresError as e:
                raise error(str(e)) from e

    async def ensure_schema(self) -> None:
        """Create tables and the permission type if they don't exist."""
        for name, query in (
            ("banlist", CREATE_BANLIST),
            ("permission", CREATE_PERMISSION_TYPE),
            ("tokens", CREATE_TOKENS),
            ("genesis id reservation", RESERVE_GENESIS_ID),
        ):
            logger.debug(f"Creating {name} if it doesn't exist")
            await self._run("execute", query, error=SchemaError)

    async def list_tokens(self) -> List[Token]:
        logger.debug("Getting all tokens")
        rows = await self._run("fetch", f"SELECT {TOKEN_COLUMNS} FROM tokens;")
        return [_token_from_row(row) for row in rows]

    async def get_token_by_id(self, token_id: int) -> Optional[Token]:
        logger.debug(f"Getting token by id (id={token_id})")
        row = await self._run("fetchrow", f"SELECT {TOKEN_COLUMNS} FROM tokens WHERE id = $1;", token_id)
        return _token_from_row(row) if row else None

    async def get_token_by_secret(self, secret: str) -> Optional[Token]:
        logger.debug("Getting token by secret")
        row = await self._run("fetchrow", f"SELECT {TOKEN_COLUMNS} FROM tokens WHERE token = $1;", secret)
        return _token_from_row(row) if row else None

    async def _insert_token(
        self,
        secret: str,
        permission: Permission,
        owner_user_id: int,
        token_id: Optional[int] = None,
    ) -> None:
        if token_id is None:
            await self._run(
                "execute",
                "INSERT INTO tokens (token, permissions, userid) VALUES ($1, $2, $3);",
                secret,
                permission.to_db(),
                owner_user_id,
            )
        else:
            await self._run(
                "execute",
                "INSERT INTO tokens (id, token, permissions, userid) VALUES ($1, $2, $3, $4);",
                token_id,
                secret,
                permission.to_db(),
                owner_user_id,
            )

    async def delete_token_by_id(self, token_id: int) -> None:
        logger.debug(f"Deleting token by id (id={token_id})")
        await self._run("execute", "DELETE FROM tokens WHERE id = $1;", token_id)

    async def list_bans(self) -> List[Ban]:
        logger.debug("Getting all bans")
        rows = await self._run("fetch", f"SELECT {BAN_COLUMNS} FROM banlist;")
        return [_ban_from_row(row) for row in rows]

    async def get_ban(self, user_id: int) -> Optional[Ban]:
        logger.debug(f"Getting ban (id={user_id})")
        row = await self._run("fetchrow", f"SELECT {BAN_COLUMNS} FROM banlist WHERE id = $1;", user_id)
        return _ban_from_row(row) if row else None

    async def upsert_ban(self, user_id: int, reason: str) -> None:
        logger.debug(f"Upserting ban (id={user_id}, reason={reason!r})")
        await self._run(
            "execute",
            """
            INSERT INTO banlist (id, reason, date)
            VALUES ($1, $2, now())
            ON CONFLICT (id) DO UPDATE SET
                reason = EXCLUDED.reason,
                date = EXCLUDED.date;
            """,
            user_id,
            reason,
        )

    async def delete_ban(self, user_id: int) -> None:
        logger.debug(f"Deleting ban (id={user_id})")
        await self._run("execute", "DELETE FROM banlist WHERE id = $1;", user_id)

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.debug("Closed PostgreSQL connection")
