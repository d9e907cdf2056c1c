"""Records and abstract base class for token and ban storage."""

import json
import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..config import Config
from ..errors import QueryError, SerializationError
from ..logging import get_logger

# Same 64 symbol URL-safe alphabet nanoid draws from
SECRET_ALPHABET = string.ascii_letters + string.digits + "_-"

GENESIS_TOKEN_ID = 1

logger = get_logger("storage")


def generate_secret(size: int) -> str:
    """Generate an unpredictable token secret of exactly ``size`` characters."""
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(size))


class Permission(str, Enum):
    """Access level attached to a token."""

    USER = "User"
    ADMIN = "Admin"
    ROOT = "Root"

    def to_db(self) -> str:
        """Encode as the label of the database ``permission`` enum."""
        return self.value

    @classmethod
    def from_db(cls, value: str) -> "Permission":
        """Decode a database ``permission`` label."""
        try:
            return cls(value)
        except ValueError as e:
            raise QueryError(f"Unknown permission label from database: {value!r}") from e


def _dump(record: Dict[str, Any]) -> str:
    try:
        return json.dumps(record)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Could not serialize record: {e}") from e


@dataclass
class Token:
    """Stored API token."""

    id: int
    token: str
    permissions: Permission
    userid: int

    def to_dict(self) -> Dict[str, Any]:
        """Exchange representation with the stored column names."""
        try:
            return {
                "id": self.id,
                "token": self.token,
                "permissions": Permission(self.permissions).value,
                "userid": self.userid,
            }
        except ValueError as e:
            raise SerializationError(f"Could not serialize token {self.id}: {e}") from e

    def to_json(self) -> str:
        return _dump(self.to_dict())


@dataclass
class Ban:
    """Stored ban. ``id`` is the banned user's id."""

    id: int
    reason: str
    date: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Exchange representation with the stored column names."""
        try:
            return {"id": self.id, "reason": self.reason, "date": self.date.isoformat()}
        except AttributeError as e:
            raise SerializationError(f"Could not serialize ban {self.id}: {e}") from e

    def to_json(self) -> str:
        return _dump(self.to_dict())


class TokenStore(ABC):
    """Abstract interface for storing tokens and bans.

    Implementations own exactly one database connection and hand out
    value copies only.
    """

    def __init__(self, config: Config):
        self.config = config

    async def __aenter__(self) -> "TokenStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @abstractmethod
    async def ensure_schema(self) -> None:
        """Create the ``banlist`` table, ``permission`` type and ``tokens`` table if missing."""
        pass

    async def ensure_genesis_token(self, root_owner_id: Optional[int] = None) -> Optional[str]:
        """Create the id 1 Root token if it does not exist yet.

        ``ensure_schema`` keeps id 1 out of the regular id sequence, so the
        genesis row is always inserted with that id explicitly.

        Args:
            root_owner_id: Owner of the genesis token, defaults to ``config.master_id``

        Returns:
            The plaintext secret when a token was created, None otherwise

        Raises:
            QueryError: If id 1 is held by a token without Root permission
        """
        logger.debug("Checking if genesis token exists")
        existing = await self.get_token_by_id(GENESIS_TOKEN_ID)
        if existing is not None:
            if existing.permissions != Permission.ROOT:
                raise QueryError(
                    f"Token id {GENESIS_TOKEN_ID} is reserved for the genesis Root token "
                    f"but has permission {existing.permissions.value}"
                )
            logger.debug("Genesis token exists. Skipping creation.")
            return None

        owner = self.config.master_id if root_owner_id is None else root_owner_id
        logger.info(
            f"Genesis token doesn't exist. Creating one (size={self.config.token_size}, owner={owner})"
        )
        secret = generate_secret(self.config.token_size)
        await self._insert_token(secret, Permission.ROOT, owner, token_id=GENESIS_TOKEN_ID)
        logger.warning(
            f"Created genesis token `{secret}`. Write this down, this will be the only time you see it."
        )
        return secret

    @abstractmethod
    async def list_tokens(self) -> List[Token]:
        """Return every token in storage order."""
        pass

    @abstractmethod
    async def get_token_by_id(self, token_id: int) -> Optional[Token]:
        """Retrieve a token by its numeric id.

        Returns:
            Token if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_token_by_secret(self, secret: str) -> Optional[Token]:
        """Retrieve a token by its secret value.

        Returns:
            Token if found, None otherwise
        """
        pass

    async def create_token(self, permission: Permission, owner_user_id: int) -> str:
        """Issue a new token.

        Args:
            permission: Access level of the new token
            owner_user_id: User the token belongs to

        Returns:
            The plaintext secret, ``config.token_size`` characters long

        Raises:
            UniquenessError: If the generated secret already exists
        """
        secret = generate_secret(self.config.token_size)
        logger.debug(f"Creating token (permission={permission.value}, userid={owner_user_id})")
        await self._insert_token(secret, permission, owner_user_id)
        return secret

    @abstractmethod
    async def _insert_token(
        self,
        secret: str,
        permission: Permission,
        owner_user_id: int,
        token_id: Optional[int] = None,
    ) -> None:
        """Insert a token row. ``token_id`` None lets the database assign the id."""
        pass

    @abstractmethod
    async def delete_token_by_id(self, token_id: int) -> None:
        """Delete a token. Missing ids are not an error."""
        pass

    @abstractmethod
    async def list_bans(self) -> List[Ban]:
        """Return every ban in storage order."""
        pass

    @abstractmethod
    async def get_ban(self, user_id: int) -> Optional[Ban]:
        """Retrieve the ban for a user.

        Returns:
            Ban if found, None otherwise
        """
        pass

    @abstractmethod
    async def upsert_ban(self, user_id: int, reason: str) -> None:
        """Ban a user, or refresh the reason and date of an existing ban.

        Runs as a single insert-or-update statement.
        """
        pass

    @abstractmethod
    async def delete_ban(self, user_id: int) -> None:
        """Lift a ban. Missing bans are not an error."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections/resources."""
        pass
