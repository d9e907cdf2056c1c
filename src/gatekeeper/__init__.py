"""Gatekeeper: persistence for API tokens and user bans.

Public API:
    - SyncTokenStore: Blocking store for sync callers
    - TokenStore: Abstract async storage interface
    - PostgresTokenStore: PostgreSQL implementation
    - SQLiteTokenStore: SQLite implementation
    - Token, Ban: Stored records
    - Permission: Token access levels
    - Config, DatabaseConfig: Configuration
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("gatekeeper")
except PackageNotFoundError:
    # Package not installed, use development version
    __version__ = "0.0.0.dev"

from .core import SyncTokenStore

# Storage interfaces and implementations
from .storage import PostgresTokenStore, SQLiteTokenStore, TokenStore
from .storage.base import Ban, Permission, Token

# Errors
from .errors import (
    DatabaseConnectionError,
    GatekeeperError,
    QueryError,
    SchemaError,
    SerializationError,
    UniquenessError,
)

# Configuration
from .config import Config, DatabaseConfig

__all__ = [
    # Version
    "__version__",
    # Storage
    "SyncTokenStore",
    "TokenStore",
    "PostgresTokenStore",
    "SQLiteTokenStore",
    "Token",
    "Ban",
    "Permission",
    # Errors
    "GatekeeperError",
    "DatabaseConnectionError",
    "SchemaError",
    "QueryError",
    "UniquenessError",
    "SerializationError",
    # Configuration
    "Config",
    "DatabaseConfig",
]
