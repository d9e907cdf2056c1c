"""Error taxonomy for the token and ban store."""


class GatekeeperError(Exception):
    """Base class for all store errors."""


class DatabaseConnectionError(GatekeeperError):
    """The database link could not be established or is no longer usable."""


class SchemaError(GatekeeperError):
    """A DDL statement failed while setting up the schema."""


class QueryError(GatekeeperError):
    """A statement failed to execute (constraint violation, bad type, ...)."""


class UniquenessError(QueryError):
    """A unique or primary key constraint rejected the write."""


class SerializationError(GatekeeperError):
    """A record could not be converted to its exchange representation."""
