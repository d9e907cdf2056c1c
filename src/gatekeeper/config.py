"""Configuration management for Gatekeeper."""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

BACKENDS = ("postgres", "sqlite")


@dataclass
class DatabaseConfig:
    """Database connection configuration."""

    name: str = ""
    username: str = ""
    password: str = ""
    host: str = "localhost"
    port: int = 5432
    sqlite_path: str = "./data/gatekeeper.db"


@dataclass
class Config:
    """Application configuration from environment variables."""

    # Owner of the genesis Root token
    master_id: int

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    backend: str = "postgres"
    application_name: str = "gatekeeper"

    # Length of generated token secrets
    token_size: int = 32

    # Logging
    log_level: str = "INFO"
    log_format: str = "dev"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables with validation."""
        missing = []
        invalid = []

        backend = os.getenv("DATABASE_BACKEND", "postgres").lower()
        if backend not in BACKENDS:
            invalid.append(f"DATABASE_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}")

        # Required variables
        required_vars = {"MASTER_ID": "master_id"}
        if backend == "postgres":
            required_vars.update(
                {
                    "DATABASE_NAME": "name",
                    "DATABASE_USERNAME": "username",
                    "DATABASE_PASSWORD": "password",
                }
            )

        values = {}
        for env_var, field_name in required_vars.items():
            value = os.getenv(env_var)
            if not value:
                missing.append(env_var)
            else:
                values[field_name] = value

        def _int(env_var: str, raw: Optional[str]) -> Optional[int]:
            try:
                return int(raw)
            except (TypeError, ValueError):
                invalid.append(f"{env_var} must be an integer, got {raw!r}")
                return None

        master_id = _int("MASTER_ID", values["master_id"]) if "master_id" in values else None
        port = _int("DATABASE_PORT", os.getenv("DATABASE_PORT", "5432"))
        token_size = _int("TOKEN_SIZE", os.getenv("TOKEN_SIZE", "32"))
        if token_size is not None and token_size <= 0:
            invalid.append(f"TOKEN_SIZE must be positive, got {token_size}")

        problems = []
        if missing:
            problems.append(f"Missing required environment variables: {', '.join(missing)}")
        problems.extend(invalid)
        if problems:
            raise ValueError(
                "Invalid configuration:\n"
                + "\n".join(problems)
                + "\nPlease check your .env file or environment configuration."
            )

        database = DatabaseConfig(
            name=values.get("name", ""),
            username=values.get("username", ""),
            password=values.get("password", ""),
            host=os.getenv("DATABASE_HOST", "localhost"),
            port=port,
            sqlite_path=os.getenv("SQLITE_PATH", "./data/gatekeeper.db"),
        )

        return cls(
            master_id=master_id,
            database=database,
            backend=backend,
            application_name=os.getenv("APPLICATION_NAME", "gatekeeper"),
            token_size=token_size,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "dev"),
        )


# Global config instance (lazy loaded)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config
