"""Main entry point for Gatekeeper.

Prepares the database for the service: creates the schema and the
genesis token if they are missing.
"""

import sys

from .config import get_config
from .core import SyncTokenStore
from .errors import GatekeeperError
from .logging import get_logger, setup_logging

logger = get_logger("main")


def main() -> int:
    """Main entry point."""
    try:
        config = get_config()
    except ValueError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logging(config.log_level, "structured" if config.log_format == "structured" else "dev")

    try:
        with SyncTokenStore.connect(config) as store:
            store.ensure_schema()
            store.ensure_genesis_token()
    except GatekeeperError as e:
        logger.error(f"Database setup failed: {e}")
        return 1

    logger.info("Database ready")
    return 0


if __name__ == "__main__":
    sys.exit(main())
