import logging
import sys

from sqlalchemy import create_engine

from .config import DATABASE_URL
from .tables import metadata

logger = logging.getLogger(__name__)


def _get_engine():
    if not DATABASE_URL:
        raise SystemExit("DATABASE_URL is not set")
    return create_engine(DATABASE_URL, future=True)


def run_migrations(engine=None):
    """Create any missing ledger tables. Safe to run repeatedly."""
    engine = engine or _get_engine()
    metadata.create_all(engine)
    logger.info("ledger schema up to date (%d tables)", len(metadata.tables))


def reset_db(engine=None):
    """
    Drop and recreate every ledger table.
    DESTRUCTIVE. Intended for dev/test only.
    """
    engine = engine or _get_engine()
    metadata.drop_all(engine)
    metadata.create_all(engine)
    logger.info("database reset complete")


def main():
    """
    Usage:
      python -m credibles.migrate        # create tables
      python -m credibles.migrate reset  # DROP + recreate tables
    """
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) > 1 and sys.argv[1] == "reset":
        reset_db()
        return

    run_migrations()


if __name__ == "__main__":
    main()
