"""PostgreSQL connection pooling for the passage index."""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from psycopg import Connection
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from vaultsearch.config import settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns a lazily opened, read-mostly connection pool."""

    def __init__(self, conninfo: Optional[str] = None):
        self._conninfo = conninfo
        self._pool: Optional[ConnectionPool] = None

    def initialize(self, min_size: int = 1, max_size: int = 4):
        """Open the connection pool."""
        if self._pool is not None:
            logger.warning("Connection pool already initialized")
            return

        logger.info("Initializing database connection pool (min=%s, max=%s)", min_size, max_size)

        self._pool = ConnectionPool(
            conninfo=self._conninfo or settings.database_url,
            min_size=min_size,
            max_size=max_size,
            timeout=30,
            kwargs={
                "row_factory": dict_row,
                "autocommit": True,
            },
        )

    def close(self):
        """Close connection pool."""
        if self._pool:
            logger.info("Closing database connection pool")
            self._pool.close()
            self._pool = None

    @contextmanager
    def get_connection(self) -> Generator[Connection, None, None]:
        """Borrow a connection from the pool."""
        if self._pool is None:
            self.initialize()

        with self._pool.connection() as conn:
            yield conn


# Global database manager instance
db = DatabaseManager()


@contextmanager
def get_db_connection() -> Generator[Connection, None, None]:
    """Convenience function to get a database connection."""
    with db.get_connection() as conn:
        yield conn
