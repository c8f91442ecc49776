"""
Thread-safe PostgreSQL connection pool shared by the Postgres-backed services.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

import psycopg2
import psycopg2.extensions
import psycopg2.pool

from src.utils.logging import get_logger

logger = get_logger(__name__)


class ConnectionPoolError(Exception):
    """Raised when the pool cannot be created or used."""
    pass


class ConnectionTimeoutError(ConnectionPoolError):
    """Raised when no connection becomes available in time."""
    pass


class ConnectionPool:
    """
    Wrapper around psycopg2's ThreadedConnectionPool.

    Usage:
        pool = ConnectionPool(connection_params={'host': 'localhost', ...})
        with pool.get_connection_context() as conn:
            with conn.cursor() as cur:
                ...
    """

    _instance: Optional['ConnectionPool'] = None
    _instance_lock = threading.Lock()

    def __init__(
        self,
        connection_params: Optional[Dict[str, Any]] = None,
        pg_config: Optional[Dict[str, Any]] = None,
        min_conn: int = 1,
        max_conn: int = 10,
        acquire_timeout: float = 10.0,
    ):
        params = connection_params or pg_config
        if not params:
            raise ValueError("Either pg_config or connection_params must be provided")

        self._params = dict(params)
        self._acquire_timeout = acquire_timeout
        try:
            self._pool = psycopg2.pool.ThreadedConnectionPool(min_conn, max_conn, **self._params)
        except psycopg2.OperationalError as e:
            raise ConnectionPoolError(f"Could not create connection pool: {e}") from e

        logger.info(
            f"Connection pool created for {self._params.get('host')}:{self._params.get('port')}"
            f"/{self._params.get('database')} (min={min_conn}, max={max_conn})"
        )

    @classmethod
    def get_instance(cls, **kwargs) -> 'ConnectionPool':
        """Get (or lazily create) the process-wide pool."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls(**kwargs)
            return cls._instance

    def get_connection(self) -> psycopg2.extensions.connection:
        """Check out a connection, waiting up to acquire_timeout seconds."""
        if self._pool is None:
            raise ConnectionPoolError("Connection pool is closed")

        deadline = time.monotonic() + self._acquire_timeout
        while True:
            try:
                return self._pool.getconn()
            except psycopg2.pool.PoolError:
                if time.monotonic() >= deadline:
                    raise ConnectionTimeoutError(
                        f"No database connection available after {self._acquire_timeout}s"
                    )
                time.sleep(0.05)

    def release_connection(self, conn: psycopg2.extensions.connection) -> None:
        if self._pool is not None:
            self._pool.putconn(conn)

    @contextmanager
    def get_connection_context(self) -> Generator[psycopg2.extensions.connection, None, None]:
        """Connection that commits on success and rolls back on error."""
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.release_connection(conn)

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("Connection pool closed")
