"""
PostgreSQL Service Factory - Unified access to all PostgreSQL-backed services.

Provides a single entry point for initializing and accessing the account
store, audit sink, invalidation sink and seller-application store with a
shared connection pool.
"""
from typing import Any, Dict, Optional
import os

from src.utils.account_service import (
    AccountService,
    AuditLogService,
    SellerApplicationService,
    TokenInvalidationService,
)
from src.utils.connection_pool import ConnectionPool
from src.utils.env import read_secret
from src.utils.logging import get_logger
from src.utils.sql import SQL_CREATE_SCHEMA

logger = get_logger(__name__)


class PostgresServiceFactory:
    """
    Factory for creating PostgreSQL-backed services with shared connection pooling.

    Usage:
        factory = PostgresServiceFactory.from_config({
            'host': 'localhost',
            'port': 5432,
            'database': 'marketgate',
            'user': 'marketgate',
            'password': 'secret',
        })

        accounts = factory.account_service
        audit = factory.audit_log_service

        # Or create from existing pool
        factory = PostgresServiceFactory(connection_pool=existing_pool)
    """

    _instance: Optional['PostgresServiceFactory'] = None

    def __init__(
        self,
        connection_pool: Optional[ConnectionPool] = None,
        connection_params: Optional[Dict[str, Any]] = None,
    ):
        self._pool = connection_pool
        self._conn_params = connection_params

        # Lazy-initialized services
        self._account_service: Optional[AccountService] = None
        self._audit_log_service: Optional[AuditLogService] = None
        self._token_invalidation_service: Optional[TokenInvalidationService] = None
        self._seller_application_service: Optional[SellerApplicationService] = None

    @classmethod
    def from_config(
        cls,
        connection_params: Dict[str, Any],
        pool_min_conn: int = 1,
        pool_max_conn: int = 10,
    ) -> 'PostgresServiceFactory':
        """
        Create factory from connection parameters.

        Args:
            connection_params: Dict with host, port, database, user, password
            pool_min_conn: Minimum pool connections
            pool_max_conn: Maximum pool connections
        """
        pool = ConnectionPool(
            connection_params=connection_params,
            min_conn=pool_min_conn,
            max_conn=pool_max_conn,
        )
        return cls(connection_pool=pool, connection_params=connection_params)

    @classmethod
    def from_yaml_config(cls, config: Dict[str, Any]) -> 'PostgresServiceFactory':
        """Create factory from the services.postgres section of the deployment config."""
        db_config = config.get('services', {}).get('postgres', {})

        connection_params = {
            'host': db_config.get('host', 'localhost'),
            'port': db_config.get('port', 5432),
            'database': db_config.get('database', 'marketgate'),
            'user': db_config.get('user', 'marketgate'),
            'password': read_secret('PG_PASSWORD', ''),
        }

        pool_config = db_config.get('pool', {})

        return cls.from_config(
            connection_params=connection_params,
            pool_min_conn=pool_config.get('min_connections', 1),
            pool_max_conn=pool_config.get('max_connections', 10),
        )

    @classmethod
    def from_env(
        cls,
        *,
        password_override: Optional[str] = None,
        pool_min_conn: int = 1,
        pool_max_conn: int = 10,
    ) -> 'PostgresServiceFactory':
        """
        Create factory from environment variables (PGHOST, PGPORT, PGDATABASE, PGUSER, PG_PASSWORD).
        """
        host = os.environ.get('PGHOST', os.environ.get('POSTGRES_HOST', 'localhost'))
        port = int(os.environ.get('PGPORT', os.environ.get('POSTGRES_PORT', 5432)))
        database = os.environ.get('PGDATABASE', os.environ.get('POSTGRES_DB', 'marketgate'))
        user = os.environ.get('PGUSER', os.environ.get('POSTGRES_USER', 'marketgate'))
        password = password_override or read_secret('PG_PASSWORD') or os.environ.get('POSTGRES_PASSWORD', '')

        connection_params = {
            'host': host,
            'port': port,
            'database': database,
            'user': user,
            'password': password,
        }
        return cls.from_config(
            connection_params=connection_params,
            pool_min_conn=pool_min_conn,
            pool_max_conn=pool_max_conn,
        )

    @classmethod
    def get_instance(cls) -> Optional['PostgresServiceFactory']:
        """Get the singleton instance if initialized."""
        return cls._instance

    @classmethod
    def set_instance(cls, factory: 'PostgresServiceFactory') -> None:
        cls._instance = factory

    @property
    def connection_pool(self) -> ConnectionPool:
        if self._pool is None:
            if self._conn_params:
                self._pool = ConnectionPool(connection_params=self._conn_params)
            else:
                raise ValueError("No connection pool or params available")
        return self._pool

    @property
    def account_service(self) -> AccountService:
        if self._account_service is None:
            self._account_service = AccountService(self.connection_pool)
        return self._account_service

    @property
    def audit_log_service(self) -> AuditLogService:
        if self._audit_log_service is None:
            self._audit_log_service = AuditLogService(self.connection_pool)
        return self._audit_log_service

    @property
    def token_invalidation_service(self) -> TokenInvalidationService:
        if self._token_invalidation_service is None:
            self._token_invalidation_service = TokenInvalidationService(self.connection_pool)
        return self._token_invalidation_service

    @property
    def seller_application_service(self) -> SellerApplicationService:
        if self._seller_application_service is None:
            self._seller_application_service = SellerApplicationService(self.connection_pool)
        return self._seller_application_service

    def initialize_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        with self.connection_pool.get_connection_context() as conn:
            with conn.cursor() as cur:
                cur.execute(SQL_CREATE_SCHEMA)
        logger.info("Database schema initialized")

    def close(self) -> None:
        """Close connection pool and cleanup resources."""
        if self._pool:
            self._pool.close()
            self._pool = None

        self._account_service = None
        self._audit_log_service = None
        self._token_invalidation_service = None
        self._seller_application_service = None

    def __enter__(self) -> 'PostgresServiceFactory':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
