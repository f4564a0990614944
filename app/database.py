import asyncpg
from contextlib import asynccontextmanager
from app.config import settings
from app.core.exceptions import DatabaseError
import logging

logger = logging.getLogger(__name__)

POOL_MIN_SIZE = 5
POOL_MAX_SIZE = 30

# Sessions run in UTC; token expiry compares NOW() with aware UTC datetimes
SERVER_SETTINGS = {
    "application_name": "gladiatorrx-api",
    "timezone": "UTC",
}


class DatabasePool:
    _pool = None

    @classmethod
    async def create_pool(cls):
        if cls._pool is None:
            try:
                cls._pool = await asyncpg.create_pool(
                    **settings.db_connection_params,
                    min_size=POOL_MIN_SIZE,
                    max_size=POOL_MAX_SIZE,
                    max_inactive_connection_lifetime=300,
                    command_timeout=60,
                    timeout=30,
                    server_settings=SERVER_SETTINGS
                )
                logger.info(
                    f"Database pool created: {settings.db_name}@{settings.db_host} "
                    f"({POOL_MIN_SIZE}-{POOL_MAX_SIZE} connections)"
                )
            except Exception as e:
                logger.error(f"Failed to create database pool: {e}")
                raise DatabaseError("Database unavailable") from e
        return cls._pool

    @classmethod
    async def close_pool(cls):
        if cls._pool:
            await cls._pool.close()
            cls._pool = None
            logger.info("Database pool closed")


@asynccontextmanager
async def get_db_connection(use_transaction: bool = True):
    """
    Pooled connection, inside a transaction unless use_transaction is False.

    Token claims (UPDATE ... RETURNING) and the rows created after them share
    this connection, so any failure after a claim rolls the claim back.
    Nested `conn.transaction()` blocks become savepoints.

        async with get_db_connection() as conn:
            row = await conn.fetchrow("SELECT * FROM invitations WHERE token = $1", token)
    """
    pool = await DatabasePool.create_pool()
    async with pool.acquire() as connection:
        if use_transaction:
            async with connection.transaction():
                yield connection
        else:
            yield connection


async def ping() -> bool:
    """True when the database answers a trivial query"""
    try:
        async with get_db_connection(use_transaction=False) as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (DatabaseError, asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
        logger.warning(f"Database health check failed: {e}")
        return False
