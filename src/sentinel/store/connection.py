"""Aurora DSQL connections with IAM authentication.

DSQL passwords are short-lived IAM tokens, so pools take a callable and
mint a fresh token for every new connection.
"""

import logging

import asyncpg
import boto3

logger = logging.getLogger("sentinel.store.connection")


def get_dsql_token(endpoint: str, region: str) -> str:
    """Generate IAM auth token for DSQL."""
    client = boto3.client("dsql", region_name=region)
    return client.generate_db_connect_admin_auth_token(endpoint, region)


async def connect(endpoint: str, database: str, region: str) -> asyncpg.Connection:
    """Open a single connection to DSQL with IAM auth."""
    return await asyncpg.connect(
        host=endpoint,
        port=5432,
        user="admin",
        password=get_dsql_token(endpoint, region),
        database=database,
        ssl="require",
    )


async def _dsql_reset_connection(conn: asyncpg.Connection) -> None:
    """Connection reset without pg_advisory_unlock_all (unsupported on DSQL)."""
    await conn.execute("""
        RESET ALL;
        DEALLOCATE ALL;
    """)


async def create_pool(
    endpoint: str,
    database: str,
    region: str,
    *,
    min_size: int = 1,
    max_size: int = 5,
) -> asyncpg.Pool:
    """Create a DSQL pool that refreshes the IAM token per connection."""
    logger.info("Creating DSQL pool for %s/%s", endpoint, database)
    return await asyncpg.create_pool(
        host=endpoint,
        port=5432,
        user="admin",
        password=lambda: get_dsql_token(endpoint, region),
        database=database,
        ssl="require",
        min_size=min_size,
        max_size=max_size,
        statement_cache_size=0,
        reset=_dsql_reset_connection,
    )
