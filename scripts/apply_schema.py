#!/usr/bin/env python3
"""Apply the Sentinel DSQL schema from the host machine.

Usage:
    uv run python scripts/apply_schema.py

Reads SENTINEL_DSQL_ENDPOINT, SENTINEL_DSQL_DATABASE and
SENTINEL_AWS_REGION from the environment (see SentinelConfig).
Each DDL statement runs in its own transaction (DSQL requirement).
Idempotent - safe to run multiple times.
"""

import asyncio
import sys

from pydantic import ValidationError

from sentinel.cli.db import SCHEMA_PATH, split_statements
from sentinel.models import SentinelConfig
from sentinel.store import connect


async def main() -> None:
    try:
        config = SentinelConfig()
    except ValidationError as e:
        print(f"ERROR: invalid configuration: {e}")
        sys.exit(1)

    print(f"Endpoint: {config.dsql_endpoint}")
    print(f"Database: {config.dsql_database}")
    print(f"Region:   {config.aws_region}")

    statements = split_statements(SCHEMA_PATH.read_text())
    conn = await connect(config.dsql_endpoint, config.dsql_database, config.aws_region)
    try:
        for i, stmt in enumerate(statements, 1):
            first_line = stmt.splitlines()[0]
            print(f"  [{i}/{len(statements)}] {first_line}")
            await conn.execute(stmt)
    finally:
        await conn.close()

    print("Schema applied.")


if __name__ == "__main__":
    asyncio.run(main())
