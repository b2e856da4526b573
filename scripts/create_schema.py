"""Create the DTR tables.

Usage:
    python scripts/create_schema.py [--database-url URL]
"""

from __future__ import annotations

import argparse
import asyncio

from dtr_engine.config import settings
from dtr_engine.database import create_schema, get_engine


async def run(database_url: str) -> None:
    engine = get_engine(database_url)
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()
    print("Schema created.")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Create the DTR database schema")
    parser.add_argument(
        "--database-url",
        type=str,
        default=settings.database_url,
        help="Database URL (default: from settings)",
    )

    args = parser.parse_args()

    asyncio.run(run(args.database_url))


if __name__ == "__main__":
    main()
