"""Utility script to manage the configured database."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from wallet_sso.core.settings import settings
from wallet_sso.db.session import drop_tables
from wallet_sso.services.container import ServiceContainer

logger = logging.getLogger(__name__)


async def _run(command: str) -> None:
    container = ServiceContainer.build(settings)
    await container.start(run_maintenance=False)
    try:
        if command == "create":
            print(f"Tables ready at {settings.database_url}")
        elif command == "drop":
            await drop_tables(container.pool)
            print(f"Dropped tables at {settings.database_url}")
        elif command == "cleanup":
            removed = await container.run_maintenance()
            for name, count in removed.items():
                print(f"{name}: removed {count}")
        elif command == "stats":
            stats = await container.stats()
            print(f"challenges: {stats['challenges'].model_dump()}")
            print(f"sessions: {stats['sessions'].model_dump()}")
    finally:
        await container.stop()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Manage the Wallet SSO database.")
    parser.add_argument(
        "command",
        choices=("create", "drop", "cleanup", "stats"),
        help="create tables, drop tables, run the maintenance sweep once, or print counters",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(_run(args.command))
    except Exception as exc:
        logger.error("Database command %s failed: %s", args.command, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
