#!/usr/bin/env python3
"""Create tables and seed roles, permissions and (optionally) demo accounts.

Usage:
    python scripts/seed.py            # roles + permissions
    python scripts/seed.py --demo     # plus admin@example.com / user@example.com
    python scripts/seed.py --reset    # drop every table first (local development only)
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.logging_config import get_logger  # noqa: E402
from infrastructure.database import create_tables, drop_tables, engine  # noqa: E402
from infrastructure.seed import seed_demo_users, seed_rbac  # noqa: E402
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork  # noqa: E402


logger = get_logger("scripts.seed")


async def run(with_demo: bool, reset: bool = False) -> int:
    if reset:
        await drop_tables()
        logger.warning("tables_dropped")
    await create_tables()
    async with SQLAlchemyUnitOfWork() as uow:
        await seed_rbac(uow)
        if with_demo:
            created = await seed_demo_users(uow)
            logger.info("demo_users_seeded", created=created)
    await engine.dispose()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--demo", action="store_true", help="also create demo accounts")
    parser.add_argument("--reset", action="store_true", help="drop all tables before seeding")
    args = parser.parse_args()
    return asyncio.run(run(args.demo, args.reset))


if __name__ == "__main__":
    sys.exit(main())
