#!/usr/bin/env python3
"""Delete refresh-token records that expired more than N days ago.

Usage:
    python scripts/cleanup_tokens.py              # everything already expired
    python scripts/cleanup_tokens.py --days 30    # keep the last 30 days for auditing
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from application.services.auth_service import AuthApplicationService  # noqa: E402
from core.logging_config import get_logger  # noqa: E402
from infrastructure.cache import RedisSessionStore, init_redis_client, shutdown_redis_client  # noqa: E402
from infrastructure.database import engine  # noqa: E402
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork  # noqa: E402


logger = get_logger("scripts.cleanup_tokens")


async def run(days: int) -> int:
    redis = await init_redis_client()
    try:
        service = AuthApplicationService(SQLAlchemyUnitOfWork, RedisSessionStore(redis))
        removed = await service.cleanup_expired_tokens(days_before=days)
    finally:
        await shutdown_redis_client()
        await engine.dispose()
    logger.info("cleanup_finished", removed=removed, days_before=days)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--days", type=int, default=0, help="only delete tokens expired before now - DAYS")
    args = parser.parse_args()
    if args.days < 0:
        parser.error("--days must be >= 0")
    return asyncio.run(run(args.days))


if __name__ == "__main__":
    sys.exit(main())
