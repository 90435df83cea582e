"""Redis 客户端生命周期管理（进程内单例）"""
from __future__ import annotations

import asyncio
from typing import Optional

from redis import asyncio as aioredis

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)

_redis_client: Optional[aioredis.Redis] = None
_lock = asyncio.Lock()


async def init_redis_client(url: Optional[str] = None) -> aioredis.Redis:
    """初始化全局 Redis 客户端（带命令超时，超时即视为不可用）"""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    async with _lock:
        if _redis_client is not None:
            return _redis_client

        redis_url = url or settings.redis.url
        if not redis_url:
            raise RuntimeError("REDIS__URL 未配置，无法初始化会话存储")

        _redis_client = aioredis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.redis.max_connections,
            socket_timeout=settings.redis.socket_timeout,
            socket_connect_timeout=settings.redis.socket_connect_timeout,
        )
        logger.info("redis_client_initialized", max_connections=settings.redis.max_connections)
        return _redis_client


def set_redis_client(client: Optional[aioredis.Redis]) -> None:
    """替换全局客户端（测试中注入 fakeredis）"""
    global _redis_client
    _redis_client = client


async def get_redis_client() -> aioredis.Redis:
    """获取全局 Redis 客户端"""
    if _redis_client is None:
        return await init_redis_client()
    return _redis_client


async def shutdown_redis_client() -> None:
    """关闭Redis连接"""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
