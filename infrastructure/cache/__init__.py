"""缓存层对外暴露的接口"""
from .redis_client import (
    init_redis_client,
    get_redis_client,
    set_redis_client,
    shutdown_redis_client,
)
from .session_store import RedisOAuthStateStore, RedisSessionStore

__all__ = [
    "init_redis_client",
    "get_redis_client",
    "set_redis_client",
    "shutdown_redis_client",
    "RedisSessionStore",
    "RedisOAuthStateStore",
]
