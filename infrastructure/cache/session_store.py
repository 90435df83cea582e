"""Redis 会话存储与 OAuth state 存储

键空间（均带命名空间前缀）：
- ``<ns>:refresh_token:<sha256>`` -> 用户ID，TTL 等于刷新令牌有效期
- ``<ns>:oauth_state:<provider>:<state>`` -> "1"，TTL 为 OAUTH__STATE_TTL

任何 Redis 错误（含超时）都转换为 ServiceUnavailableException，调用方据此拒绝请求。
"""
from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from core.config import settings
from core.logging_config import get_logger
from domain.auth.session_store import OAuthStateStore, SessionStore
from domain.common.exceptions import ServiceUnavailableException


logger = get_logger(__name__)

REFRESH_TOKEN_PREFIX = "refresh_token"
OAUTH_STATE_PREFIX = "oauth_state"
SCAN_BATCH = 200


@asynccontextmanager
async def _store_errors(operation: str):
    try:
        yield
    except RedisError as exc:
        logger.error("session_store_unavailable", operation=operation, error=str(exc))
        raise ServiceUnavailableException("session_store", "Session store is unavailable") from exc


class _NamespacedStore:
    def __init__(self, client: aioredis.Redis, namespace: Optional[str] = None) -> None:
        self._client = client
        ns = settings.redis.namespace if namespace is None else namespace
        self._namespace = ns.strip(":")

    def _format_key(self, *parts: str) -> str:
        key = ":".join(parts)
        if not self._namespace:
            return key
        return f"{self._namespace}:{key}"


class RedisSessionStore(_NamespacedStore, SessionStore):
    """refresh 令牌哈希 -> 用户ID 的快速指针"""

    def _key(self, token_hash: str) -> str:
        return self._format_key(REFRESH_TOKEN_PREFIX, token_hash)

    async def put(self, token_hash: str, user_id: int, ttl_seconds: int) -> None:
        async with _store_errors("put"):
            await self._client.set(self._key(token_hash), str(user_id), ex=max(int(ttl_seconds), 1))

    async def get(self, token_hash: str) -> Optional[int]:
        async with _store_errors("get"):
            value = await self._client.get(self._key(token_hash))
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            # 无法解析的指针视为不存在，由上层拒绝
            logger.warning("session_pointer_malformed")
            return None

    async def delete(self, token_hash: str) -> None:
        async with _store_errors("delete"):
            await self._client.delete(self._key(token_hash))

    async def revoke_all_for_user(self, user_id: int) -> int:
        """SCAN 全部指针并删除属于该用户的键；复杂度与活跃会话总数成正比"""
        target = str(user_id)
        pattern = self._format_key(REFRESH_TOKEN_PREFIX, "*")
        removed = 0
        async with _store_errors("revoke_all"):
            batch: list[str] = []
            async for key in self._client.scan_iter(match=pattern, count=SCAN_BATCH):
                batch.append(key)
                if len(batch) >= SCAN_BATCH:
                    removed += await self._delete_owned(batch, target)
                    batch = []
            if batch:
                removed += await self._delete_owned(batch, target)
        logger.info("session_pointers_revoked", user_id=user_id, count=removed)
        return removed

    async def _delete_owned(self, keys: list[str], owner: str) -> int:
        values = await self._client.mget(keys)
        owned = [key for key, value in zip(keys, values) if value == owner]
        if not owned:
            return 0
        return int(await self._client.delete(*owned))


class RedisOAuthStateStore(_NamespacedStore, OAuthStateStore):
    """OAuth state：签发后写入，回调时 GETDEL 一次性消费"""

    def __init__(self, client: aioredis.Redis, namespace: Optional[str] = None, ttl_seconds: Optional[int] = None) -> None:
        super().__init__(client, namespace)
        self._ttl = ttl_seconds or settings.oauth.state_ttl

    async def issue(self, provider: str) -> str:
        state = secrets.token_urlsafe(32)
        async with _store_errors("oauth_state_issue"):
            await self._client.set(self._format_key(OAUTH_STATE_PREFIX, provider, state), "1", ex=self._ttl)
        return state

    async def consume(self, provider: str, state: str) -> bool:
        if not state:
            return False
        async with _store_errors("oauth_state_consume"):
            value = await self._client.getdel(self._format_key(OAUTH_STATE_PREFIX, provider, state))
        return value is not None
