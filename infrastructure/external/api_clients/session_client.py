"""
Posts API 会话客户端

基于 Cookie 的会话：登录后由 httpx 客户端保存 access_token / refresh_token。
请求返回 401 时刷新一次并重放原请求；并发请求同时遇到 401 时，
只发起一次刷新，其余调用方等待同一个刷新任务。
"""
import asyncio
from typing import Any, Dict, Optional

import httpx

from core.logging_config import get_logger
from .base import APIResponse, AuthenticationError, BaseAPIClient, HTTPMethod


logger = get_logger(__name__)


class SessionClient(BaseAPIClient):
    """
    使用示例::

        async with SessionClient("http://localhost:8000") as client:
            await client.login("user@example.com", "User123!")
            resp = await client.post("/posts", json_data={"title": "t", "content": "c"})
    """

    LOGIN_PATH = "/auth/login"
    REFRESH_PATH = "/auth/refresh"
    LOGOUT_PATH = "/auth/logout"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        max_retries: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        device_id: Optional[str] = None,
    ):
        headers = {"X-Device-Id": device_id} if device_id else None
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            headers=headers,
            transport=transport,
        )
        self._refresh_lock = asyncio.Lock()
        self._pending_refresh: Optional[asyncio.Task] = None
        # 每完成一次刷新（无论成败）加一；用于识别请求发出后是否已有刷新发生
        self._generation = 0
        self.refresh_count = 0

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        response = await super()._request(
            HTTPMethod.POST, self.LOGIN_PATH, json_data={"email": email, "password": password}
        )
        self._generation += 1
        return response.json()["data"]["user"]

    async def logout(self) -> None:
        await super()._request(HTTPMethod.POST, self.LOGOUT_PATH)

    async def _request(self, method, endpoint: str, **kwargs) -> APIResponse:
        seen_generation = self._generation
        try:
            return await super()._request(method, endpoint, **kwargs)
        except AuthenticationError as exc:
            if exc.status_code != 401:
                raise
        await self.refresh(seen_generation)
        return await super()._request(method, endpoint, **kwargs)

    async def refresh(self, seen_generation: Optional[int] = None) -> None:
        """
        刷新会话（单飞）

        seen_generation 为发起原请求时的代数；若此后已有刷新完成，直接重放即可。
        刷新失败时所有等待者都会收到同一个 AuthenticationError。
        """
        async with self._refresh_lock:
            if seen_generation is not None and seen_generation != self._generation:
                return
            if self._pending_refresh is None:
                self._pending_refresh = asyncio.ensure_future(self._do_refresh())
            pending = self._pending_refresh
        await pending

    async def _do_refresh(self) -> None:
        try:
            self.refresh_count += 1
            await super()._request(HTTPMethod.POST, self.REFRESH_PATH)
            logger.debug("session_refreshed", refresh_count=self.refresh_count)
        finally:
            self._generation += 1
            self._pending_refresh = None
