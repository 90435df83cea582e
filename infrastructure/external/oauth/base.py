"""
OAuth2 授权码流程客户端基类（基于 BaseAPIClient 的 httpx + tenacity 实现）
"""
from abc import abstractmethod
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from core.config import OAuthProviderSettings, settings
from domain.auth.oauth import OAuthProfile, OAuthProviderClient
from domain.common.exceptions import UnauthorizedException
from domain.user.entity import AuthProvider
from infrastructure.external.api_clients.base import APIError, BaseAPIClient


class OAuthExchangeError(UnauthorizedException):
    def __init__(self, provider: AuthProvider, message: str = "OAuth authentication failed"):
        super().__init__(message, error_type="OAuthFailed")
        self.details = {"provider": provider.value}


class OAuth2Client(BaseAPIClient, OAuthProviderClient):
    """
    子类提供端点常量并实现 ``_parse_profile``。

    提供方拒绝授权码或令牌时抛出 OAuthExchangeError（401）；
    网络错误与 5xx 在重试耗尽后同样作为认证失败处理。
    """

    provider: AuthProvider
    authorize_endpoint: str
    token_endpoint: str
    profile_endpoint: str
    scope: str = ""

    def __init__(
        self,
        config: OAuthProviderSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            timeout=settings.oauth.timeout,
            max_retries=settings.oauth.max_retries,
            retry_delay=0.2,
            transport=transport,
        )
        self.config = config

    @property
    def provider_label(self) -> str:
        return self.provider.value.capitalize()

    def authorization_url(self, state: str) -> str:
        query = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.callback_url,
            "response_type": "code",
            "state": state,
        }
        if self.scope:
            query["scope"] = self.scope
        return f"{self.authorize_endpoint}?{urlencode(query)}"

    async def exchange_code(self, code: str) -> str:
        try:
            response = await self.post(
                self.token_endpoint,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "redirect_uri": self.config.callback_url,
                },
            )
        except APIError as exc:
            raise OAuthExchangeError(self.provider, "OAuth code exchange failed") from exc

        payload = response.data if isinstance(response.data, dict) else {}
        token = payload.get("access_token")
        if not token:
            # GitHub 以 200 + error 字段返回失败
            raise OAuthExchangeError(self.provider, "OAuth code exchange failed")
        return token

    async def fetch_profile(self, access_token: str) -> OAuthProfile:
        try:
            response = await self.get(
                self.profile_endpoint,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except APIError as exc:
            raise OAuthExchangeError(self.provider, "OAuth profile request failed") from exc
        if not isinstance(response.data, dict):
            raise OAuthExchangeError(self.provider, "OAuth profile response is not JSON")
        return await self._parse_profile(response.data, access_token)

    @abstractmethod
    async def _parse_profile(self, data: Dict[str, Any], access_token: str) -> OAuthProfile:
        """把提供方原始资料转换为 OAuthProfile"""

    def _fallback_email(self, external_id: str) -> str:
        return f"{external_id}@{self.provider.value.lower()}.placeholder.com"

    def _fallback_name(self) -> str:
        return f"{self.provider_label} User"


