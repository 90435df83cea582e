"""OAuth 提供方客户端注册表"""
from typing import Dict, Optional, Type

import httpx

from core.config import settings
from domain.common.exceptions import ServiceUnavailableException
from domain.user.entity import AuthProvider
from .base import OAuth2Client, OAuthExchangeError
from .providers import GitHubOAuthClient, GoogleOAuthClient, KakaoOAuthClient


PROVIDER_CLIENTS: Dict[AuthProvider, Type[OAuth2Client]] = {
    AuthProvider.GOOGLE: GoogleOAuthClient,
    AuthProvider.GITHUB: GitHubOAuthClient,
    AuthProvider.KAKAO: KakaoOAuthClient,
}


def build_oauth_client(
    provider: AuthProvider,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> OAuth2Client:
    """按配置构建客户端；未配置的提供方返回 503"""
    config = getattr(settings.oauth, provider.value.lower())
    if not config.configured:
        raise ServiceUnavailableException(
            f"oauth:{provider.value.lower()}",
            f"{provider.value.capitalize()} login is not configured",
        )
    return PROVIDER_CLIENTS[provider](config, transport=transport)


__all__ = [
    "OAuth2Client",
    "OAuthExchangeError",
    "GoogleOAuthClient",
    "GitHubOAuthClient",
    "KakaoOAuthClient",
    "PROVIDER_CLIENTS",
    "build_oauth_client",
]
