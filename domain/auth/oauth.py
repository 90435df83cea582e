"""
第三方 OAuth 提供方端口与标准化用户资料
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from domain.user.entity import AuthProvider


@dataclass(frozen=True)
class OAuthProfile:
    id: str
    email: str
    display_name: str
    avatar_url: Optional[str] = None


class OAuthProviderClient(ABC):
    provider: AuthProvider

    @abstractmethod
    def authorization_url(self, state: str) -> str:
        """构造跳转到提供方授权页的 URL"""

    @abstractmethod
    async def exchange_code(self, code: str) -> str:
        """授权码换取提供方 access token"""

    @abstractmethod
    async def fetch_profile(self, access_token: str) -> OAuthProfile:
        """读取并标准化用户资料"""

    async def authenticate(self, code: str) -> OAuthProfile:
        access_token = await self.exchange_code(code)
        return await self.fetch_profile(access_token)
