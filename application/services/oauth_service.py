"""
第三方登录编排：state 签发/消费、授权码交换、会话签发
"""
from typing import Callable, Optional, Tuple

from domain.auth.oauth import OAuthProviderClient
from domain.auth.session_store import OAuthStateStore
from domain.common.exceptions import UnauthorizedException
from domain.user.entity import AuthProvider
from application.dto import ClientInfoDTO, TokenDTO, UserResponseDTO
from application.services.auth_service import AuthApplicationService
from core.logging_config import get_logger


logger = get_logger(__name__)


class OAuthApplicationService:

    def __init__(
        self,
        auth_service: AuthApplicationService,
        state_store: OAuthStateStore,
        client_factory: Callable[[AuthProvider], OAuthProviderClient],
    ):
        self._auth = auth_service
        self._states = state_store
        self._client_factory = client_factory

    async def begin(self, provider: AuthProvider) -> str:
        """返回提供方授权页 URL；state 写入存储供回调校验"""
        client = self._client_factory(provider)
        state = await self._states.issue(provider.value)
        return client.authorization_url(state)

    async def complete(
        self,
        provider: AuthProvider,
        code: Optional[str],
        state: Optional[str],
        client_info: Optional[ClientInfoDTO] = None,
    ) -> Tuple[UserResponseDTO, TokenDTO]:
        if not code:
            raise UnauthorizedException("OAuth authorization code missing")
        client = self._client_factory(provider)
        if not state or not await self._states.consume(provider.value, state):
            logger.warning("oauth_state_rejected", provider=provider.value)
            raise UnauthorizedException("Invalid OAuth state")

        profile = await client.authenticate(code)
        return await self._auth.oauth_login(provider, profile, client_info)
