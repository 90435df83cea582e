"""
各 OAuth 提供方实现：Google / GitHub / Kakao
"""
from typing import Any, Dict, Optional

from domain.auth.oauth import OAuthProfile
from domain.user.entity import AuthProvider
from infrastructure.external.api_clients.base import APIError
from core.logging_config import get_logger
from .base import OAuth2Client, OAuthExchangeError


logger = get_logger(__name__)


class GoogleOAuthClient(OAuth2Client):
    provider = AuthProvider.GOOGLE
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    profile_endpoint = "https://www.googleapis.com/oauth2/v2/userinfo"
    scope = "openid email profile"

    async def _parse_profile(self, data: Dict[str, Any], access_token: str) -> OAuthProfile:
        external_id = str(data.get("id") or data.get("sub") or "")
        if not external_id:
            raise OAuthExchangeError(self.provider, "OAuth profile has no id")
        return OAuthProfile(
            id=external_id,
            email=data.get("email") or self._fallback_email(external_id),
            display_name=data.get("name") or self._fallback_name(),
            avatar_url=data.get("picture"),
        )


class GitHubOAuthClient(OAuth2Client):
    provider = AuthProvider.GITHUB
    authorize_endpoint = "https://github.com/login/oauth/authorize"
    token_endpoint = "https://github.com/login/oauth/access_token"
    profile_endpoint = "https://api.github.com/user"
    emails_endpoint = "https://api.github.com/user/emails"
    scope = "user:email"

    @property
    def provider_label(self) -> str:
        return "GitHub"

    async def _primary_email(self, access_token: str) -> Optional[str]:
        """资料中无公开邮箱时读取 /user/emails 的主邮箱"""
        try:
            response = await self.get(
                self.emails_endpoint,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except APIError as exc:
            logger.warning("github_emails_unavailable", error=str(exc))
            return None
        emails = response.data if isinstance(response.data, list) else []
        for item in emails:
            if isinstance(item, dict) and item.get("primary") and item.get("verified"):
                return item.get("email")
        return None

    async def _parse_profile(self, data: Dict[str, Any], access_token: str) -> OAuthProfile:
        external_id = str(data.get("id") or "")
        if not external_id:
            raise OAuthExchangeError(self.provider, "OAuth profile has no id")
        email = data.get("email") or await self._primary_email(access_token)
        return OAuthProfile(
            id=external_id,
            email=email or self._fallback_email(external_id),
            display_name=data.get("name") or data.get("login") or self._fallback_name(),
            avatar_url=data.get("avatar_url"),
        )


class KakaoOAuthClient(OAuth2Client):
    provider = AuthProvider.KAKAO
    authorize_endpoint = "https://kauth.kakao.com/oauth/authorize"
    token_endpoint = "https://kauth.kakao.com/oauth/token"
    profile_endpoint = "https://kapi.kakao.com/v2/user/me"
    scope = "account_email profile_nickname profile_image"

    async def _parse_profile(self, data: Dict[str, Any], access_token: str) -> OAuthProfile:
        external_id = str(data.get("id") or "")
        if not external_id:
            raise OAuthExchangeError(self.provider, "OAuth profile has no id")
        account = data.get("kakao_account") or {}
        profile = account.get("profile") or {}
        properties = data.get("properties") or {}
        return OAuthProfile(
            id=external_id,
            email=account.get("email") or self._fallback_email(external_id),
            display_name=profile.get("nickname") or properties.get("nickname") or self._fallback_name(),
            avatar_url=profile.get("profile_image_url") or properties.get("profile_image"),
        )
