"""
API依赖项 - 认证、授权与服务装配
"""
from typing import Callable, Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from redis import asyncio as aioredis

from api.access import requirement_for
from application.dto import ClientInfoDTO
from application.services.access_control import AccessControlService
from application.services.auth_service import AuthApplicationService
from application.services.oauth_service import OAuthApplicationService
from application.services.post_service import PostApplicationService
from application.services.token_service import TokenService
from core.config import settings
from domain.auth.identity import Identity
from domain.auth.oauth import OAuthProviderClient
from domain.common.exceptions import UnauthorizedException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.user.entity import AuthProvider
from infrastructure.cache import RedisOAuthStateStore, RedisSessionStore, get_redis_client
from infrastructure.external.oauth import build_oauth_client
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


# HTTP Bearer for direct API calls (cookie 优先)
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)

DEVICE_ID_HEADER = "X-Device-Id"

_token_service = TokenService()


def get_uow_factory() -> Callable[..., AbstractUnitOfWork]:
    return SQLAlchemyUnitOfWork


def get_token_service() -> TokenService:
    return _token_service


async def get_redis() -> aioredis.Redis:
    return await get_redis_client()


def get_oauth_client_factory() -> Callable[[AuthProvider], OAuthProviderClient]:
    return build_oauth_client


async def get_auth_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    redis: aioredis.Redis = Depends(get_redis),
    tokens: TokenService = Depends(get_token_service),
) -> AuthApplicationService:
    return AuthApplicationService(uow_factory, RedisSessionStore(redis), tokens)


async def get_oauth_service(
    auth_service: AuthApplicationService = Depends(get_auth_service),
    redis: aioredis.Redis = Depends(get_redis),
    client_factory: Callable[[AuthProvider], OAuthProviderClient] = Depends(get_oauth_client_factory),
) -> OAuthApplicationService:
    return OAuthApplicationService(auth_service, RedisOAuthStateStore(redis), client_factory)


async def get_access_control_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    tokens: TokenService = Depends(get_token_service),
) -> AccessControlService:
    return AccessControlService(uow_factory, tokens)


async def get_post_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> PostApplicationService:
    return PostApplicationService(uow_factory)


def extract_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
) -> Optional[str]:
    """access_token cookie 优先，其次 Authorization: Bearer"""
    cookie_token = request.cookies.get(settings.ACCESS_TOKEN_COOKIE)
    if cookie_token:
        return cookie_token
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


async def enforce_access(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    access_control: AccessControlService = Depends(get_access_control_service),
) -> None:
    """
    全局守卫（注册为应用级依赖）：默认拒绝。

    按端点上的声明依次执行 认证 -> 角色 -> 权限，通过后把 Identity 挂到 request.state。
    """
    requirement = requirement_for(request.scope.get("endpoint"))
    result = await access_control.check(extract_access_token(request, credentials), requirement)
    if not result.allowed:
        raise result.error
    request.state.identity = result.identity
    if result.identity is not None:
        structlog.contextvars.bind_contextvars(user_id=result.identity.id)


async def get_current_identity(request: Request) -> Identity:
    """获取当前已认证身份"""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise UnauthorizedException("Not authenticated")
    return identity


def get_client_info(request: Request) -> ClientInfoDTO:
    """提取设备ID、客户端IP与 User-Agent"""
    client_ip = getattr(request.state, "client_ip", None)
    if not client_ip and request.client:
        client_ip = request.client.host
    device_id = request.headers.get(DEVICE_ID_HEADER)
    return ClientInfoDTO(
        device_id=device_id[:255] if device_id else None,
        ip_address=client_ip[:45] if client_ip else None,
        user_agent=request.headers.get("user-agent"),
    )
