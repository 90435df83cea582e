"""
认证API路由 - FastAPI表现层
"""
from enum import Enum
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from api.access import public, require_permissions
from api.cookies import clear_auth_cookies, set_auth_cookies
from api.dependencies import (
    get_auth_service,
    get_client_info,
    get_current_identity,
    get_oauth_service,
)
from application.dto import (
    ClientInfoDTO,
    LoginDTO,
    LoginResultDTO,
    RegisterDTO,
    RevokedCountDTO,
    SessionDTO,
    UserResponseDTO,
)
from application.services.auth_service import AuthApplicationService
from application.services.oauth_service import OAuthApplicationService
from core.config import settings
from core.response import Response as ApiResponse, success_response
from domain.auth.identity import Identity
from domain.user.entity import AuthProvider


router = APIRouter(
    prefix="/auth",
    tags=["认证"]
)


class OAuthProviderName(str, Enum):
    google = "google"
    github = "github"
    kakao = "kakao"

    @property
    def provider(self) -> AuthProvider:
        return AuthProvider(self.value.upper())


@router.post(
    "/register",
    summary="用户注册",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[UserResponseDTO],
)
@public
async def register(
    data: RegisterDTO,
    service: AuthApplicationService = Depends(get_auth_service),
):
    """
    注册新用户（分配 USER 角色）

    - **email**: 邮箱地址；已存在本地账号时返回 400
    - **password**: 6-72 位，包含大小写字母与数字
    - **name**: 显示名称（可选）
    """
    user = await service.register(data)
    return success_response(data=user, message="User registered successfully")


@router.post("/login", summary="用户登录", response_model=ApiResponse[LoginResultDTO])
@public
async def login(
    data: LoginDTO,
    response: Response,
    client: ClientInfoDTO = Depends(get_client_info),
    service: AuthApplicationService = Depends(get_auth_service),
):
    """
    邮箱/密码登录，令牌通过 httpOnly Cookie 下发

    可选请求头 X-Device-Id 用于标识设备。
    """
    user, tokens = await service.login(data, client)
    set_auth_cookies(response, tokens)
    return success_response(data=LoginResultDTO(user=user), message="Login successful")


@router.post("/refresh", summary="刷新访问令牌", response_model=ApiResponse[None])
@public
async def refresh(
    request: Request,
    response: Response,
    client: ClientInfoDTO = Depends(get_client_info),
    service: AuthApplicationService = Depends(get_auth_service),
):
    """
    使用 refresh_token Cookie 轮转令牌对

    旧刷新令牌立即失效；并发使用同一令牌时只有一个请求成功。
    """
    tokens = await service.refresh(request.cookies.get(settings.REFRESH_TOKEN_COOKIE), client)
    set_auth_cookies(response, tokens)
    return success_response(message="Token refreshed")


@router.post("/logout", summary="登出", response_model=ApiResponse[None])
@public
async def logout(
    request: Request,
    response: Response,
    service: AuthApplicationService = Depends(get_auth_service),
):
    """撤销当前刷新令牌并清除 Cookie（幂等）"""
    await service.logout(request.cookies.get(settings.REFRESH_TOKEN_COOKIE))
    clear_auth_cookies(response)
    return success_response(message="Logout successful")


@router.get("/me", summary="获取当前用户信息", response_model=ApiResponse[UserResponseDTO])
async def get_me(
    identity: Identity = Depends(get_current_identity),
    service: AuthApplicationService = Depends(get_auth_service),
):
    user = await service.get_current_user(identity.id)
    return success_response(data=user)


@router.get("/sessions", summary="当前用户的活跃会话", response_model=ApiResponse[List[SessionDTO]])
async def list_sessions(
    identity: Identity = Depends(get_current_identity),
    service: AuthApplicationService = Depends(get_auth_service),
):
    sessions = await service.list_sessions(identity.id)
    return success_response(data=sessions)


@router.post("/logout-all", summary="登出所有设备", response_model=ApiResponse[RevokedCountDTO])
async def logout_all(
    response: Response,
    identity: Identity = Depends(get_current_identity),
    service: AuthApplicationService = Depends(get_auth_service),
):
    count = await service.revoke_all_user_tokens(identity.id, reason="logout_all")
    clear_auth_cookies(response)
    return success_response(data=RevokedCountDTO(revoked_count=count), message="Logged out from all devices")


@router.post(
    "/users/{user_id}/revoke-sessions",
    summary="撤销指定用户的全部会话",
    response_model=ApiResponse[RevokedCountDTO],
)
@require_permissions("users:manage")
async def revoke_user_sessions(
    user_id: int,
    identity: Identity = Depends(get_current_identity),
    service: AuthApplicationService = Depends(get_auth_service),
):
    count = await service.revoke_all_user_tokens(user_id, reason=f"revoked_by:{identity.id}")
    return success_response(data=RevokedCountDTO(revoked_count=count), message="Sessions revoked")


@router.get("/{provider}", summary="发起第三方登录", status_code=status.HTTP_302_FOUND)
@public
async def oauth_start(
    provider: OAuthProviderName,
    service: OAuthApplicationService = Depends(get_oauth_service),
):
    url = await service.begin(provider.provider)
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get("/{provider}/callback", summary="第三方登录回调", status_code=status.HTTP_302_FOUND)
@public
async def oauth_callback(
    provider: OAuthProviderName,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    client: ClientInfoDTO = Depends(get_client_info),
    service: OAuthApplicationService = Depends(get_oauth_service),
):
    """授权码换取用户资料，签发会话后带 Cookie 跳转回前端"""
    _, tokens = await service.complete(provider.provider, code, state, client)
    redirect = RedirectResponse(
        f"{settings.FRONTEND_URL.rstrip('/')}/?oauth=success",
        status_code=status.HTTP_302_FOUND,
    )
    set_auth_cookies(redirect, tokens)
    return redirect
