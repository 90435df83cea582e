"""
认证 Cookie：httpOnly、SameSite=Lax，生产环境启用 Secure
"""
from fastapi import Response

from application.dto import TokenDTO
from core.config import settings


def set_auth_cookies(response: Response, tokens: TokenDTO) -> None:
    response.set_cookie(
        key=settings.ACCESS_TOKEN_COOKIE,
        value=tokens.access_token,
        max_age=tokens.expires_in,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )
    response.set_cookie(
        key=settings.REFRESH_TOKEN_COOKIE,
        value=tokens.refresh_token,
        max_age=tokens.refresh_expires_in,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_auth_cookies(response: Response) -> None:
    for name in (settings.ACCESS_TOKEN_COOKIE, settings.REFRESH_TOKEN_COOKIE):
        response.delete_cookie(
            key=name,
            path="/",
            httponly=True,
            secure=settings.cookie_secure,
            samesite="lax",
        )
