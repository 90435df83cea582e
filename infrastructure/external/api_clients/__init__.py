"""
API客户端模块

- BaseAPIClient: 带重试与错误分类的 httpx 客户端基类（OAuth 提供方客户端复用）
- SessionClient: 本服务的 Cookie 会话客户端（401 时单飞刷新）
"""
from .base import APIError, APIResponse, AuthenticationError, BaseAPIClient
from .session_client import SessionClient

__all__ = [
    "BaseAPIClient",
    "APIResponse",
    "APIError",
    "AuthenticationError",
    "SessionClient",
]
