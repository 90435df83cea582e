"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
HTTP 状态码由 core.exceptions 依据 BusinessCode 统一映射：
参数/冲突 -> 400，认证 -> 401，授权 -> 403，不存在 -> 404，依赖不可用 -> 503。
"""
from __future__ import annotations

from typing import Iterable, Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


# ---------------------------------------------------------------- validation


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


# ---------------------------------------------------------------- conflict


class UserAlreadyExistsException(BusinessException):
    def __init__(self, email: str):
        super().__init__(
            code=BusinessCode.USER_ALREADY_EXISTS,
            message=f"User with email {email} already exists",
            error_type="UserAlreadyExists",
            details={"email": email},
            field="email",
        )


# ---------------------------------------------------------------- not found


class UserNotFoundException(BusinessException):
    def __init__(self, user_id: Optional[int] = None):
        details = {"user_id": user_id} if user_id is not None else None
        super().__init__(
            code=BusinessCode.USER_NOT_FOUND,
            message="User not found",
            error_type="UserNotFound",
            details=details,
        )


class PostNotFoundException(BusinessException):
    def __init__(self, post_id: Optional[int] = None):
        details = {"post_id": post_id} if post_id is not None else None
        super().__init__(
            code=BusinessCode.POST_NOT_FOUND,
            message="Post not found",
            error_type="PostNotFound",
            details=details,
        )


# ---------------------------------------------------------------- unauthorized


class UnauthorizedException(BusinessException):
    """未认证：缺少凭证或凭证无效"""

    def __init__(self, message: str = "Unauthorized", *, error_type: str = "Unauthorized", code: int = BusinessCode.UNAUTHORIZED):
        super().__init__(code=code, message=message, error_type=error_type)


class InvalidCredentialsException(UnauthorizedException):
    def __init__(self):
        super().__init__(
            "Invalid credentials",
            error_type="InvalidCredentials",
            code=BusinessCode.PASSWORD_ERROR,
        )


class InvalidTokenException(UnauthorizedException):
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, error_type="InvalidToken", code=BusinessCode.TOKEN_INVALID)


class TokenExpiredException(UnauthorizedException):
    def __init__(self):
        super().__init__("Token expired", error_type="TokenExpired", code=BusinessCode.TOKEN_EXPIRED)


class AccountDisabledException(UnauthorizedException):
    def __init__(self):
        super().__init__(
            "Account is deactivated",
            error_type="AccountDisabled",
            code=BusinessCode.ACCOUNT_DISABLED,
        )


# ---------------------------------------------------------------- forbidden


class ForbiddenException(BusinessException):
    """已认证但无权执行该操作"""

    def __init__(
        self,
        message: str = "Forbidden",
        *,
        error_type: str = "Forbidden",
        code: int = BusinessCode.FORBIDDEN,
        details: Optional[dict] = None,
    ):
        super().__init__(code=code, message=message, error_type=error_type, details=details)


class MissingRoleException(ForbiddenException):
    def __init__(self, required: Iterable[str]):
        roles = sorted(required)
        super().__init__(
            f"Requires one of roles: {', '.join(roles)}",
            error_type="MissingRole",
            code=BusinessCode.ROLE_REQUIRED,
            details={"required_roles": roles},
        )


class MissingPermissionException(ForbiddenException):
    def __init__(self, missing: Iterable[str]):
        perms = sorted(missing)
        super().__init__(
            f"Missing permissions: {', '.join(perms)}",
            error_type="MissingPermission",
            code=BusinessCode.PERMISSION_ERROR,
            details={"missing_permissions": perms},
        )


# ---------------------------------------------------------------- availability


class ServiceUnavailableException(BusinessException):
    """依赖（会话存储、数据库、OAuth 提供方）不可用，按失败处理"""

    def __init__(self, service: str, message: Optional[str] = None):
        super().__init__(
            code=BusinessCode.SERVICE_UNAVAILABLE,
            message=message or f"{service} is unavailable",
            error_type="ServiceUnavailable",
            details={"service": service},
        )


class DefaultRoleMissingException(BusinessException):
    def __init__(self, role: str):
        super().__init__(
            code=BusinessCode.SYSTEM_ERROR,
            message=f"Default role {role} is not seeded",
            error_type="DefaultRoleMissing",
            details={"role": role},
        )
