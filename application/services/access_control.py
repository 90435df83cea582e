"""
访问控制守卫链（应用层）

认证 -> 角色 -> 权限，按顺序执行，第一个拒绝即短路。
认证步骤校验访问令牌并从数据库加载用户的角色与权限，构建只读 Identity。
"""
from typing import Callable, Optional

from domain.auth.guards import AccessRequirement, GuardResult, run_authorization
from domain.auth.identity import Identity
from domain.common.exceptions import (
    AccountDisabledException,
    BusinessException,
    UnauthorizedException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from application.services.token_service import TokenKind, TokenService
from core.logging_config import get_logger


logger = get_logger(__name__)


class AccessControlService:

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        token_service: Optional[TokenService] = None,
    ):
        self._uow_factory = uow_factory
        self._tokens = token_service or TokenService()

    async def authenticate(self, access_token: Optional[str]) -> GuardResult:
        if not access_token:
            return GuardResult.reject(UnauthorizedException("Not authenticated"))
        try:
            payload = self._tokens.verify(access_token, TokenKind.ACCESS)
        except BusinessException as exc:
            return GuardResult.reject(exc)

        async with self._uow_factory(readonly=True) as uow:
            user = await uow.user_repository.get_by_id(payload.sub)
            if user is None:
                logger.info("auth_rejected", reason="user_missing", user_id=payload.sub)
                return GuardResult.reject(UnauthorizedException("User no longer exists"))
            if not user.is_active:
                logger.info("auth_rejected", reason="inactive", user_id=user.id)
                return GuardResult.reject(AccountDisabledException())
            roles, permissions = await uow.role_repository.get_user_grants(user.id)

        return GuardResult.proceed(Identity.build(user.id, user.email, roles, permissions))

    async def check(self, access_token: Optional[str], requirement: AccessRequirement) -> GuardResult:
        """执行完整守卫链；公开路由直接放行（不解析令牌）"""
        if requirement.public:
            return GuardResult.proceed(None)
        result = await self.authenticate(access_token)
        if not result.allowed:
            return result
        return run_authorization(result.identity, requirement)
