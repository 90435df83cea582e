"""
用户领域服务 - 处理复杂的业务逻辑

- PasswordService: bcrypt 哈希与密码强度规则
- CredentialVerifier: 本地注册与邮箱/密码校验
- FederatedIdentityResolver: 第三方身份 -> 本地用户（按 (email, provider) 幂等）
"""
from typing import Optional, List
from datetime import datetime, timezone

import bcrypt

from core.logging_config import get_logger
from domain.common.exceptions import (
    AccountDisabledException,
    DefaultRoleMissingException,
    DomainValidationException,
    UserAlreadyExistsException,
)
from domain.rbac.entity import DEFAULT_ROLE
from domain.rbac.repository import RoleRepository
from .entity import AuthProvider, User
from .events import FederatedUserCreated, UserRegistered
from .repository import UserRepository


logger = get_logger(__name__)

# bcrypt 只处理前 72 字节
BCRYPT_MAX_BYTES = 72
PASSWORD_MIN_LENGTH = 6


class PasswordService:
    """密码服务 - 处理密码相关的业务逻辑"""

    @staticmethod
    def hash_password(password: str) -> str:
        """bcrypt 加盐哈希"""
        raw = password.encode("utf-8")
        if len(raw) > BCRYPT_MAX_BYTES:
            raise DomainValidationException(
                f"Password must be at most {BCRYPT_MAX_BYTES} bytes", field="password"
            )
        return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")

    @staticmethod
    def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
        """验证密码；无哈希、超长密码或哈希格式错误均视为不匹配"""
        if not hashed_password:
            return False
        raw = plain_password.encode("utf-8")
        if len(raw) > BCRYPT_MAX_BYTES:
            return False
        try:
            return bcrypt.checkpw(raw, hashed_password.encode("utf-8"))
        except ValueError:
            logger.warning("password_hash_malformed")
            return False

    @staticmethod
    def validate_password_strength(password: str) -> None:
        """业务规则：密码强度验证（6-72 字节，含大写、小写与数字）"""
        if len(password) < PASSWORD_MIN_LENGTH:
            raise DomainValidationException(
                f"Password must be at least {PASSWORD_MIN_LENGTH} characters", field="password"
            )
        if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise DomainValidationException(
                f"Password must be at most {BCRYPT_MAX_BYTES} bytes", field="password"
            )
        if not any(c.isupper() for c in password):
            raise DomainValidationException(
                "Password must contain an uppercase letter", field="password"
            )
        if not any(c.islower() for c in password):
            raise DomainValidationException(
                "Password must contain a lowercase letter", field="password"
            )
        if not any(c.isdigit() for c in password):
            raise DomainValidationException("Password must contain a digit", field="password")


async def assign_default_role(role_repository: RoleRepository, user: User) -> None:
    """为新用户分配默认角色；默认角色未初始化时视为系统错误"""
    role = await role_repository.get_by_name(DEFAULT_ROLE.value)
    if role is None:
        raise DefaultRoleMissingException(DEFAULT_ROLE.value)
    await role_repository.assign_role(user.id, role.id)
    user.roles = [role.name]


class CredentialVerifier:
    """本地凭证：注册与校验"""

    def __init__(self, user_repository: UserRepository, role_repository: RoleRepository):
        self.user_repository = user_repository
        self.role_repository = role_repository
        self.password_service = PasswordService()
        self.events: List = []

    async def register(self, email: str, password: str, name: Optional[str] = None) -> User:
        """注册本地用户；用户创建与默认角色分配处于同一事务（由调用方 UoW 控制）"""
        self.password_service.validate_password_strength(password)

        user = User(
            id=None,
            email=email,
            name=name,
            hashed_password=None,
            provider=AuthProvider.LOCAL,
            is_active=True,
            email_verified=False,
            created_at=datetime.now(timezone.utc),
            updated_at=datetime.now(timezone.utc),
        )
        if await self.user_repository.exists_local_email(user.email):
            raise UserAlreadyExistsException(user.email)

        user.hashed_password = self.password_service.hash_password(password)
        created = await self.user_repository.create(user)
        await assign_default_role(self.role_repository, created)

        self.events.append(UserRegistered(user_id=created.id, email=created.email))
        return created

    async def verify(self, email: str, password: str) -> Optional[User]:
        """
        校验邮箱/密码。

        未知邮箱、无密码（第三方）账号、密码错误均返回 None，对外不可区分；
        密码正确但账号已停用时抛出 AccountDisabledException。
        """
        normalized = email.strip().lower()
        user = await self.user_repository.get_by_email_and_provider(normalized, AuthProvider.LOCAL)
        if user is None:
            logger.debug("credential_check_failed", reason="unknown_email")
            return None
        if not user.has_password:
            logger.debug("credential_check_failed", reason="no_password", user_id=user.id)
            return None
        if not self.password_service.verify_password(password, user.hashed_password):
            logger.debug("credential_check_failed", reason="wrong_password", user_id=user.id)
            return None
        if not user.is_active:
            raise AccountDisabledException()
        return user

    def get_domain_events(self) -> List:
        """获取并清空领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events


class FederatedIdentityResolver:
    """第三方身份解析：按 (email, provider) 查找或创建用户，不与本地账号合并"""

    def __init__(self, user_repository: UserRepository, role_repository: RoleRepository):
        self.user_repository = user_repository
        self.role_repository = role_repository
        self.events: List = []

    async def find_or_create(
        self,
        email: str,
        provider: AuthProvider,
        external_id: str,
        name: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> User:
        normalized = email.strip().lower()
        existing = await self.user_repository.get_by_email_and_provider(normalized, provider)
        if existing is not None:
            return existing

        now = datetime.now(timezone.utc)
        user = User(
            id=None,
            email=normalized,
            name=name,
            hashed_password=None,
            provider=provider,
            provider_id=external_id,
            avatar=avatar,
            is_active=True,
            email_verified=True,
            created_at=now,
            updated_at=now,
        )
        created = await self.user_repository.create(user)
        await assign_default_role(self.role_repository, created)

        self.events.append(
            FederatedUserCreated(user_id=created.id, email=created.email, provider=provider.value)
        )
        return created

    def get_domain_events(self) -> List:
        """获取并清空领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
