"""
用户仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from domain.user.entity import AuthProvider, User
from domain.user.repository import UserRepository
from infrastructure.models.user import UserModel
from core.logging_config import get_logger
from domain.common.exceptions import (
    UserAlreadyExistsException,
    UserNotFoundException,
)


logger = get_logger(__name__)


class SQLAlchemyUserRepository(UserRepository):
    """用户仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: UserModel) -> User:
        """将数据库模型转换为领域实体"""
        return User(
            id=model.id,
            email=model.email,
            name=model.name,
            hashed_password=model.hashed_password,
            provider=AuthProvider(model.provider),
            provider_id=model.provider_id,
            avatar=model.avatar,
            is_active=model.is_active,
            email_verified=model.email_verified,
            created_at=model.created_at,
            updated_at=model.updated_at,
            last_login=model.last_login,
        )

    def _to_model(self, entity: User) -> UserModel:
        """将领域实体转换为数据库模型"""
        return UserModel(
            id=entity.id,
            email=entity.email,
            name=entity.name,
            hashed_password=entity.hashed_password,
            provider=entity.provider.value,
            provider_id=entity.provider_id,
            avatar=entity.avatar,
            is_active=entity.is_active,
            email_verified=entity.email_verified,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            last_login=entity.last_login,
        )

    async def create(self, user: User) -> User:
        """创建用户"""
        try:
            db_user = self._to_model(user)
            self.session.add(db_user)
            await self.session.flush()  # 获取生成的ID
            await self.session.refresh(db_user)
            return self._to_entity(db_user)
        except IntegrityError:
            await self.session.rollback()
            logger.warning(
                "create_user_conflict",
                email=user.email,
                provider=user.provider.value)
            raise UserAlreadyExistsException(user.email)

    async def get_by_id(self, user_id: int) -> Optional[User]:
        """根据ID获取用户"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def get_by_email_and_provider(self, email: str, provider: AuthProvider) -> Optional[User]:
        """按 (email, provider) 获取用户"""
        result = await self.session.execute(
            select(UserModel).where(
                UserModel.email == email,
                UserModel.provider == provider.value,
            )
        )
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def update(self, user: User) -> User:
        """更新用户"""
        result = await self.session.execute(
            select(UserModel).where(UserModel.id == user.id)
        )
        db_user = result.scalar_one_or_none()

        if not db_user:
            raise UserNotFoundException(user.id)

        # 更新字段
        db_user.name = user.name
        db_user.avatar = user.avatar
        db_user.hashed_password = user.hashed_password
        db_user.is_active = user.is_active
        db_user.email_verified = user.email_verified
        db_user.last_login = user.last_login
        if user.updated_at is not None:
            db_user.updated_at = user.updated_at

        await self.session.flush()
        await self.session.refresh(db_user)
        return self._to_entity(db_user)

    async def exists_local_email(self, email: str) -> bool:
        """检查是否已存在该邮箱的本地账号"""
        result = await self.session.execute(
            select(func.count()).select_from(UserModel)
            .where(
                UserModel.email == email,
                UserModel.provider == AuthProvider.LOCAL.value,
            )
        )
        count = result.scalar()
        return count > 0
