"""
用户仓储接口 - 定义数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional
from .entity import AuthProvider, User


class UserRepository(ABC):
    """用户仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, user: User) -> User:
        """创建用户；(email, provider) 冲突时抛出 UserAlreadyExistsException"""
        pass

    @abstractmethod
    async def get_by_id(self, user_id: int) -> Optional[User]:
        """根据ID获取用户"""
        pass

    @abstractmethod
    async def get_by_email_and_provider(self, email: str, provider: AuthProvider) -> Optional[User]:
        """按 (email, provider) 获取用户"""
        pass

    @abstractmethod
    async def update(self, user: User) -> User:
        """更新用户"""
        pass

    @abstractmethod
    async def exists_local_email(self, email: str) -> bool:
        """检查是否已存在该邮箱的本地账号"""
        pass
