"""
角色/权限仓储接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from .entity import Permission, Role


class RoleRepository(ABC):
    """角色仓储抽象接口（含权限与用户授权关系）"""

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[Role]:
        """根据名称获取角色"""
        pass

    @abstractmethod
    async def assign_role(self, user_id: int, role_id: int) -> None:
        """为用户分配角色（已分配时忽略）"""
        pass

    @abstractmethod
    async def get_user_grants(self, user_id: int) -> Tuple[List[str], List[str]]:
        """返回用户的 (角色名列表, 权限名列表)，均已去重排序"""
        pass

    @abstractmethod
    async def upsert_role(self, name: str, description: Optional[str] = None) -> Role:
        """按名称创建或更新角色"""
        pass

    @abstractmethod
    async def upsert_permission(self, permission: Permission) -> Permission:
        """按名称创建或更新权限"""
        pass

    @abstractmethod
    async def grant_permission(self, role_id: int, permission_id: int) -> bool:
        """授予角色权限；返回是否新增"""
        pass
