"""
角色/权限仓储实现
"""
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.rbac.entity import Permission, Role
from domain.rbac.repository import RoleRepository
from infrastructure.models.rbac import (
    PermissionModel,
    RoleModel,
    RolePermissionModel,
    UserRoleModel,
)


class SQLAlchemyRoleRepository(RoleRepository):
    """角色仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _permission_names(self, role_id: int) -> List[str]:
        result = await self.session.execute(
            select(PermissionModel.name)
            .join(RolePermissionModel, RolePermissionModel.permission_id == PermissionModel.id)
            .where(RolePermissionModel.role_id == role_id)
            .order_by(PermissionModel.name)
        )
        return list(result.scalars().all())

    async def get_by_name(self, name: str) -> Optional[Role]:
        result = await self.session.execute(select(RoleModel).where(RoleModel.name == name))
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return Role(
            id=model.id,
            name=model.name,
            description=model.description,
            permissions=await self._permission_names(model.id),
        )

    async def assign_role(self, user_id: int, role_id: int) -> None:
        existing = await self.session.execute(
            select(UserRoleModel.id).where(
                UserRoleModel.user_id == user_id,
                UserRoleModel.role_id == role_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            return
        self.session.add(UserRoleModel(user_id=user_id, role_id=role_id))
        await self.session.flush()

    async def get_user_grants(self, user_id: int) -> Tuple[List[str], List[str]]:
        roles_result = await self.session.execute(
            select(RoleModel.name)
            .join(UserRoleModel, UserRoleModel.role_id == RoleModel.id)
            .where(UserRoleModel.user_id == user_id)
            .order_by(RoleModel.name)
        )
        perms_result = await self.session.execute(
            select(PermissionModel.name)
            .join(RolePermissionModel, RolePermissionModel.permission_id == PermissionModel.id)
            .join(UserRoleModel, UserRoleModel.role_id == RolePermissionModel.role_id)
            .where(UserRoleModel.user_id == user_id)
            .distinct()
            .order_by(PermissionModel.name)
        )
        return list(roles_result.scalars().all()), list(perms_result.scalars().all())

    async def upsert_role(self, name: str, description: Optional[str] = None) -> Role:
        result = await self.session.execute(select(RoleModel).where(RoleModel.name == name))
        model = result.scalar_one_or_none()
        if model is None:
            model = RoleModel(name=name, description=description)
            self.session.add(model)
        elif description is not None:
            model.description = description
        await self.session.flush()
        return Role(id=model.id, name=model.name, description=model.description)

    async def upsert_permission(self, permission: Permission) -> Permission:
        result = await self.session.execute(
            select(PermissionModel).where(PermissionModel.name == permission.name)
        )
        model = result.scalar_one_or_none()
        if model is None:
            model = PermissionModel(
                name=permission.name,
                resource=permission.resource,
                action=permission.action,
                description=permission.description,
            )
            self.session.add(model)
        elif permission.description is not None:
            model.description = permission.description
        await self.session.flush()
        return Permission(id=model.id, name=model.name, description=model.description)

    async def grant_permission(self, role_id: int, permission_id: int) -> bool:
        existing = await self.session.execute(
            select(RolePermissionModel.id).where(
                RolePermissionModel.role_id == role_id,
                RolePermissionModel.permission_id == permission_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            return False
        self.session.add(RolePermissionModel(role_id=role_id, permission_id=permission_id))
        await self.session.flush()
        return True
