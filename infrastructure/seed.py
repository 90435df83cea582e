"""
角色/权限种子数据（幂等，可重复执行）

USER      -> posts:create / posts:read / posts:update
MODERATOR -> posts:* + users:manage
ADMIN     -> 全部权限
"""
from typing import Dict, Iterable, Tuple

from domain.common.unit_of_work import AbstractUnitOfWork
from domain.rbac.entity import Permission, RoleName
from domain.user.service import CredentialVerifier
from core.logging_config import get_logger


logger = get_logger(__name__)


PERMISSIONS: Dict[str, str] = {
    "posts:create": "Create posts",
    "posts:read": "Read posts",
    "posts:update": "Update posts",
    "posts:delete": "Delete posts",
    "users:manage": "Manage users and their sessions",
    "roles:manage": "Manage roles and permissions",
}

ROLE_GRANTS: Dict[RoleName, Tuple[str, Iterable[str]]] = {
    RoleName.USER: (
        "Default role for registered users",
        ("posts:create", "posts:read", "posts:update"),
    ),
    RoleName.MODERATOR: (
        "Can manage any post and user sessions",
        ("posts:create", "posts:read", "posts:update", "posts:delete", "users:manage"),
    ),
    RoleName.ADMIN: (
        "Full access",
        tuple(PERMISSIONS),
    ),
}

DEMO_USERS = (
    ("admin@example.com", "Admin123!", "Admin", RoleName.ADMIN),
    ("user@example.com", "User123!", "Demo User", RoleName.USER),
)


async def seed_rbac(uow: AbstractUnitOfWork) -> int:
    """写入角色、权限与授权关系，返回本次新增的授权条数"""
    repo = uow.role_repository
    permission_ids: Dict[str, int] = {}
    for name, description in PERMISSIONS.items():
        permission = await repo.upsert_permission(Permission(id=None, name=name, description=description))
        permission_ids[name] = permission.id

    granted = 0
    for role_name, (description, permissions) in ROLE_GRANTS.items():
        role = await repo.upsert_role(role_name.value, description)
        for name in permissions:
            if await repo.grant_permission(role.id, permission_ids[name]):
                granted += 1

    logger.info("rbac_seeded", roles=len(ROLE_GRANTS), permissions=len(PERMISSIONS), granted=granted)
    return granted


async def seed_demo_users(uow: AbstractUnitOfWork) -> int:
    """创建演示账号（已存在则跳过），返回新建数量"""
    created = 0
    verifier = CredentialVerifier(uow.user_repository, uow.role_repository)
    for email, password, name, role_name in DEMO_USERS:
        if await uow.user_repository.exists_local_email(email):
            continue
        user = await verifier.register(email=email, password=password, name=name)
        if role_name != RoleName.USER:
            role = await uow.role_repository.get_by_name(role_name.value)
            await uow.role_repository.assign_role(user.id, role.id)
        created += 1
        logger.info("demo_user_created", user_id=user.id, role=role_name.value)
    return created
