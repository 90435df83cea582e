"""
角色与权限领域实体
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from domain.common.exceptions import DomainValidationException


class RoleName(str, Enum):
    USER = "USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


# 新注册 / 首次 OAuth 登录的用户获得且仅获得该角色
DEFAULT_ROLE = RoleName.USER

# 可绕过帖子所有权检查的角色
OWNERSHIP_BYPASS_ROLES = frozenset({RoleName.ADMIN.value, RoleName.MODERATOR.value})


@dataclass
class Permission:
    """权限：名称格式为 "resource:action"，例如 posts:delete"""

    id: Optional[int]
    name: str
    description: Optional[str] = None

    def __post_init__(self):
        resource, sep, action = self.name.partition(":")
        if not sep or not resource or not action:
            raise DomainValidationException(
                f"Permission name must look like resource:action, got {self.name!r}",
                field="name",
            )

    @property
    def resource(self) -> str:
        return self.name.split(":", 1)[0]

    @property
    def action(self) -> str:
        return self.name.split(":", 1)[1]


@dataclass
class Role:
    id: Optional[int]
    name: str
    description: Optional[str] = None
    permissions: List[str] = field(default_factory=list)
