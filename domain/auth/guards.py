"""
访问控制守卫链的纯逻辑部分

每一步接收上一步产生的 Identity，返回 GuardResult（放行 / 拒绝）。
链按顺序执行，遇到第一个拒绝即停止。认证步骤需要 IO，由应用层实现。
"""
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, Optional, Sequence

from domain.common.exceptions import (
    BusinessException,
    MissingPermissionException,
    MissingRoleException,
)
from .identity import Identity


@dataclass(frozen=True)
class AccessRequirement:
    """路由声明的访问要求；默认需要认证"""

    public: bool = False
    roles: FrozenSet[str] = field(default_factory=frozenset)
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, *, public: bool = False, roles: Iterable[str] = (), permissions: Iterable[str] = ()) -> "AccessRequirement":
        return cls(public=public, roles=frozenset(roles), permissions=frozenset(permissions))


@dataclass(frozen=True)
class GuardResult:
    identity: Optional[Identity] = None
    error: Optional[BusinessException] = None

    @classmethod
    def proceed(cls, identity: Optional[Identity]) -> "GuardResult":
        return cls(identity=identity)

    @classmethod
    def reject(cls, error: BusinessException) -> "GuardResult":
        return cls(error=error)

    @property
    def allowed(self) -> bool:
        return self.error is None


GuardStep = Callable[[Identity, AccessRequirement], GuardResult]


def role_guard(identity: Identity, requirement: AccessRequirement) -> GuardResult:
    """身份角色需与要求角色有交集"""
    if requirement.roles and not identity.has_any_role(requirement.roles):
        return GuardResult.reject(MissingRoleException(requirement.roles))
    return GuardResult.proceed(identity)


def permission_guard(identity: Identity, requirement: AccessRequirement) -> GuardResult:
    """身份需持有全部要求权限"""
    missing = identity.missing_permissions(requirement.permissions)
    if missing:
        return GuardResult.reject(MissingPermissionException(missing))
    return GuardResult.proceed(identity)


AUTHORIZATION_STEPS: Sequence[GuardStep] = (role_guard, permission_guard)


def run_authorization(
    identity: Identity,
    requirement: AccessRequirement,
    steps: Sequence[GuardStep] = AUTHORIZATION_STEPS,
) -> GuardResult:
    result = GuardResult.proceed(identity)
    for step in steps:
        result = step(identity, requirement)
        if not result.allowed:
            return result
    return result
