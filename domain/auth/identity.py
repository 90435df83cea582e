"""
已认证身份：在认证边界构建一次，之后只读
"""
from dataclasses import dataclass
from typing import FrozenSet, Iterable


@dataclass(frozen=True)
class Identity:
    id: int
    email: str
    roles: FrozenSet[str]
    permissions: FrozenSet[str]

    @classmethod
    def build(cls, user_id: int, email: str, roles: Iterable[str], permissions: Iterable[str]) -> "Identity":
        return cls(id=user_id, email=email, roles=frozenset(roles), permissions=frozenset(permissions))

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return not self.roles.isdisjoint(roles)

    def missing_permissions(self, required: Iterable[str]) -> FrozenSet[str]:
        return frozenset(required) - self.permissions
