"""
路由访问声明

所有 API 路由默认需要认证；用下列装饰器声明例外或附加要求::

    @router.get("/posts")
    @public
    async def list_posts(): ...

    @router.delete("/posts/{post_id}")
    @require_permissions("posts:delete")
    async def delete_post(...): ...

装饰器只在端点函数上记录 AccessRequirement，由全局依赖 enforce_access 读取执行。
"""
from typing import Any, Callable, Optional, TypeVar

from domain.auth.guards import AccessRequirement


F = TypeVar("F", bound=Callable[..., Any])

ACCESS_ATTR = "__access_requirement__"


def _current(func: Callable[..., Any]) -> AccessRequirement:
    return getattr(func, ACCESS_ATTR, AccessRequirement())


def _set(func: F, requirement: AccessRequirement) -> F:
    setattr(func, ACCESS_ATTR, requirement)
    return func


def public(func: F) -> F:
    """跳过守卫链"""
    current = _current(func)
    return _set(func, AccessRequirement(public=True, roles=current.roles, permissions=current.permissions))


def require_roles(*roles: str) -> Callable[[F], F]:
    """要求持有其中任一角色"""
    def decorator(func: F) -> F:
        current = _current(func)
        return _set(func, AccessRequirement(
            public=current.public,
            roles=current.roles | frozenset(roles),
            permissions=current.permissions,
        ))
    return decorator


def require_permissions(*permissions: str) -> Callable[[F], F]:
    """要求持有全部权限"""
    def decorator(func: F) -> F:
        current = _current(func)
        return _set(func, AccessRequirement(
            public=current.public,
            roles=current.roles,
            permissions=current.permissions | frozenset(permissions),
        ))
    return decorator


def requirement_for(endpoint: Optional[Callable[..., Any]]) -> AccessRequirement:
    """读取端点声明；未声明时默认需要认证"""
    if endpoint is None:
        return AccessRequirement()
    return _current(endpoint)
