"""
会话快速存储端口：refresh 令牌哈希 -> 用户ID 的带 TTL 映射

实现必须在存储不可用时抛出 ServiceUnavailableException，而不是返回"未找到"。
"""
from abc import ABC, abstractmethod
from typing import Optional


class SessionStore(ABC):

    @abstractmethod
    async def put(self, token_hash: str, user_id: int, ttl_seconds: int) -> None:
        """写入（覆盖）指针"""

    @abstractmethod
    async def get(self, token_hash: str) -> Optional[int]:
        """读取指针；不存在或已过期返回 None"""

    @abstractmethod
    async def delete(self, token_hash: str) -> None:
        """删除指针（幂等）"""

    @abstractmethod
    async def revoke_all_for_user(self, user_id: int) -> int:
        """删除该用户的全部指针，返回删除数量"""


class OAuthStateStore(ABC):
    """OAuth state 参数存储：一次性使用，带有效期"""

    @abstractmethod
    async def issue(self, provider: str) -> str:
        """生成并保存新的 state"""

    @abstractmethod
    async def consume(self, provider: str, state: str) -> bool:
        """校验并删除 state；未知或已使用返回 False"""
