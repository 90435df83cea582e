"""
刷新令牌仓储接口 - 定义刷新令牌数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional, List
from datetime import datetime

from .refresh_token import RefreshTokenRecord


class RefreshTokenRepository(ABC):
    """刷新令牌仓储抽象接口"""

    @abstractmethod
    async def create(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        """创建刷新令牌记录"""
        pass

    @abstractmethod
    async def get_by_hash(self, token_hash: str) -> Optional[RefreshTokenRecord]:
        """根据令牌哈希获取记录"""
        pass

    @abstractmethod
    async def consume(self, token_hash: str, now: datetime) -> bool:
        """
        原子地消费一条可用记录（轮转时调用）

        仅当记录未撤销且未过期时将其标记为撤销并更新 last_used_at。
        并发调用中只有一个返回 True。
        """
        pass

    @abstractmethod
    async def revoke(self, token_hash: str, reason: Optional[str] = None) -> bool:
        """撤销指定令牌；已撤销或不存在时返回 False"""
        pass

    @abstractmethod
    async def revoke_all_for_user(self, user_id: int, reason: Optional[str] = None) -> int:
        """
        撤销用户所有令牌（用户主动登出所有设备）

        Returns:
            撤销的令牌数量
        """
        pass

    @abstractmethod
    async def list_active_for_user(self, user_id: int, now: datetime) -> List[RefreshTokenRecord]:
        """获取用户的活跃令牌列表（用于显示登录设备）"""
        pass

    @abstractmethod
    async def cleanup_expired(self, before: datetime) -> int:
        """
        清理过期令牌

        Returns:
            清理的令牌数量
        """
        pass
