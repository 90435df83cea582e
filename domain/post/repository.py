"""
帖子仓储接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import Post


class PostRepository(ABC):

    @abstractmethod
    async def create(self, post: Post) -> Post:
        pass

    @abstractmethod
    async def get_by_id(self, post_id: int) -> Optional[Post]:
        pass

    @abstractmethod
    async def list(self, skip: int = 0, limit: int = 20) -> List[Post]:
        """按创建时间倒序"""
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    @abstractmethod
    async def update(self, post: Post) -> Post:
        pass

    @abstractmethod
    async def delete(self, post_id: int) -> bool:
        pass
