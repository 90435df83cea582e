"""
帖子仓储实现
"""
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import PostNotFoundException
from domain.post.entity import Post
from domain.post.repository import PostRepository
from infrastructure.models.post import PostModel
from infrastructure.models.user import UserModel


class SQLAlchemyPostRepository(PostRepository):
    """帖子仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: PostModel, author_name: Optional[str] = None) -> Post:
        return Post(
            id=model.id,
            title=model.title,
            content=model.content,
            author_id=model.author_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
            author_name=author_name,
        )

    def _with_author(self):
        return select(PostModel, UserModel.name).join(UserModel, UserModel.id == PostModel.author_id)

    async def create(self, post: Post) -> Post:
        db_post = PostModel(title=post.title, content=post.content, author_id=post.author_id)
        self.session.add(db_post)
        await self.session.flush()
        created = await self.get_by_id(db_post.id)
        if created is None:
            raise PostNotFoundException(db_post.id)
        return created

    async def get_by_id(self, post_id: int) -> Optional[Post]:
        result = await self.session.execute(self._with_author().where(PostModel.id == post_id))
        row = result.first()
        return self._to_entity(row[0], row[1]) if row else None

    async def list(self, skip: int = 0, limit: int = 20) -> List[Post]:
        result = await self.session.execute(
            self._with_author()
            .order_by(PostModel.created_at.desc(), PostModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(model, name) for model, name in result.all()]

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(PostModel))
        return result.scalar_one()

    async def update(self, post: Post) -> Post:
        result = await self.session.execute(select(PostModel).where(PostModel.id == post.id))
        db_post = result.scalar_one_or_none()
        if db_post is None:
            raise PostNotFoundException(post.id)
        db_post.title = post.title
        db_post.content = post.content
        if post.updated_at is not None:
            db_post.updated_at = post.updated_at
        await self.session.flush()
        await self.session.refresh(db_post)
        return self._to_entity(db_post, post.author_name)

    async def delete(self, post_id: int) -> bool:
        result = await self.session.execute(
            delete(PostModel)
            .where(PostModel.id == post_id)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0
