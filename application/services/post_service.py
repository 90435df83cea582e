"""
帖子应用服务 - CRUD 与所有权检查
"""
from typing import Callable, Tuple, List
from datetime import datetime, timezone

from domain.auth.identity import Identity
from domain.common.exceptions import ForbiddenException, PostNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.post.entity import Post
from domain.rbac.entity import OWNERSHIP_BYPASS_ROLES
from application.dto import PaginationParams, PostCreateDTO, PostResponseDTO, PostUpdateDTO
from core.logging_config import get_logger


logger = get_logger(__name__)


def ensure_can_modify(post: Post, identity: Identity) -> None:
    """作者本人，或持有 ADMIN / MODERATOR 角色者，才能修改或删除帖子"""
    if post.is_owned_by(identity.id) or identity.has_any_role(OWNERSHIP_BYPASS_ROLES):
        return
    logger.info("post_ownership_denied", post_id=post.id, user_id=identity.id)
    raise ForbiddenException("You can only modify your own posts", error_type="NotOwner")


class PostApplicationService:

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def list_posts(self, pagination: PaginationParams) -> Tuple[List[PostResponseDTO], int]:
        async with self._uow_factory(readonly=True) as uow:
            posts = await uow.post_repository.list(skip=pagination.skip, limit=pagination.limit)
            total = await uow.post_repository.count()
        return [self._to_dto(p) for p in posts], total

    async def get_post(self, post_id: int) -> PostResponseDTO:
        async with self._uow_factory(readonly=True) as uow:
            post = await uow.post_repository.get_by_id(post_id)
        if post is None:
            raise PostNotFoundException(post_id)
        return self._to_dto(post)

    async def create_post(self, data: PostCreateDTO, identity: Identity) -> PostResponseDTO:
        async with self._uow_factory() as uow:
            now = datetime.now(timezone.utc)
            post = Post(
                id=None,
                title=data.title,
                content=data.content,
                author_id=identity.id,
                created_at=now,
                updated_at=now,
            )
            created = await uow.post_repository.create(post)
        logger.info("post_created", post_id=created.id, user_id=identity.id)
        return self._to_dto(created)

    async def update_post(self, post_id: int, data: PostUpdateDTO, identity: Identity) -> PostResponseDTO:
        async with self._uow_factory() as uow:
            post = await uow.post_repository.get_by_id(post_id)
            if post is None:
                raise PostNotFoundException(post_id)
            ensure_can_modify(post, identity)
            post.update(title=data.title, content=data.content)
            updated = await uow.post_repository.update(post)
        logger.info("post_updated", post_id=post_id, user_id=identity.id)
        return self._to_dto(updated)

    async def delete_post(self, post_id: int, identity: Identity) -> None:
        async with self._uow_factory() as uow:
            post = await uow.post_repository.get_by_id(post_id)
            if post is None:
                raise PostNotFoundException(post_id)
            ensure_can_modify(post, identity)
            await uow.post_repository.delete(post_id)
        logger.info("post_deleted", post_id=post_id, user_id=identity.id)

    @staticmethod
    def _to_dto(post: Post) -> PostResponseDTO:
        return PostResponseDTO(
            id=post.id,
            title=post.title,
            content=post.content,
            author_id=post.author_id,
            author_name=post.author_name,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )
