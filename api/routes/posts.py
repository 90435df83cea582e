"""
帖子API路由
"""
from typing import List

from fastapi import APIRouter, Depends, Query, Response, status

from api.access import public, require_permissions
from api.dependencies import get_current_identity, get_post_service
from application.dto import PaginationParams, PostCreateDTO, PostResponseDTO, PostUpdateDTO
from application.services.post_service import PostApplicationService
from core.config import settings
from core.response import PaginatedData, Response as ApiResponse, paginated_response, success_response
from domain.auth.identity import Identity


router = APIRouter(
    prefix="/posts",
    tags=["帖子"]
)


@router.get("", summary="帖子列表", response_model=ApiResponse[PaginatedData[PostResponseDTO]])
@public
async def list_posts(
    page: int = Query(1, ge=1, description="页码，从1开始"),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="每页大小"),
    service: PostApplicationService = Depends(get_post_service),
):
    pagination = PaginationParams(page=page, size=size)
    items, total = await service.list_posts(pagination)
    return paginated_response(items=items, total=total, page=page, size=size)


@router.get("/{post_id}", summary="帖子详情", response_model=ApiResponse[PostResponseDTO])
@public
async def get_post(
    post_id: int,
    service: PostApplicationService = Depends(get_post_service),
):
    post = await service.get_post(post_id)
    return success_response(data=post)


@router.post(
    "",
    summary="发布帖子",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[PostResponseDTO],
)
@require_permissions("posts:create")
async def create_post(
    data: PostCreateDTO,
    identity: Identity = Depends(get_current_identity),
    service: PostApplicationService = Depends(get_post_service),
):
    post = await service.create_post(data, identity)
    return success_response(data=post, message="Post created")


@router.patch("/{post_id}", summary="更新帖子", response_model=ApiResponse[PostResponseDTO])
@require_permissions("posts:update")
async def update_post(
    post_id: int,
    data: PostUpdateDTO,
    identity: Identity = Depends(get_current_identity),
    service: PostApplicationService = Depends(get_post_service),
):
    """仅作者本人或 ADMIN / MODERATOR 可以修改"""
    post = await service.update_post(post_id, data, identity)
    return success_response(data=post, message="Post updated")


@router.delete("/{post_id}", summary="删除帖子", status_code=status.HTTP_204_NO_CONTENT)
@require_permissions("posts:delete")
async def delete_post(
    post_id: int,
    identity: Identity = Depends(get_current_identity),
    service: PostApplicationService = Depends(get_post_service),
):
    """仅作者本人或 ADMIN / MODERATOR 可以删除"""
    await service.delete_post(post_id, identity)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
