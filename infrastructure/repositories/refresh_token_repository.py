"""
刷新令牌仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, and_

from domain.auth.refresh_token import RefreshTokenRecord
from domain.auth.refresh_token_repository import RefreshTokenRepository
from infrastructure.models.refresh_token import RefreshTokenModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyRefreshTokenRepository(RefreshTokenRepository):
    """刷新令牌仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: RefreshTokenModel) -> RefreshTokenRecord:
        return RefreshTokenRecord(
            id=model.id,
            user_id=model.user_id,
            token_hash=model.token_hash,
            expires_at=model.expires_at,
            device_id=model.device_id,
            ip_address=model.ip_address,
            user_agent=model.user_agent,
            is_revoked=model.is_revoked,
            last_used_at=model.last_used_at,
            created_at=model.created_at,
            revoked_at=model.revoked_at,
            revoke_reason=model.revoke_reason,
        )

    async def create(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        """创建刷新令牌记录"""
        db_token = RefreshTokenModel(
            user_id=record.user_id,
            token_hash=record.token_hash,
            expires_at=record.expires_at,
            device_id=record.device_id,
            ip_address=record.ip_address,
            user_agent=record.user_agent,
            is_revoked=False,
            created_at=record.created_at or datetime.now(timezone.utc),
        )

        self.session.add(db_token)
        await self.session.flush()
        await self.session.refresh(db_token)

        logger.info(
            "refresh_token_created",
            token_id=db_token.id,
            user_id=record.user_id,
            device_id=record.device_id,
        )
        return self._to_entity(db_token)

    async def get_by_hash(self, token_hash: str) -> Optional[RefreshTokenRecord]:
        """根据令牌哈希获取记录"""
        result = await self.session.execute(
            select(RefreshTokenModel).where(RefreshTokenModel.token_hash == token_hash)
        )
        db_token = result.scalar_one_or_none()
        return self._to_entity(db_token) if db_token else None

    async def consume(self, token_hash: str, now: datetime) -> bool:
        """条件更新：只有未撤销且未过期的记录会被消费，受影响行数为 1 即获胜"""
        result = await self.session.execute(
            update(RefreshTokenModel)
            .where(
                and_(
                    RefreshTokenModel.token_hash == token_hash,
                    RefreshTokenModel.is_revoked == False,  # noqa: E712
                    RefreshTokenModel.expires_at > now,
                )
            )
            .values(
                is_revoked=True,
                last_used_at=now,
                revoked_at=now,
                revoke_reason="rotated",
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def revoke(self, token_hash: str, reason: Optional[str] = None) -> bool:
        """撤销指定令牌"""
        result = await self.session.execute(
            update(RefreshTokenModel)
            .where(
                and_(
                    RefreshTokenModel.token_hash == token_hash,
                    RefreshTokenModel.is_revoked == False,  # noqa: E712
                )
            )
            .values(
                is_revoked=True,
                revoked_at=datetime.now(timezone.utc),
                revoke_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount > 0:
            logger.info("refresh_token_revoked", reason=reason)
            return True
        return False

    async def revoke_all_for_user(self, user_id: int, reason: Optional[str] = None) -> int:
        """撤销用户所有令牌

        先锁定并统计、再批量更新，返回值以锁定行数为准。
        """
        ids_result = await self.session.execute(
            select(RefreshTokenModel.id)
            .where(
                and_(
                    RefreshTokenModel.user_id == user_id,
                    RefreshTokenModel.is_revoked == False,  # noqa: E712
                )
            )
            .with_for_update()
        )
        ids = [row[0] for row in ids_result.all()]
        if not ids:
            return 0

        await self.session.execute(
            update(RefreshTokenModel)
            .where(RefreshTokenModel.id.in_(ids))
            .values(
                is_revoked=True,
                revoked_at=datetime.now(timezone.utc),
                revoke_reason=reason or "logout_all",
            )
            .execution_options(synchronize_session=False)
        )

        logger.info(
            "refresh_tokens_user_revoked",
            user_id=user_id,
            count=len(ids),
        )
        return len(ids)

    async def list_active_for_user(self, user_id: int, now: datetime) -> List[RefreshTokenRecord]:
        """获取用户的活跃令牌列表"""
        result = await self.session.execute(
            select(RefreshTokenModel)
            .where(
                and_(
                    RefreshTokenModel.user_id == user_id,
                    RefreshTokenModel.is_revoked == False,  # noqa: E712
                    RefreshTokenModel.expires_at > now,
                )
            )
            .order_by(RefreshTokenModel.created_at.desc(), RefreshTokenModel.id.desc())
        )
        return [self._to_entity(token) for token in result.scalars().all()]

    async def cleanup_expired(self, before: datetime) -> int:
        """物理删除 before 之前过期的令牌（无论是否已撤销）"""
        result = await self.session.execute(
            delete(RefreshTokenModel)
            .where(RefreshTokenModel.expires_at < before)
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        if count:
            logger.info("refresh_tokens_cleaned", count=count)
        return count
