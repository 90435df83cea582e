"""
刷新令牌数据库模型 - SQLAlchemy ORM模型
支持令牌轮转（Refresh Token Rotation）
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, Text
from datetime import datetime, timezone

from .base import Base


class RefreshTokenModel(Base):
    """
    刷新令牌数据库模型

    - 只存储令牌 SHA-256 哈希，不存明文
    - 每次刷新时旧记录被条件更新为已撤销，生成新记录
    - 物理删除仅由过期清理完成
    """
    __tablename__ = "refresh_tokens"

    # 主键
    id = Column(Integer, primary_key=True, index=True)

    # 用户关联
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True, comment="用户ID")

    # 令牌哈希（存储令牌哈希而非明文）
    token_hash = Column(String(128), unique=True, index=True, nullable=False, comment="令牌SHA-256哈希")

    # 状态
    is_revoked = Column(Boolean, default=False, nullable=False, index=True, comment="是否已撤销")

    # 客户端信息（可选，用于安全审计）
    device_id = Column(String(255), nullable=True, comment="设备ID（X-Device-Id）")
    user_agent = Column(Text, nullable=True, comment="User-Agent")
    ip_address = Column(String(45), nullable=True, comment="IP地址（支持IPv6）")

    # 时间戳
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    expires_at = Column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="过期时间"
    )
    last_used_at = Column(DateTime(timezone=True), nullable=True, comment="最后使用时间")
    revoked_at = Column(DateTime(timezone=True), nullable=True, comment="撤销时间")

    # 撤销原因
    revoke_reason = Column(String(200), nullable=True, comment="撤销原因")

    __table_args__ = (
        Index("ix_refresh_tokens_user_active", "user_id", "is_revoked"),
        Index("ix_refresh_tokens_expires", "expires_at", "is_revoked"),
    )

    def __repr__(self):
        return (
            f"<RefreshTokenModel(id={self.id}, user_id={self.user_id}, "
            f"is_revoked={self.is_revoked})>"
        )
