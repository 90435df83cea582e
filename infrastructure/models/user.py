"""
用户数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, UniqueConstraint
from datetime import datetime, timezone

from .base import Base


class UserModel(Base):
    """
    用户数据库模型

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.user.entity.User 中
    """
    __tablename__ = "users"

    # 主键
    id = Column(Integer, primary_key=True, index=True)

    # 用户基本信息
    email = Column(String(255), index=True, nullable=False, comment="邮箱")
    name = Column(String(100), nullable=True, comment="显示名称")
    avatar = Column(String(500), nullable=True, comment="头像URL")

    # 认证信息（第三方用户无密码）
    hashed_password = Column(String(255), nullable=True, comment="密码哈希")
    provider = Column(String(20), default="LOCAL", nullable=False, comment="身份来源 LOCAL/GOOGLE/GITHUB/KAKAO")
    provider_id = Column(String(255), nullable=True, comment="第三方用户ID")

    # 状态信息
    is_active = Column(Boolean, default=True, nullable=False, comment="是否激活")
    email_verified = Column(Boolean, default=False, nullable=False, comment="邮箱是否已验证")

    # 时间信息
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )
    last_login = Column(DateTime(timezone=True), nullable=True, comment="最后登录时间")

    __table_args__ = (
        UniqueConstraint("email", "provider", name="uq_users_email_provider"),
    )

    def __repr__(self):
        return f"<UserModel(id={self.id}, email='{self.email}', provider='{self.provider}')>"
