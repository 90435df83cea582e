"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
from pydantic import BaseModel, EmailStr, Field, field_validator, model_serializer, ConfigDict
from typing import Optional, List
from datetime import datetime, timezone
from core.config import settings


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                ts = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
                s = ts.astimezone(timezone.utc).isoformat()
                return s.replace("+00:00", "Z")
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


class RegisterDTO(DTOBase):
    """注册DTO"""
    email: EmailStr = Field(..., description="邮箱地址")
    password: str = Field(..., min_length=6, max_length=72,
                          description="密码，6-72位，需包含大小写字母与数字")
    name: Optional[str] = Field(None, max_length=100, description="显示名称")

    @field_validator('name')
    def _strip_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None


class LoginDTO(DTOBase):
    """登录DTO"""
    email: EmailStr = Field(..., description="邮箱")
    password: str = Field(..., min_length=1, description="密码")


class UserResponseDTO(DTOBase):
    """用户响应DTO（从不包含密码哈希）"""
    id: int
    email: str
    name: Optional[str]
    avatar: Optional[str]
    provider: str
    email_verified: bool
    is_active: bool
    roles: List[str] = Field(default_factory=list)
    created_at: Optional[datetime]
    last_login: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

    @field_validator('provider', mode='before')
    def _provider_value(cls, v):
        return getattr(v, "value", v)


class TokenDTO(DTOBase):
    """令牌对DTO"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # 秒
    refresh_expires_in: int


class ClientInfoDTO(DTOBase):
    """发起会话的客户端信息（写入刷新令牌记录用于审计）"""
    device_id: Optional[str] = Field(None, max_length=255)
    ip_address: Optional[str] = Field(None, max_length=45)
    user_agent: Optional[str] = None


class SessionDTO(DTOBase):
    """活跃会话（不暴露令牌哈希）"""
    id: int
    device_id: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: Optional[datetime]
    last_used_at: Optional[datetime]
    expires_at: datetime


class RevokedCountDTO(DTOBase):
    revoked_count: int


class LoginResultDTO(DTOBase):
    user: UserResponseDTO


class PostCreateDTO(DTOBase):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)


class PostUpdateDTO(DTOBase):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)


class PostResponseDTO(DTOBase):
    id: int
    title: str
    content: str
    author_id: int
    author_name: Optional[str] = None
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class PaginationParams(DTOBase):
    """分页参数（页码/每页大小），自动派生 skip/limit"""
    page: int = Field(1, ge=1, description="页码，从1开始")
    size: int = Field(
        default=settings.DEFAULT_PAGE_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="每页大小",
    )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.size

    @property
    def limit(self) -> int:
        return self.size
