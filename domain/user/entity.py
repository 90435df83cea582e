"""
用户领域实体 - 包含核心业务规则
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from dataclasses import dataclass, field
import re

from domain.common.exceptions import DomainValidationException


class AuthProvider(str, Enum):
    """身份来源：本地密码或第三方 OAuth"""

    LOCAL = "LOCAL"
    GOOGLE = "GOOGLE"
    GITHUB = "GITHUB"
    KAKAO = "KAKAO"


EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


@dataclass
class User:
    """用户实体 - 领域核心

    federated 用户（provider != LOCAL）没有密码哈希；(email, provider) 唯一。
    """

    id: Optional[int]
    email: str
    name: Optional[str] = None
    hashed_password: Optional[str] = None
    provider: AuthProvider = AuthProvider.LOCAL
    provider_id: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool = True
    email_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    roles: List[str] = field(default_factory=list)

    def __post_init__(self):
        """初始化后的业务规则验证"""
        self.email = self.email.strip().lower()
        self.validate_email()

    def validate_email(self) -> None:
        """业务规则：邮箱格式验证"""
        if not EMAIL_PATTERN.match(self.email):
            raise DomainValidationException("Invalid email format", field="email")

    @property
    def has_password(self) -> bool:
        return bool(self.hashed_password)

    def deactivate(self) -> None:
        """业务规则：停用用户"""
        self.is_active = False
        self.updated_at = datetime.now(timezone.utc)

    def record_login(self) -> None:
        """业务规则：记录登录时间"""
        self.last_login = datetime.now(timezone.utc)
