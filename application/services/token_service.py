"""
令牌服务 - JWT 签发、校验与哈希

访问令牌与刷新令牌使用不同的密钥与有效期；每个令牌带随机 jti，
因此同一秒内为同一用户签发的两个令牌也互不相同。
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, List, Optional
import hashlib
import re
import uuid

import jwt

from application.dto import TokenDTO
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import InvalidTokenException, TokenExpiredException
from domain.user.entity import User


logger = get_logger(__name__)

DURATION_PATTERN = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}

DEFAULT_ACCESS_TTL = 15 * 60
DEFAULT_REFRESH_TTL = 7 * 86400


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


def parse_duration(value: Optional[str], default_seconds: int) -> int:
    """解析 "15m" / "7d" 形式的时长；无法识别时返回默认值"""
    match = DURATION_PATTERN.match((value or "").strip())
    if not match:
        return default_seconds
    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit]


@dataclass(frozen=True)
class TokenPayload:
    sub: int
    email: str
    roles: List[str]
    type: TokenKind
    jti: str
    iat: int
    exp: int
    extra: dict = field(default_factory=dict)


class TokenService:
    """JWT 编解码器"""

    def __init__(
        self,
        *,
        access_secret: Optional[str] = None,
        refresh_secret: Optional[str] = None,
        access_expiration: Optional[str] = None,
        refresh_expiration: Optional[str] = None,
        algorithm: Optional[str] = None,
    ):
        self._secrets = {
            TokenKind.ACCESS: access_secret or settings.JWT_ACCESS_SECRET,
            TokenKind.REFRESH: refresh_secret or settings.JWT_REFRESH_SECRET,
        }
        self._ttls = {
            TokenKind.ACCESS: parse_duration(
                access_expiration or settings.JWT_ACCESS_EXPIRATION, DEFAULT_ACCESS_TTL
            ),
            TokenKind.REFRESH: parse_duration(
                refresh_expiration or settings.JWT_REFRESH_EXPIRATION, DEFAULT_REFRESH_TTL
            ),
        }
        self._algorithm = algorithm or settings.JWT_ALGORITHM

    @staticmethod
    def hash_token(token: str) -> str:
        """计算令牌的SHA-256哈希"""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    def access_ttl_seconds(self) -> int:
        return self._ttls[TokenKind.ACCESS]

    def refresh_ttl_seconds(self) -> int:
        return self._ttls[TokenKind.REFRESH]

    def refresh_expires_at(self, now: Optional[datetime] = None) -> datetime:
        now = now or datetime.now(timezone.utc)
        return now + timedelta(seconds=self.refresh_ttl_seconds())

    def issue(self, user_id: int, email: str, roles: Iterable[str], kind: TokenKind) -> str:
        """签发令牌：sub / email / roles / type / jti / iat / exp"""
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(user_id),
            "email": email,
            "roles": sorted(roles),
            "type": kind.value,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + timedelta(seconds=self._ttls[kind]),
        }
        return jwt.encode(claims, self._secrets[kind], algorithm=self._algorithm)

    def issue_pair(self, user: User) -> TokenDTO:
        return TokenDTO(
            access_token=self.issue(user.id, user.email, user.roles, TokenKind.ACCESS),
            refresh_token=self.issue(user.id, user.email, user.roles, TokenKind.REFRESH),
            token_type="bearer",
            expires_in=self.access_ttl_seconds(),
            refresh_expires_in=self.refresh_ttl_seconds(),
        )

    def verify(self, token: str, kind: TokenKind) -> TokenPayload:
        """
        校验签名、过期时间与令牌类型。

        Raises:
            TokenExpiredException: 已过期
            InvalidTokenException: 格式错误、签名不匹配或类型不符
        """
        try:
            claims = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp", "iat", "type"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredException()
        except jwt.PyJWTError as e:
            logger.debug("token_rejected", kind=kind.value, error=str(e))
            raise InvalidTokenException()

        if claims.get("type") != kind.value:
            logger.debug("token_type_mismatch", expected=kind.value, actual=claims.get("type"))
            raise InvalidTokenException("Wrong token type")

        try:
            sub = int(claims["sub"])
        except (TypeError, ValueError):
            raise InvalidTokenException()

        known = {"sub", "email", "roles", "type", "jti", "iat", "exp"}
        return TokenPayload(
            sub=sub,
            email=claims.get("email") or "",
            roles=list(claims.get("roles") or []),
            type=kind,
            jti=claims.get("jti") or "",
            iat=int(claims["iat"]),
            exp=int(claims["exp"]),
            extra={k: v for k, v in claims.items() if k not in known},
        )
