"""
刷新令牌持久化记录（只保存令牌哈希，从不保存原始令牌）
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass
class RefreshTokenRecord:
    id: Optional[int]
    user_id: int
    token_hash: str
    expires_at: datetime
    device_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    is_revoked: bool = False
    last_used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    revoke_reason: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        """未撤销且未过期"""
        return not self.is_revoked and not self.is_expired(now)
