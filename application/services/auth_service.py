"""
认证应用服务（会话编排）- 注册、登录、刷新轮转、登出与撤销

会话状态：匿名 -> 已认证 -> 访问令牌过期 -> 已撤销/已过期。
刷新令牌同时存在于两处：数据库中的持久化记录与 Redis 中的快速指针；
任何一处缺失或两者不一致都按无效处理。
"""
from typing import Callable, List, Optional, Tuple
from datetime import datetime, timedelta, timezone

from domain.auth.oauth import OAuthProfile
from domain.auth.refresh_token import RefreshTokenRecord
from domain.auth.session_store import SessionStore
from domain.common.exceptions import (
    AccountDisabledException,
    InvalidCredentialsException,
    InvalidTokenException,
    UserNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.user.entity import AuthProvider, User
from domain.user.service import CredentialVerifier, FederatedIdentityResolver
from application.dto import (
    ClientInfoDTO,
    LoginDTO,
    RegisterDTO,
    SessionDTO,
    TokenDTO,
    UserResponseDTO,
)
from application.services.token_service import TokenKind, TokenService
from core.logging_config import get_logger


logger = get_logger(__name__)


class AuthApplicationService:
    """认证应用服务 - 处理应用层逻辑"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        session_store: SessionStore,
        token_service: Optional[TokenService] = None,
    ):
        self._uow_factory = uow_factory
        self._session_store = session_store
        self._tokens = token_service or TokenService()

    @property
    def token_service(self) -> TokenService:
        return self._tokens

    # ------------------------------------------------------------ registration

    async def register(self, data: RegisterDTO) -> UserResponseDTO:
        """注册本地用户并分配 USER 角色（同一事务）"""
        async with self._uow_factory() as uow:
            verifier = CredentialVerifier(uow.user_repository, uow.role_repository)
            user = await verifier.register(
                email=data.email,
                password=data.password,
                name=data.name,
            )
            for event in verifier.get_domain_events():
                logger.info("domain_event", event_type=type(event).__name__, user_id=event.user_id)
            return self._to_response_dto(user)

    # ------------------------------------------------------------ sessions

    async def login(self, data: LoginDTO, client: Optional[ClientInfoDTO] = None) -> Tuple[UserResponseDTO, TokenDTO]:
        """
        邮箱/密码登录

        凭证不匹配统一返回 InvalidCredentialsException，不区分邮箱不存在或密码错误。
        """
        client = client or ClientInfoDTO()
        async with self._uow_factory() as uow:
            verifier = CredentialVerifier(uow.user_repository, uow.role_repository)
            user = await verifier.verify(data.email, data.password)
            if user is None:
                logger.info("login_failed", ip_address=client.ip_address)
                raise InvalidCredentialsException()

            user = await self._record_login(uow, user)
            tokens = await self._open_session(uow, user, client)

        logger.info("login_succeeded", user_id=user.id, device_id=client.device_id)
        return self._to_response_dto(user), tokens

    async def oauth_login(
        self,
        provider: AuthProvider,
        profile: OAuthProfile,
        client: Optional[ClientInfoDTO] = None,
    ) -> Tuple[UserResponseDTO, TokenDTO]:
        """第三方登录：按 (email, provider) 查找或创建用户后签发会话"""
        client = client or ClientInfoDTO()
        async with self._uow_factory() as uow:
            resolver = FederatedIdentityResolver(uow.user_repository, uow.role_repository)
            user = await resolver.find_or_create(
                email=profile.email,
                provider=provider,
                external_id=profile.id,
                name=profile.display_name,
                avatar=profile.avatar_url,
            )
            for event in resolver.get_domain_events():
                logger.info("domain_event", event_type=type(event).__name__, user_id=event.user_id)
            if not user.is_active:
                raise AccountDisabledException()

            user = await self._record_login(uow, user)
            tokens = await self._open_session(uow, user, client)

        logger.info("oauth_login_succeeded", user_id=user.id, provider=provider.value)
        return self._to_response_dto(user), tokens

    async def refresh(self, raw_token: Optional[str], client: Optional[ClientInfoDTO] = None) -> TokenDTO:
        """
        刷新令牌轮转

        流程：
        1. 用刷新密钥校验签名与过期时间
        2. 快速存储中必须存在指针，且指向令牌声明的用户
        3. 持久化记录必须存在、未撤销、未过期，且属于同一用户
        4. 条件更新消费旧记录，受影响行数必须为 1（并发请求只有一个成功）
        5. 重新加载用户（已停用则拒绝），签发并持久化新令牌对，删除旧指针
        """
        if not raw_token:
            raise InvalidTokenException("Refresh token missing")
        client = client or ClientInfoDTO()

        payload = self._tokens.verify(raw_token, TokenKind.REFRESH)
        token_hash = self._tokens.hash_token(raw_token)

        pointer_user_id = await self._session_store.get(token_hash)
        if pointer_user_id is None:
            logger.warning("refresh_token_reuse_rejected", user_id=payload.sub, reason="pointer_missing")
            raise InvalidTokenException("Refresh token revoked")
        if pointer_user_id != payload.sub:
            logger.warning(
                "refresh_token_store_mismatch",
                token_user_id=payload.sub,
                pointer_user_id=pointer_user_id,
            )
            raise InvalidTokenException()

        now = datetime.now(timezone.utc)
        async with self._uow_factory() as uow:
            record = await uow.refresh_token_repository.get_by_hash(token_hash)
            if record is None or record.user_id != pointer_user_id:
                logger.warning("refresh_token_store_mismatch", user_id=payload.sub, reason="record_missing")
                raise InvalidTokenException()
            if not record.is_usable(now):
                logger.warning(
                    "refresh_token_reuse_rejected",
                    user_id=record.user_id,
                    reason="revoked" if record.is_revoked else "expired",
                )
                raise InvalidTokenException("Refresh token revoked")

            if not await uow.refresh_token_repository.consume(token_hash, now):
                logger.warning("refresh_token_race_lost", user_id=record.user_id)
                raise InvalidTokenException("Refresh token revoked")

            user = await uow.user_repository.get_by_id(record.user_id)
            if user is None:
                raise InvalidTokenException()
            if not user.is_active:
                raise AccountDisabledException()
            user.roles, _ = await uow.role_repository.get_user_grants(user.id)

            tokens = await self._open_session(uow, user, client)
            await self._session_store.delete(token_hash)

        logger.info("refresh_token_rotated", user_id=user.id, device_id=client.device_id)
        return tokens

    async def logout(self, raw_token: Optional[str]) -> None:
        """撤销当前刷新令牌（幂等；令牌缺失或已失效时直接返回）"""
        if not raw_token:
            return
        token_hash = self._tokens.hash_token(raw_token)
        async with self._uow_factory() as uow:
            revoked = await uow.refresh_token_repository.revoke(token_hash, reason="logout")
            # 指针删除失败时记录撤销随事务回滚，错误交给调用方
            await self._session_store.delete(token_hash)
        logger.info("logout_completed", revoked=revoked)

    async def revoke_all_user_tokens(self, user_id: int, reason: Optional[str] = None) -> int:
        """撤销用户所有刷新令牌（登出所有设备），返回撤销的记录数"""
        async with self._uow_factory() as uow:
            count = await uow.refresh_token_repository.revoke_all_for_user(
                user_id,
                reason or "logout_all",
            )
        pointers = await self._session_store.revoke_all_for_user(user_id)
        logger.info("user_tokens_revoked", user_id=user_id, count=count, pointers=pointers)
        return count

    # ------------------------------------------------------------ queries

    async def get_current_user(self, user_id: int) -> UserResponseDTO:
        async with self._uow_factory(readonly=True) as uow:
            user = await uow.user_repository.get_by_id(user_id)
            if not user:
                raise UserNotFoundException(user_id)
            user.roles, _ = await uow.role_repository.get_user_grants(user.id)
            return self._to_response_dto(user)

    async def list_sessions(self, user_id: int) -> List[SessionDTO]:
        """获取用户的活跃会话列表"""
        now = datetime.now(timezone.utc)
        async with self._uow_factory(readonly=True) as uow:
            records = await uow.refresh_token_repository.list_active_for_user(user_id, now)
        return [
            SessionDTO(
                id=r.id,
                device_id=r.device_id,
                ip_address=r.ip_address,
                user_agent=r.user_agent,
                created_at=r.created_at,
                last_used_at=r.last_used_at,
                expires_at=r.expires_at,
            )
            for r in records
        ]

    async def cleanup_expired_tokens(self, days_before: int = 0) -> int:
        """物理删除已过期的刷新令牌记录"""
        before = datetime.now(timezone.utc) - timedelta(days=days_before)
        async with self._uow_factory() as uow:
            count = await uow.refresh_token_repository.cleanup_expired(before)
        logger.info("expired_tokens_cleaned", count=count)
        return count

    # ------------------------------------------------------------ helpers

    async def _record_login(self, uow: AbstractUnitOfWork, user: User) -> User:
        user.record_login()
        updated = await uow.user_repository.update(user)
        updated.roles, _ = await uow.role_repository.get_user_grants(updated.id)
        return updated

    async def _open_session(self, uow: AbstractUnitOfWork, user: User, client: ClientInfoDTO) -> TokenDTO:
        """签发令牌对，持久化刷新令牌记录并写入快速指针（同一事务内，指针写入失败即回滚）"""
        tokens = self._tokens.issue_pair(user)
        token_hash = self._tokens.hash_token(tokens.refresh_token)
        await uow.refresh_token_repository.create(
            RefreshTokenRecord(
                id=None,
                user_id=user.id,
                token_hash=token_hash,
                expires_at=self._tokens.refresh_expires_at(),
                device_id=client.device_id,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
                created_at=datetime.now(timezone.utc),
            )
        )
        await self._session_store.put(token_hash, user.id, self._tokens.refresh_ttl_seconds())
        return tokens

    @staticmethod
    def _to_response_dto(user: User) -> UserResponseDTO:
        return UserResponseDTO(
            id=user.id,
            email=user.email,
            name=user.name,
            avatar=user.avatar,
            provider=user.provider,
            email_verified=user.email_verified,
            is_active=user.is_active,
            roles=list(user.roles),
            created_at=user.created_at,
            last_login=user.last_login,
        )
