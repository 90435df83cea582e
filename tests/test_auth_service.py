import asyncio
from datetime import datetime, timezone

import pytest
from redis.exceptions import TimeoutError as RedisTimeoutError

from application.dto import ClientInfoDTO, LoginDTO, RegisterDTO
from application.services.auth_service import AuthApplicationService
from application.services.token_service import TokenService
from domain.auth.oauth import OAuthProfile
from domain.common.exceptions import (
    AccountDisabledException,
    InvalidCredentialsException,
    InvalidTokenException,
    ServiceUnavailableException,
    TokenExpiredException,
)
from domain.user.entity import AuthProvider
from infrastructure.cache.session_store import RedisSessionStore


CLIENT = ClientInfoDTO(device_id="phone", ip_address="10.0.0.1", user_agent="pytest")


async def _login(auth_service, email="s@example.com", password="Passw0rd"):
    await auth_service.register(RegisterDTO(email=email, password=password, name="S"))
    return await auth_service.login(LoginDTO(email=email, password=password), CLIENT)


@pytest.mark.asyncio
async def test_login_persists_record_and_pointer(auth_service, session_store, token_service, seeded):
    user, tokens = await _login(auth_service)
    token_hash = token_service.hash_token(tokens.refresh_token)

    assert user.roles == ["USER"]
    assert user.last_login is not None
    assert await session_store.get(token_hash) == user.id
    async with seeded(readonly=True) as uow:
        record = await uow.refresh_token_repository.get_by_hash(token_hash)
    assert record.user_id == user.id
    assert record.device_id == "phone"
    assert record.ip_address == "10.0.0.1"


@pytest.mark.asyncio
async def test_login_failures_are_indistinguishable(auth_service):
    await auth_service.register(RegisterDTO(email="x@example.com", password="Passw0rd"))
    with pytest.raises(InvalidCredentialsException) as unknown:
        await auth_service.login(LoginDTO(email="nobody@example.com", password="Passw0rd"))
    with pytest.raises(InvalidCredentialsException) as wrong:
        await auth_service.login(LoginDTO(email="x@example.com", password="Wrong0ne"))
    assert unknown.value.message == wrong.value.message == "Invalid credentials"


@pytest.mark.asyncio
async def test_refresh_rotates_and_old_token_is_dead(auth_service, session_store, token_service, seeded):
    user, tokens = await _login(auth_service)
    rotated = await auth_service.refresh(tokens.refresh_token, CLIENT)

    assert rotated.refresh_token != tokens.refresh_token
    assert rotated.access_token != tokens.access_token
    assert await session_store.get(token_service.hash_token(tokens.refresh_token)) is None
    assert await session_store.get(token_service.hash_token(rotated.refresh_token)) == user.id

    with pytest.raises(InvalidTokenException):
        await auth_service.refresh(tokens.refresh_token, CLIENT)

    async with seeded(readonly=True) as uow:
        old = await uow.refresh_token_repository.get_by_hash(token_service.hash_token(tokens.refresh_token))
    assert old.is_revoked and old.revoke_reason == "rotated"

    # 新令牌继续可用
    await auth_service.refresh(rotated.refresh_token, CLIENT)


@pytest.mark.asyncio
async def test_concurrent_refresh_has_exactly_one_winner(auth_service):
    _, tokens = await _login(auth_service)

    results = await asyncio.gather(
        *(auth_service.refresh(tokens.refresh_token, CLIENT) for _ in range(2)),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, BaseException)]
    losers = [r for r in results if isinstance(r, BaseException)]
    assert len(winners) == 1
    assert len(losers) == 1 and isinstance(losers[0], InvalidTokenException)


@pytest.mark.asyncio
async def test_access_token_cannot_refresh(auth_service):
    _, tokens = await _login(auth_service)
    with pytest.raises(InvalidTokenException):
        await auth_service.refresh(tokens.access_token, CLIENT)
    with pytest.raises(InvalidTokenException):
        await auth_service.refresh(None, CLIENT)


@pytest.mark.asyncio
async def test_missing_pointer_fails_closed(auth_service, session_store, token_service, seeded):
    _, tokens = await _login(auth_service)
    token_hash = token_service.hash_token(tokens.refresh_token)
    await session_store.delete(token_hash)

    with pytest.raises(InvalidTokenException):
        await auth_service.refresh(tokens.refresh_token, CLIENT)

    # 持久化记录未被消费
    async with seeded(readonly=True) as uow:
        record = await uow.refresh_token_repository.get_by_hash(token_hash)
    assert not record.is_revoked


@pytest.mark.asyncio
async def test_revoked_record_with_live_pointer_fails_closed(auth_service, session_store, token_service, seeded):
    user, tokens = await _login(auth_service)
    token_hash = token_service.hash_token(tokens.refresh_token)
    async with seeded() as uow:
        await uow.refresh_token_repository.revoke(token_hash, reason="test")

    assert await session_store.get(token_hash) == user.id
    with pytest.raises(InvalidTokenException):
        await auth_service.refresh(tokens.refresh_token, CLIENT)


@pytest.mark.asyncio
async def test_pointer_for_other_user_fails_closed(auth_service, session_store, token_service):
    user, tokens = await _login(auth_service)
    await session_store.put(token_service.hash_token(tokens.refresh_token), user.id + 100, 60)
    with pytest.raises(InvalidTokenException):
        await auth_service.refresh(tokens.refresh_token, CLIENT)


@pytest.mark.asyncio
async def test_refresh_rejects_deactivated_user(auth_service, seeded):
    user, tokens = await _login(auth_service)
    async with seeded() as uow:
        stored = await uow.user_repository.get_by_id(user.id)
        stored.deactivate()
        await uow.user_repository.update(stored)

    with pytest.raises(AccountDisabledException):
        await auth_service.refresh(tokens.refresh_token, CLIENT)


@pytest.mark.asyncio
async def test_expired_refresh_token(auth_service, seeded, session_store):
    short = AuthApplicationService(seeded, session_store, TokenService(refresh_expiration="1s"))
    _, tokens = await _login(short)
    await asyncio.sleep(1.1)
    with pytest.raises(TokenExpiredException):
        await short.refresh(tokens.refresh_token, CLIENT)


@pytest.mark.asyncio
async def test_logout_is_idempotent(auth_service, session_store, token_service):
    _, tokens = await _login(auth_service)
    await auth_service.logout(tokens.refresh_token)
    await auth_service.logout(tokens.refresh_token)
    await auth_service.logout(None)

    assert await session_store.get(token_service.hash_token(tokens.refresh_token)) is None
    with pytest.raises(InvalidTokenException):
        await auth_service.refresh(tokens.refresh_token, CLIENT)


@pytest.mark.asyncio
async def test_revoke_all_invalidates_every_session(auth_service, session_store, token_service):
    await auth_service.register(RegisterDTO(email="multi@example.com", password="Passw0rd"))
    sessions = []
    for device in ("a", "b", "c"):
        user, tokens = await auth_service.login(
            LoginDTO(email="multi@example.com", password="Passw0rd"),
            ClientInfoDTO(device_id=device),
        )
        sessions.append(tokens)
    _, other = await _login(auth_service, email="bystander@example.com")

    assert len(await auth_service.list_sessions(user.id)) == 3
    assert await auth_service.revoke_all_user_tokens(user.id) == 3
    assert await auth_service.list_sessions(user.id) == []

    for tokens in sessions:
        assert await session_store.get(token_service.hash_token(tokens.refresh_token)) is None
        with pytest.raises(InvalidTokenException):
            await auth_service.refresh(tokens.refresh_token, CLIENT)

    # 其他用户不受影响
    await auth_service.refresh(other.refresh_token, CLIENT)


class _FlakyRedis:
    """包装 fakeredis；打开开关后所有命令超时"""

    def __init__(self, inner):
        self._inner = inner
        self.down = False

    def __getattr__(self, name):
        attr = getattr(self._inner, name)
        if not callable(attr):
            return attr

        async def call(*args, **kwargs):
            if self.down:
                raise RedisTimeoutError("timed out")
            return await attr(*args, **kwargs)

        return call


@pytest.mark.asyncio
async def test_store_outage_fails_closed(seeded, redis, token_service):
    flaky = _FlakyRedis(redis)
    svc = AuthApplicationService(seeded, RedisSessionStore(flaky), token_service)
    await svc.register(RegisterDTO(email="o@example.com", password="Passw0rd"))
    _, tokens = await svc.login(LoginDTO(email="o@example.com", password="Passw0rd"))

    flaky.down = True
    with pytest.raises(ServiceUnavailableException):
        await svc.refresh(tokens.refresh_token, CLIENT)
    with pytest.raises(ServiceUnavailableException):
        await svc.login(LoginDTO(email="o@example.com", password="Passw0rd"))

    # 指针写入失败时数据库记录随事务回滚
    async with seeded(readonly=True) as uow:
        user = await uow.user_repository.get_by_email_and_provider("o@example.com", AuthProvider.LOCAL)
        active = await uow.refresh_token_repository.list_active_for_user(user.id, datetime.now(timezone.utc))
    assert len(active) == 1

    flaky.down = False
    await svc.refresh(tokens.refresh_token, CLIENT)


@pytest.mark.asyncio
async def test_logout_surfaces_store_outage(seeded, redis, token_service):
    flaky = _FlakyRedis(redis)
    svc = AuthApplicationService(seeded, RedisSessionStore(flaky), token_service)
    await svc.register(RegisterDTO(email="l@example.com", password="Passw0rd"))
    _, tokens = await svc.login(LoginDTO(email="l@example.com", password="Passw0rd"))
    token_hash = token_service.hash_token(tokens.refresh_token)

    flaky.down = True
    with pytest.raises(ServiceUnavailableException):
        await svc.logout(tokens.refresh_token)

    # 撤销未完成：指针与记录都保持原状
    assert await redis.get(f"test:refresh_token:{token_hash}") is not None
    async with seeded(readonly=True) as uow:
        record = await uow.refresh_token_repository.get_by_hash(token_hash)
    assert not record.is_revoked

    flaky.down = False
    await svc.logout(tokens.refresh_token)
    assert await redis.get(f"test:refresh_token:{token_hash}") is None
    with pytest.raises(InvalidTokenException):
        await svc.refresh(tokens.refresh_token, CLIENT)


@pytest.mark.asyncio
async def test_oauth_login_creates_then_reuses_user(auth_service):
    profile = OAuthProfile(id="77", email="Octo@Example.com", display_name="Octo", avatar_url=None)
    first, _ = await auth_service.oauth_login(AuthProvider.GITHUB, profile, CLIENT)
    second, tokens = await auth_service.oauth_login(AuthProvider.GITHUB, profile, CLIENT)

    assert first.id == second.id
    assert second.provider == "GITHUB"
    assert second.email_verified
    assert second.roles == ["USER"]
    await auth_service.refresh(tokens.refresh_token, CLIENT)


@pytest.mark.asyncio
async def test_cleanup_expired_tokens(seeded, session_store, auth_service):
    short = AuthApplicationService(seeded, session_store, TokenService(refresh_expiration="1s"))
    await _login(short, email="old@example.com")
    _, live = await _login(auth_service, email="live@example.com")
    await asyncio.sleep(1.1)

    assert await auth_service.cleanup_expired_tokens() == 1
    assert await auth_service.cleanup_expired_tokens() == 0
    await auth_service.refresh(live.refresh_token, CLIENT)
