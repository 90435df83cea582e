import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from domain.common.exceptions import ServiceUnavailableException
from infrastructure.cache.session_store import RedisOAuthStateStore, RedisSessionStore


class UnavailableRedis:
    """每个命令都抛出连接错误"""

    async def _fail(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")

    set = get = delete = getdel = mget = _fail

    async def scan_iter(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")
        yield  # pragma: no cover


@pytest.mark.asyncio
async def test_put_get_delete(redis):
    store = RedisSessionStore(redis, namespace="ns")
    await store.put("abc", 5, 60)

    assert await redis.get("ns:refresh_token:abc") == "5"
    assert 0 < await redis.ttl("ns:refresh_token:abc") <= 60
    assert await store.get("abc") == 5

    await store.delete("abc")
    assert await store.get("abc") is None
    # 删除不存在的键是幂等的
    await store.delete("abc")


@pytest.mark.asyncio
async def test_malformed_pointer_reads_as_missing(redis):
    store = RedisSessionStore(redis, namespace="ns")
    await redis.set("ns:refresh_token:bad", "not-a-number")
    assert await store.get("bad") is None


@pytest.mark.asyncio
async def test_revoke_all_only_removes_owned_pointers(redis):
    store = RedisSessionStore(redis, namespace="ns")
    for i in range(450):
        await store.put(f"u1-{i}", 1, 600)
    await store.put("u2-a", 2, 600)
    await store.put("u12-a", 12, 600)
    await redis.set("ns:oauth_state:GITHUB:s", "1")

    removed = await store.revoke_all_for_user(1)

    assert removed == 450
    assert await store.get("u1-0") is None
    assert await store.get("u2-a") == 2
    assert await store.get("u12-a") == 12
    assert await redis.get("ns:oauth_state:GITHUB:s") == "1"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.put("h", 1, 10),
        lambda s: s.get("h"),
        lambda s: s.delete("h"),
        lambda s: s.revoke_all_for_user(1),
    ],
)
async def test_store_errors_surface_as_service_unavailable(call):
    store = RedisSessionStore(UnavailableRedis(), namespace="ns")
    with pytest.raises(ServiceUnavailableException) as exc_info:
        await call(store)
    assert exc_info.value.details["service"] == "session_store"


@pytest.mark.asyncio
async def test_oauth_state_is_single_use_and_provider_bound(redis):
    store = RedisOAuthStateStore(redis, namespace="ns", ttl_seconds=30)
    state = await store.issue("GITHUB")

    assert len(state) >= 32
    assert 0 < await redis.ttl(f"ns:oauth_state:GITHUB:{state}") <= 30
    assert await store.consume("GOOGLE", state) is False
    assert await store.consume("GITHUB", state) is True
    assert await store.consume("GITHUB", state) is False
    assert await store.consume("GITHUB", "") is False
