"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secrets for settings validation (must differ)
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS__NAMESPACE", "test")
# GitHub 已配置，Google/Kakao 保持未配置
os.environ.setdefault("OAUTH__GITHUB__CLIENT_ID", "gh-client")
os.environ.setdefault("OAUTH__GITHUB__CLIENT_SECRET", "gh-secret")
os.environ.setdefault("OAUTH__GITHUB__CALLBACK_URL", "http://testserver/auth/github/callback")
os.environ.setdefault("OAUTH__MAX_RETRIES", "0")

from functools import partial  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fakeredis import FakeServer  # noqa: E402
from fakeredis import aioredis as fake_aioredis  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from api.dependencies import get_oauth_client_factory, get_redis, get_uow_factory  # noqa: E402
from application.services.auth_service import AuthApplicationService  # noqa: E402
from application.services.token_service import TokenService  # noqa: E402
from infrastructure.cache.session_store import RedisSessionStore  # noqa: E402
from infrastructure.database import create_tables  # noqa: E402
from infrastructure.external.oauth import build_oauth_client  # noqa: E402
from infrastructure.seed import seed_rbac  # noqa: E402
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork  # noqa: E402
from main import app  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path):
    # 文件库：并发测试需要各会话使用独立连接
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def uow_factory(engine):
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    return partial(SQLAlchemyUnitOfWork, session_factory)


@pytest_asyncio.fixture
async def seeded(uow_factory):
    async with uow_factory() as uow:
        await seed_rbac(uow)
    return uow_factory


@pytest_asyncio.fixture
async def redis():
    client = fake_aioredis.FakeRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def token_service():
    return TokenService()


@pytest.fixture
def session_store(redis):
    return RedisSessionStore(redis)


@pytest.fixture
def auth_service(seeded, session_store, token_service):
    return AuthApplicationService(seeded, session_store, token_service)


class OAuthProviderStub:
    """进程内的 OAuth 提供方；测试设置 handler 以返回令牌与资料"""

    def __init__(self):
        self.handler = None
        self.requests = []
        self.transport = httpx.MockTransport(self._dispatch)

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler is None:
            return httpx.Response(500)
        return self.handler(request)


@pytest.fixture
def oauth_provider():
    return OAuthProviderStub()


@pytest_asyncio.fixture
async def client(seeded, redis, oauth_provider):
    app.dependency_overrides[get_uow_factory] = lambda: seeded
    app.dependency_overrides[get_redis] = lambda: redis
    app.dependency_overrides[get_oauth_client_factory] = (
        lambda: partial(build_oauth_client, transport=oauth_provider.transport)
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()
