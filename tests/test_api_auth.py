import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from domain.rbac.entity import RoleName
from helpers import DEFAULT_PASSWORD, grant_role, login_user, register_user


def _walk_keys(value):
    if isinstance(value, dict):
        for key, item in value.items():
            yield key
            yield from _walk_keys(item)
    elif isinstance(value, list):
        for item in value:
            yield from _walk_keys(item)


@pytest.mark.asyncio
async def test_register_login_refresh_me_scenario(client):
    user = await register_user(client, "Flow@Example.com", name="Flow")
    assert user["email"] == "flow@example.com"
    assert user["roles"] == ["USER"]

    resp = await client.post("/auth/login", json={"email": "flow@example.com", "password": DEFAULT_PASSWORD})
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Login successful"
    assert body["data"]["user"]["id"] == user["id"]
    set_cookie = ", ".join(resp.headers.get_list("set-cookie"))
    assert "access_token=" in set_cookie and "refresh_token=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "samesite=lax" in set_cookie.lower()
    old_refresh = client.cookies.get("refresh_token")

    me = await client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "flow@example.com"

    refreshed = await client.post("/auth/refresh")
    assert refreshed.status_code == 200
    assert refreshed.json()["message"] == "Token refreshed"
    assert client.cookies.get("refresh_token") != old_refresh

    me_again = await client.get("/auth/me")
    assert me_again.status_code == 200

    # 旧刷新令牌已失效
    replay = await client.post("/auth/refresh", headers={"Cookie": f"refresh_token={old_refresh}"})
    assert replay.status_code == 401


@pytest.mark.asyncio
async def test_no_password_material_in_outputs(client):
    registered = await register_user(client, "safe@example.com")
    await login_user(client, "safe@example.com")
    me = (await client.get("/auth/me")).json()
    login = (await client.post("/auth/login", json={"email": "safe@example.com", "password": DEFAULT_PASSWORD})).json()

    for payload in (registered, me, login):
        keys = set(_walk_keys(payload))
        assert "password" not in keys
        assert "hashed_password" not in keys
    assert "access_token" not in set(_walk_keys(login))


@pytest.mark.asyncio
async def test_register_conflict_and_validation(client):
    await register_user(client, "taken@example.com")

    dup = await client.post("/auth/register", json={"email": "taken@example.com", "password": DEFAULT_PASSWORD})
    assert dup.status_code == 400
    assert "already exists" in dup.json()["message"]

    weak = await client.post("/auth/register", json={"email": "weak@example.com", "password": "alllower1"})
    assert weak.status_code == 400
    assert weak.json()["error"]["field"] == "password"

    bad_email = await client.post("/auth/register", json={"email": "not-an-email", "password": DEFAULT_PASSWORD})
    assert bad_email.status_code == 400


@pytest.mark.asyncio
async def test_login_failure_is_generic(client):
    await register_user(client, "who@example.com")
    unknown = await client.post("/auth/login", json={"email": "ghost@example.com", "password": DEFAULT_PASSWORD})
    wrong = await client.post("/auth/login", json={"email": "who@example.com", "password": "Wrong0ne"})

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json()["message"] == wrong.json()["message"] == "Invalid credentials"
    assert unknown.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_me_requires_authentication(client):
    resp = await client.get("/auth/me")
    assert resp.status_code == 401
    assert resp.json()["error"]["type"] == "Unauthorized"

    bearer = await client.get("/auth/me", headers={"Authorization": "Bearer garbage"})
    assert bearer.status_code == 401


@pytest.mark.asyncio
async def test_bearer_header_is_accepted(client):
    await register_user(client, "bearer@example.com")
    await login_user(client, "bearer@example.com")
    token = client.cookies.get("access_token")
    client.cookies.clear()

    resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_refresh_without_cookie(client):
    resp = await client.post("/auth/refresh")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_concurrent_refresh_over_http(client):
    await register_user(client, "race@example.com")
    await login_user(client, "race@example.com")
    refresh_token = client.cookies.get("refresh_token")

    responses = await asyncio.gather(
        *(client.post("/auth/refresh", headers={"Cookie": f"refresh_token={refresh_token}"}) for _ in range(2))
    )
    assert sorted(r.status_code for r in responses) == [200, 401]


@pytest.mark.asyncio
async def test_logout_clears_cookies_and_revokes(client):
    await register_user(client, "bye@example.com")
    await login_user(client, "bye@example.com")
    refresh_token = client.cookies.get("refresh_token")

    resp = await client.post("/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Logout successful"
    assert client.cookies.get("access_token") is None
    assert client.cookies.get("refresh_token") is None

    again = await client.post("/auth/logout")
    assert again.status_code == 200

    replay = await client.post("/auth/refresh", headers={"Cookie": f"refresh_token={refresh_token}"})
    assert replay.status_code == 401


@pytest.mark.asyncio
async def test_sessions_and_logout_all(client):
    await register_user(client, "many@example.com")
    for device in ("a", "b"):
        resp = await client.post(
            "/auth/login",
            json={"email": "many@example.com", "password": DEFAULT_PASSWORD},
            headers={"X-Device-Id": device},
        )
        assert resp.status_code == 200
    stale_refresh = client.cookies.get("refresh_token")

    sessions = await client.get("/auth/sessions")
    assert sessions.status_code == 200
    assert {s["device_id"] for s in sessions.json()["data"]} == {"a", "b"}
    assert all("token_hash" not in s for s in sessions.json()["data"])

    out = await client.post("/auth/logout-all")
    assert out.status_code == 200
    assert out.json()["data"]["revoked_count"] == 2

    replay = await client.post("/auth/refresh", headers={"Cookie": f"refresh_token={stale_refresh}"})
    assert replay.status_code == 401


@pytest.mark.asyncio
async def test_admin_revokes_other_users_sessions(client, seeded):
    victim = await register_user(client, "victim@example.com")
    await login_user(client, "victim@example.com")
    victim_refresh = client.cookies.get("refresh_token")

    admin = await register_user(client, "boss@example.com")
    await login_user(client, "boss@example.com")
    victim_id = victim["id"]

    forbidden = await client.post(f"/auth/users/{victim_id}/revoke-sessions")
    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["details"] == {"missing_permissions": ["users:manage"]}

    await grant_role(seeded, admin["id"], RoleName.ADMIN)
    resp = await client.post(f"/auth/users/{victim_id}/revoke-sessions")
    assert resp.status_code == 200
    assert resp.json()["data"]["revoked_count"] == 1

    replay = await client.post("/auth/refresh", headers={"Cookie": f"refresh_token={victim_refresh}"})
    assert replay.status_code == 401


@pytest.mark.asyncio
async def test_store_outage_returns_503(client, redis, monkeypatch):
    await register_user(client, "down@example.com")
    await login_user(client, "down@example.com")

    async def broken(*args, **kwargs):
        raise RedisConnectionError("down")

    monkeypatch.setattr(redis, "get", broken)
    resp = await client.post("/auth/refresh")
    assert resp.status_code == 503
    assert resp.json()["error"]["type"] == "ServiceUnavailable"


@pytest.mark.asyncio
async def test_public_root_and_health(client):
    assert (await client.get("/")).status_code == 200
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["data"] == {"status": "healthy"}
    assert "x-request-id" in health.headers
