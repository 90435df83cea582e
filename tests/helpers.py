"""Shared helpers for API-level tests."""
from typing import Optional

import httpx

from domain.rbac.entity import RoleName


DEFAULT_PASSWORD = "Passw0rd"


async def register_user(
    client: httpx.AsyncClient,
    email: str,
    password: str = DEFAULT_PASSWORD,
    name: Optional[str] = None,
) -> dict:
    resp = await client.post("/auth/register", json={"email": email, "password": password, "name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def login_user(client: httpx.AsyncClient, email: str, password: str = DEFAULT_PASSWORD) -> dict:
    resp = await client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["user"]


async def grant_role(uow_factory, user_id: int, role: RoleName) -> None:
    async with uow_factory() as uow:
        record = await uow.role_repository.get_by_name(role.value)
        await uow.role_repository.assign_role(user_id, record.id)
