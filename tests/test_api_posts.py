import pytest

from application.dto import PaginationParams, PostCreateDTO, PostUpdateDTO
from application.services.post_service import PostApplicationService, ensure_can_modify
from domain.auth.identity import Identity
from domain.common.exceptions import ForbiddenException
from domain.post.entity import Post
from domain.rbac.entity import RoleName
from domain.user.service import CredentialVerifier
from helpers import grant_role, login_user, register_user


async def _author_with_post(client, email="author@example.com"):
    author = await register_user(client, email, name="Author")
    await login_user(client, email)
    resp = await client.post("/posts", json={"title": "Hello", "content": "World"})
    assert resp.status_code == 201, resp.text
    return author, resp.json()["data"]


@pytest.mark.asyncio
async def test_create_requires_authentication(client):
    resp = await client.post("/posts", json={"title": "t", "content": "c"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_and_read_posts(client):
    author, post = await _author_with_post(client)
    assert post["author_id"] == author["id"]
    assert post["author_name"] == "Author"

    client.cookies.clear()
    listing = await client.get("/posts", params={"page": 1, "size": 10})
    assert listing.status_code == 200
    data = listing.json()["data"]
    assert data["total"] == 1 and data["pages"] == 1
    assert data["items"][0]["title"] == "Hello"

    single = await client.get(f"/posts/{post['id']}")
    assert single.status_code == 200
    assert single.json()["data"]["content"] == "World"

    missing = await client.get("/posts/9999")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_page_size_is_bounded(client):
    resp = await client.get("/posts", params={"size": 10_000})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_invalid_post_body(client):
    await register_user(client, "v@example.com")
    await login_user(client, "v@example.com")
    resp = await client.post("/posts", json={"title": "", "content": "c"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_owner_can_update_but_not_delete_without_permission(client):
    _, post = await _author_with_post(client)

    updated = await client.patch(f"/posts/{post['id']}", json={"title": "Edited"})
    assert updated.status_code == 200
    assert updated.json()["data"]["title"] == "Edited"
    assert updated.json()["data"]["content"] == "World"

    # USER 角色没有 posts:delete
    deleted = await client.delete(f"/posts/{post['id']}")
    assert deleted.status_code == 403
    assert deleted.json()["error"]["details"] == {"missing_permissions": ["posts:delete"]}


@pytest.mark.asyncio
async def test_non_owner_cannot_modify(client):
    _, post = await _author_with_post(client)
    await register_user(client, "intruder@example.com")
    await login_user(client, "intruder@example.com")

    resp = await client.patch(f"/posts/{post['id']}", json={"title": "Hijacked"})
    assert resp.status_code == 403
    assert resp.json()["error"]["type"] == "NotOwner"


@pytest.mark.asyncio
@pytest.mark.parametrize("role", [RoleName.ADMIN, RoleName.MODERATOR])
async def test_privileged_roles_bypass_ownership(client, seeded, role):
    _, post = await _author_with_post(client)
    staff = await register_user(client, f"{role.value.lower()}@example.com")
    await grant_role(seeded, staff["id"], role)
    await login_user(client, f"{role.value.lower()}@example.com")

    updated = await client.patch(f"/posts/{post['id']}", json={"content": "Moderated"})
    assert updated.status_code == 200

    deleted = await client.delete(f"/posts/{post['id']}")
    assert deleted.status_code == 204
    assert (await client.get(f"/posts/{post['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_missing_post_is_404_before_ownership(client, seeded):
    staff = await register_user(client, "mod@example.com")
    await grant_role(seeded, staff["id"], RoleName.MODERATOR)
    await login_user(client, "mod@example.com")
    resp = await client.delete("/posts/424242")
    assert resp.status_code == 404


def test_ensure_can_modify():
    post = Post(id=1, title="t", content="c", author_id=10)
    ensure_can_modify(post, Identity.build(10, "a@example.com", ["USER"], []))
    ensure_can_modify(post, Identity.build(11, "m@example.com", ["MODERATOR"], []))
    with pytest.raises(ForbiddenException):
        ensure_can_modify(post, Identity.build(11, "u@example.com", ["USER"], ["posts:update"]))


@pytest.mark.asyncio
async def test_post_service_update_keeps_unset_fields(seeded):
    async with seeded() as uow:
        user = await CredentialVerifier(uow.user_repository, uow.role_repository).register("svc@example.com", "Passw0rd", "Svc")
    identity = Identity.build(user.id, user.email, ["USER"], ["posts:create", "posts:update"])
    svc = PostApplicationService(seeded)

    created = await svc.create_post(PostCreateDTO(title="A", content="B"), identity)
    assert created.author_name == "Svc"
    updated = await svc.update_post(created.id, PostUpdateDTO(content="C"), identity)
    assert updated.title == "A" and updated.content == "C"

    items, total = await svc.list_posts(PaginationParams())
    assert total == 1 and items[0].id == created.id
