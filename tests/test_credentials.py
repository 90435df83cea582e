import pytest

from domain.common.exceptions import (
    AccountDisabledException,
    DefaultRoleMissingException,
    DomainValidationException,
    UserAlreadyExistsException,
)
from domain.user.entity import AuthProvider
from domain.user.service import CredentialVerifier, FederatedIdentityResolver, PasswordService


@pytest.mark.parametrize("password", ["Ab1", "alllower1", "ALLUPPER1", "NoDigitsHere", "A1" + "a" * 71])
def test_password_policy_rejects(password):
    with pytest.raises(DomainValidationException) as exc_info:
        PasswordService.validate_password_strength(password)
    assert exc_info.value.field == "password"


def test_password_hash_roundtrip_and_limits():
    hashed = PasswordService.hash_password("Passw0rd")
    assert hashed != "Passw0rd"
    assert PasswordService.verify_password("Passw0rd", hashed)
    assert not PasswordService.verify_password("passw0rd", hashed)
    assert not PasswordService.verify_password("x" * 73, hashed)
    assert not PasswordService.verify_password("Passw0rd", None)
    assert not PasswordService.verify_password("Passw0rd", "not-a-bcrypt-hash")


@pytest.mark.asyncio
async def test_register_assigns_only_default_role(seeded):
    async with seeded() as uow:
        verifier = CredentialVerifier(uow.user_repository, uow.role_repository)
        user = await verifier.register("New@Example.com", "Passw0rd", "New")

    assert user.email == "new@example.com"
    assert user.roles == ["USER"]
    async with seeded(readonly=True) as uow:
        roles, permissions = await uow.role_repository.get_user_grants(user.id)
    assert roles == ["USER"]
    assert set(permissions) == {"posts:create", "posts:read", "posts:update"}


@pytest.mark.asyncio
async def test_register_duplicate_local_email(seeded):
    async with seeded() as uow:
        await CredentialVerifier(uow.user_repository, uow.role_repository).register("dup@example.com", "Passw0rd")
    with pytest.raises(UserAlreadyExistsException):
        async with seeded() as uow:
            await CredentialVerifier(uow.user_repository, uow.role_repository).register("DUP@example.com", "Passw0rd")


@pytest.mark.asyncio
async def test_register_without_seeded_role_rolls_back(uow_factory):
    with pytest.raises(DefaultRoleMissingException):
        async with uow_factory() as uow:
            await CredentialVerifier(uow.user_repository, uow.role_repository).register("a@example.com", "Passw0rd")

    async with uow_factory(readonly=True) as uow:
        assert not await uow.user_repository.exists_local_email("a@example.com")


@pytest.mark.asyncio
async def test_verify_does_not_distinguish_failures(seeded):
    async with seeded() as uow:
        verifier = CredentialVerifier(uow.user_repository, uow.role_repository)
        await verifier.register("known@example.com", "Passw0rd")
        await FederatedIdentityResolver(uow.user_repository, uow.role_repository).find_or_create(
            "fed@example.com", AuthProvider.GITHUB, "42"
        )

    async with seeded(readonly=True) as uow:
        verifier = CredentialVerifier(uow.user_repository, uow.role_repository)
        assert await verifier.verify("unknown@example.com", "Passw0rd") is None
        assert await verifier.verify("known@example.com", "Wrong0ne") is None
        # 第三方账号没有密码
        assert await verifier.verify("fed@example.com", "Passw0rd") is None
        user = await verifier.verify("KNOWN@example.com", "Passw0rd")
        assert user is not None and user.email == "known@example.com"


@pytest.mark.asyncio
async def test_verify_inactive_account(seeded):
    async with seeded() as uow:
        user = await CredentialVerifier(uow.user_repository, uow.role_repository).register("off@example.com", "Passw0rd")
        user.deactivate()
        await uow.user_repository.update(user)

    async with seeded(readonly=True) as uow:
        verifier = CredentialVerifier(uow.user_repository, uow.role_repository)
        with pytest.raises(AccountDisabledException):
            await verifier.verify("off@example.com", "Passw0rd")
        # 密码错误时仍然只是 None
        assert await verifier.verify("off@example.com", "Wrong0ne") is None


@pytest.mark.asyncio
async def test_federated_resolver_is_idempotent(seeded):
    async with seeded() as uow:
        resolver = FederatedIdentityResolver(uow.user_repository, uow.role_repository)
        first = await resolver.find_or_create("Gh@Example.com", AuthProvider.GITHUB, "99", "Octo", "http://a/1.png")
        second = await resolver.find_or_create("gh@example.com", AuthProvider.GITHUB, "99", "Other")
        events = resolver.get_domain_events()

    assert first.id == second.id
    assert first.email_verified
    assert first.hashed_password is None
    assert len(events) == 1


@pytest.mark.asyncio
async def test_same_email_different_providers_are_separate_users(seeded):
    async with seeded() as uow:
        local = await CredentialVerifier(uow.user_repository, uow.role_repository).register("same@example.com", "Passw0rd")
        federated = await FederatedIdentityResolver(uow.user_repository, uow.role_repository).find_or_create(
            "same@example.com", AuthProvider.GOOGLE, "g-1"
        )
    assert local.id != federated.id
    assert federated.provider == AuthProvider.GOOGLE
