from datetime import datetime, timedelta, timezone

import jwt
import pytest

from application.services.token_service import (
    DEFAULT_ACCESS_TTL,
    DEFAULT_REFRESH_TTL,
    TokenKind,
    TokenService,
    parse_duration,
)
from domain.common.exceptions import InvalidTokenException, TokenExpiredException
from domain.user.entity import AuthProvider, User


def _user() -> User:
    return User(
        id=7,
        email="Alice@Example.com",
        name="Alice",
        hashed_password=None,
        provider=AuthProvider.LOCAL,
        roles=["USER", "ADMIN"],
    )


@pytest.mark.parametrize(
    "value, expected",
    [
        ("15m", 900),
        ("7d", 604800),
        ("30s", 30),
        ("2h", 7200),
        ("15x", DEFAULT_ACCESS_TTL),
        ("", DEFAULT_ACCESS_TTL),
        (None, DEFAULT_ACCESS_TTL),
        ("m15", DEFAULT_ACCESS_TTL),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value, DEFAULT_ACCESS_TTL) == expected


def test_malformed_expirations_fall_back_to_defaults():
    svc = TokenService(access_expiration="soon", refresh_expiration="1 week")
    assert svc.access_ttl_seconds() == DEFAULT_ACCESS_TTL
    assert svc.refresh_ttl_seconds() == DEFAULT_REFRESH_TTL


def test_issue_pair_claims():
    svc = TokenService()
    pair = svc.issue_pair(_user())

    access = svc.verify(pair.access_token, TokenKind.ACCESS)
    refresh = svc.verify(pair.refresh_token, TokenKind.REFRESH)

    assert access.sub == 7 and refresh.sub == 7
    assert access.email == "alice@example.com"
    assert access.roles == ["ADMIN", "USER"]
    assert access.type is TokenKind.ACCESS
    assert access.exp - access.iat == svc.access_ttl_seconds()
    assert pair.expires_in == svc.access_ttl_seconds()
    assert pair.refresh_expires_in == svc.refresh_ttl_seconds()


def test_tokens_issued_together_are_distinct():
    svc = TokenService()
    user = _user()
    first = svc.issue(user.id, user.email, user.roles, TokenKind.REFRESH)
    second = svc.issue(user.id, user.email, user.roles, TokenKind.REFRESH)
    assert first != second
    assert svc.hash_token(first) != svc.hash_token(second)


def test_access_token_rejected_as_refresh_and_vice_versa():
    svc = TokenService()
    pair = svc.issue_pair(_user())
    # 不同密钥，签名校验即失败
    with pytest.raises(InvalidTokenException):
        svc.verify(pair.access_token, TokenKind.REFRESH)
    with pytest.raises(InvalidTokenException):
        svc.verify(pair.refresh_token, TokenKind.ACCESS)


def test_wrong_type_claim_rejected_even_with_matching_secret():
    svc = TokenService(access_secret="same", refresh_secret="same")
    token = svc.issue(1, "a@example.com", [], TokenKind.ACCESS)
    with pytest.raises(InvalidTokenException):
        svc.verify(token, TokenKind.REFRESH)


def test_expired_token():
    svc = TokenService(access_secret="k1", refresh_secret="k2")
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    token = jwt.encode(
        {"sub": "1", "type": "access", "iat": past, "exp": past + timedelta(minutes=1)},
        "k1",
        algorithm="HS256",
    )
    with pytest.raises(TokenExpiredException):
        svc.verify(token, TokenKind.ACCESS)


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_malformed_token(token):
    with pytest.raises(InvalidTokenException):
        TokenService().verify(token, TokenKind.ACCESS)


def test_missing_required_claim():
    svc = TokenService(access_secret="k1", refresh_secret="k2")
    now = datetime.now(timezone.utc)
    token = jwt.encode({"sub": "1", "iat": now, "exp": now + timedelta(minutes=5)}, "k1", algorithm="HS256")
    with pytest.raises(InvalidTokenException):
        svc.verify(token, TokenKind.ACCESS)


def test_hash_token_is_sha256_hex():
    digest = TokenService.hash_token("abc")
    assert digest == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
