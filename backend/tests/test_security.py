"""Tests for token primitives and credential extraction."""

from datetime import datetime, timedelta, timezone

import pytest

from core import hash_password, needs_rehash, verify_password
from core.errors import Unauthenticated
from core.security import TokenCodec, TokenError, TokenExpiredError
from services.auth import extract_credential


def test_token_round_trip_carries_subject_and_type() -> None:
    codec = TokenCodec("secret", access_ttl=timedelta(minutes=5))
    payload = codec.decode(codec.create_access_token("user-1"))

    assert payload["sub"] == "user-1"
    assert payload["type"] == "access"
    assert payload["exp"] - payload["iat"] == 300


def test_expired_token_raises_expired_error() -> None:
    codec = TokenCodec("secret")
    token = codec.create_access_token(
        "user-1",
        now=datetime.now(timezone.utc) - timedelta(days=30),
        expires_delta=timedelta(minutes=1),
    )
    with pytest.raises(TokenExpiredError):
        codec.decode(token)


def test_foreign_signature_raises_token_error() -> None:
    token = TokenCodec("secret-a").create_access_token("user-1")
    with pytest.raises(TokenError) as excinfo:
        TokenCodec("secret-b").decode(token)
    assert not isinstance(excinfo.value, TokenExpiredError)


def test_codec_requires_secret() -> None:
    with pytest.raises(ValueError):
        TokenCodec("")


def test_password_hashing() -> None:
    hashed = hash_password("Sup3rSecret!")

    assert verify_password("Sup3rSecret!", hashed)
    assert not verify_password("wrong-password", hashed)
    assert not verify_password("Sup3rSecret!", None)
    assert not verify_password("Sup3rSecret!", "not-a-hash")
    assert not needs_rehash(hashed)


def test_extract_credential_prefers_header() -> None:
    assert extract_credential("Bearer header-token", "cookie-token") == "header-token"
    assert extract_credential("bearer  spaced ", None) == "spaced"
    assert extract_credential(None, "cookie-token") == "cookie-token"


@pytest.mark.parametrize(
    ("authorization", "cookie"),
    [
        (None, None),
        (None, ""),
        ("Basic abc", "cookie-token"),
        ("Bearer", None),
        ("Bearer   ", "cookie-token"),
    ],
)
def test_extract_credential_rejects(authorization, cookie) -> None:
    with pytest.raises(Unauthenticated):
        extract_credential(authorization, cookie)
