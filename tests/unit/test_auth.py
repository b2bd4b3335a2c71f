from datetime import timedelta

import jwt
import pytest
from assistflow.core.auth import (
    TOKEN_TYPE_REFRESH,
    TokenError,
    create_access_token,
    decode_access_token,
)


def test_create_and_decode_token_roundtrip() -> None:
    token = create_access_token("user-123", roles=["VERIFICATEUR"], email="user@example.com")

    payload = decode_access_token(token)

    assert payload["sub"] == "user-123"
    assert payload["roles"] == ["VERIFICATEUR"]
    assert payload["email"] == "user@example.com"
    assert payload["typ"] == "access"


def test_refresh_token_rejected_as_access_token() -> None:
    token = create_access_token("user-123", token_type=TOKEN_TYPE_REFRESH)

    with pytest.raises(TokenError):
        decode_access_token(token)

    assert decode_access_token(token, expected_type=TOKEN_TYPE_REFRESH)["sub"] == "user-123"


def test_expired_token_rejected() -> None:
    token = create_access_token("user-123", expires_delta=timedelta(seconds=-10))

    with pytest.raises(TokenError):
        decode_access_token(token)


def test_foreign_signature_rejected() -> None:
    forged = jwt.encode({"sub": "user-123", "exp": 4102444800}, "not-the-secret", algorithm="HS256")

    with pytest.raises(TokenError):
        decode_access_token(forged)
