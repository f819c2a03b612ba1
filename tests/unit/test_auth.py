"""Supabase token verification for owner endpoints."""

import json
import time

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi import HTTPException

import app.dependencies.auth as auth_module
from app.dependencies.auth import get_current_user_id, verify_supabase_token


def bearer(token):
    return f"Bearer {token}"


def test_valid_token_returns_sub(token_factory):
    assert get_current_user_id(bearer(token_factory("user-42"))) == "user-42"


@pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer ", "Bearer null", "Bearer not-a-jwt"])
def test_malformed_headers_are_unauthorized(header):
    with pytest.raises(HTTPException) as exc:
        verify_supabase_token(header)
    assert exc.value.status_code == 401


def test_wrong_secret_is_rejected(token_factory):
    token = token_factory("user-1", secret="some-other-secret-that-is-long-enough")
    with pytest.raises(HTTPException) as exc:
        verify_supabase_token(bearer(token))
    assert exc.value.status_code == 401


def test_wrong_audience_is_rejected(token_factory):
    with pytest.raises(HTTPException) as exc:
        verify_supabase_token(bearer(token_factory("user-1", aud="anon")))
    assert exc.value.status_code == 401


def test_expired_token_is_rejected(token_factory):
    with pytest.raises(HTTPException) as exc:
        verify_supabase_token(bearer(token_factory("user-1", exp=int(time.time()) - 60)))
    assert exc.value.status_code == 401


def test_token_without_sub_is_rejected(token_factory):
    with pytest.raises(HTTPException) as exc:
        get_current_user_id(bearer(token_factory("user-1", sub=None)))
    assert exc.value.status_code == 401
    assert exc.value.detail == "Token missing user ID claim"


def test_missing_shared_secret_is_server_error(monkeypatch, token_factory):
    token = token_factory("user-1")
    monkeypatch.delenv("SUPABASE_JWT_SECRET")
    with pytest.raises(HTTPException) as exc:
        verify_supabase_token(bearer(token))
    assert exc.value.status_code == 500


def es256_token_and_jwks(kid="key-1", **claims):
    private_key = ec.generate_private_key(ec.SECP256R1())
    jwk = json.loads(jwt.algorithms.ECAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "ES256", "use": "sig"})
    payload = {"sub": "user-es", "aud": "authenticated", "exp": int(time.time()) + 3600}
    payload.update(claims)
    token = jwt.encode(payload, private_key, algorithm="ES256", headers={"kid": kid})
    return token, {"keys": [jwk]}


def test_es256_token_verified_against_jwks(monkeypatch):
    token, jwks = es256_token_and_jwks()
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.test")
    monkeypatch.setattr(auth_module, "get_jwks", lambda url: jwks)

    assert get_current_user_id(bearer(token)) == "user-es"


def test_es256_unknown_kid_is_rejected(monkeypatch):
    token, _ = es256_token_and_jwks(kid="rotated-away")
    _, other_jwks = es256_token_and_jwks(kid="current")
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.test")
    monkeypatch.setattr(auth_module, "get_jwks", lambda url: other_jwks)

    with pytest.raises(HTTPException) as exc:
        verify_supabase_token(bearer(token))
    assert exc.value.status_code == 401


def test_jwks_unavailable_is_503(monkeypatch):
    token, _ = es256_token_and_jwks()
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.test")
    monkeypatch.setattr(auth_module, "get_jwks", lambda url: None)
    monkeypatch.setattr(auth_module, "JWKS_CACHE", None)

    with pytest.raises(HTTPException) as exc:
        verify_supabase_token(bearer(token))
    assert exc.value.status_code == 503


def test_owner_endpoint_requires_token(client):
    response = client.get("/api/usage")
    assert response.status_code == 401
    assert response.json()["detail"] == "Authentication required"
