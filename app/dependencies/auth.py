"""
Supabase Auth for owner endpoints.

Accepts the access token the Supabase client library sends as `Authorization: Bearer <jwt>`.
Projects on the legacy shared secret sign with HS256 (SUPABASE_JWT_SECRET); projects on
asymmetric signing keys use ES256/RS256, verified against the project's JWKS.
"""
import logging
import os
import time
from typing import Optional

import jwt  # PyJWT
import requests
from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)

SUPABASE_AUDIENCE = "authenticated"
ASYMMETRIC_ALGORITHMS = ("ES256", "RS256")
PLACEHOLDER_TOKENS = {"null", "undefined", "none"}

# Signing keys, refreshed hourly; a stale copy is still trusted for a day if Supabase is unreachable
JWKS_CACHE = None
JWKS_CACHE_TIMESTAMP = None
JWKS_CACHE_TTL = 3600
JWKS_STALE_MAX_AGE = 86400
JWKS_FETCH_ATTEMPTS = 3


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def get_jwks(supabase_url: str, force_refresh: bool = False):
    """Fetch the project's JWKS. Only successful fetches are cached."""
    global JWKS_CACHE, JWKS_CACHE_TIMESTAMP

    fresh = JWKS_CACHE_TIMESTAMP is not None and time.time() - JWKS_CACHE_TIMESTAMP < JWKS_CACHE_TTL
    if JWKS_CACHE and fresh and not force_refresh:
        return JWKS_CACHE

    jwks_url = f"{supabase_url.rstrip('/')}/auth/v1/.well-known/jwks.json"
    for attempt in range(1, JWKS_FETCH_ATTEMPTS + 1):
        try:
            r = requests.get(jwks_url, timeout=10)
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning("[AUTH] JWKS fetch %s/%s from %s failed: %s", attempt, JWKS_FETCH_ATTEMPTS, jwks_url, e)
            if attempt < JWKS_FETCH_ATTEMPTS:
                time.sleep(1)
            continue
        JWKS_CACHE = r.json()
        JWKS_CACHE_TIMESTAMP = time.time()
        return JWKS_CACHE

    logger.error("[AUTH] Giving up on JWKS after %s attempts", JWKS_FETCH_ATTEMPTS)
    return None


def _available_jwks() -> dict:
    supabase_url = os.getenv("SUPABASE_URL")
    if not supabase_url:
        logger.error("[AUTH] SUPABASE_URL is not set; cannot verify asymmetric tokens")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfiguration: SUPABASE_URL not set"
        )

    jwks = get_jwks(supabase_url)
    if not jwks and JWKS_CACHE and JWKS_CACHE_TIMESTAMP:
        cache_age = time.time() - JWKS_CACHE_TIMESTAMP
        if cache_age < JWKS_STALE_MAX_AGE:
            logger.warning("[AUTH] Falling back to JWKS cached %.0fs ago", cache_age)
            jwks = JWKS_CACHE

    if not jwks:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service temporarily unavailable. Please try again in a moment."
        )
    return jwks


def _decode_asymmetric(token: str, algorithm: str) -> dict:
    jwks = _available_jwks()
    try:
        kid = jwt.get_unverified_header(token).get("kid")
        matching = [key for key in jwks.get("keys", []) if key.get("kid") == kid]
        if not matching:
            raise jwt.InvalidTokenError(f"no signing key with kid {kid}")
        signing_key = jwt.PyJWK(matching[0], algorithm=algorithm)
        return jwt.decode(token, signing_key.key, algorithms=[algorithm], audience=SUPABASE_AUDIENCE)
    except jwt.PyJWTError as e:
        logger.warning("[AUTH] %s token rejected: %s", algorithm, e)
        raise _unauthorized("Invalid token signature")


def _decode_shared_secret(token: str) -> dict:
    secret = os.getenv("SUPABASE_JWT_SECRET")
    if not secret:
        logger.error("[AUTH] SUPABASE_JWT_SECRET is not set; cannot verify HS256 tokens")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfiguration: SUPABASE_JWT_SECRET not set"
        )
    try:
        return jwt.decode(token, secret, algorithms=["HS256"], audience=SUPABASE_AUDIENCE)
    except jwt.PyJWTError as e:
        logger.warning("[AUTH] HS256 token rejected: %s", e)
        raise _unauthorized("Invalid token signature")


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise _unauthorized("Authentication required")

    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer":
        raise _unauthorized("Invalid header format. Expected 'Bearer <token>'")

    token = token.strip()
    # Frontends sometimes send a stringified empty value
    if not token or token.lower() in PLACEHOLDER_TOKENS:
        raise _unauthorized("Missing token")
    if token.count(".") != 2:
        raise _unauthorized("Invalid token format. Token must have header.payload.signature structure.")
    return token


def verify_supabase_token(authorization: Optional[str] = Header(None)) -> dict:
    """Verify a Supabase access token and return its claims."""
    token = _bearer_token(authorization)

    try:
        algorithm = jwt.get_unverified_header(token).get("alg")
    except jwt.DecodeError as e:
        logger.warning("[AUTH] Unreadable token header: %s", e)
        raise _unauthorized("Invalid token header")

    if algorithm == "HS256":
        return _decode_shared_secret(token)
    if algorithm in ASYMMETRIC_ALGORITHMS:
        return _decode_asymmetric(token, algorithm)

    logger.warning("[AUTH] Unsupported token algorithm: %s", algorithm)
    raise _unauthorized(f"Unsupported token algorithm: {algorithm}")


def get_current_user_id(authorization: Optional[str] = Header(None)) -> str:
    """
    FastAPI dependency returning the Supabase user id (the token's sub claim).
    Users live in Supabase Auth; forms, responses and usage rows are keyed by this id.
    """
    user_id = verify_supabase_token(authorization).get("sub")
    if not user_id:
        raise _unauthorized("Token missing user ID claim")
    return user_id
