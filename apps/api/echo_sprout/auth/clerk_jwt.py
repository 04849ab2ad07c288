"""Clerk RS256 JWT verification via JWKS.

Fetches Clerk's public keys from the well-known JWKS endpoint, caches them
in Redis (shared across worker processes) with an in-process fallback, and
verifies RS256-signed tokens.
"""

import json
import time

import httpx
import structlog
from jose import JWTError, jwt

from echo_sprout.core.config import settings

logger = structlog.get_logger()

_REDIS_KEY = "clerk:jwks"

# In-process fallback when Redis is unreachable: (fetched_at, jwks)
_local_cache: tuple[float, dict] | None = None


async def _redis_client():
    """Return a short-lived Redis client, or None if Redis is unavailable."""
    try:
        from redis.asyncio import from_url  # type: ignore[import-untyped]
        return from_url(settings.REDIS_URL, decode_responses=True)
    except Exception:  # noqa: BLE001
        return None


async def _fetch_jwks() -> dict:
    """Fetch JWKS, preferring Redis, then the local cache, then Clerk."""
    global _local_cache

    redis = await _redis_client()
    if redis:
        try:
            cached = await redis.get(_REDIS_KEY)
            if cached:
                return json.loads(cached)
        except Exception as exc:  # noqa: BLE001
            logger.warning("jwks_redis_read_failed", error=str(exc))
        finally:
            await redis.aclose()

    if _local_cache and time.monotonic() - _local_cache[0] < settings.CLERK_JWKS_CACHE_TTL:
        return _local_cache[1]

    jwks_url = f"{settings.CLERK_ISSUER_URL}/.well-known/jwks.json"
    async with httpx.AsyncClient() as client:
        response = await client.get(jwks_url, timeout=10.0)
        response.raise_for_status()
        jwks = response.json()

    logger.info("clerk_jwks_refreshed", keys_count=len(jwks.get("keys", [])))
    _local_cache = (time.monotonic(), jwks)

    redis = await _redis_client()
    if redis:
        try:
            await redis.setex(_REDIS_KEY, settings.CLERK_JWKS_CACHE_TTL, json.dumps(jwks))
        except Exception as exc:  # noqa: BLE001
            logger.warning("jwks_redis_write_failed", error=str(exc))
        finally:
            await redis.aclose()

    return jwks


def _get_signing_key(jwks: dict, token: str) -> dict:
    """Match the JWT header's kid to the correct JWKS key."""
    unverified_header = jwt.get_unverified_header(token)
    kid = unverified_header.get("kid")
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    raise JWTError(f"No matching key found for kid={kid}")


async def verify_clerk_token(token: str) -> dict:
    """
    Verify a Clerk-issued RS256 JWT.

    Returns the decoded payload with claims (sub, email, etc.).
    Raises JWTError on any validation failure.
    """
    jwks = await _fetch_jwks()
    signing_key = _get_signing_key(jwks, token)

    return jwt.decode(
        token,
        signing_key,
        algorithms=["RS256"],
        issuer=settings.CLERK_ISSUER_URL,
        options={
            "verify_aud": False,  # Clerk may not set aud
            "verify_iss": bool(settings.CLERK_ISSUER_URL),
            "verify_exp": True,
        },
    )
