from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx
from fastapi import HTTPException, status
from jose import jwk, jwt
from jose.exceptions import ExpiredSignatureError, JWSError, JWTError

from appconfig.config import settings


logger = logging.getLogger("auth.clerk")

_JWKS_TTL_SECONDS = 300


class _SigningKeyCache:
    """Signing keys indexed by kid, refreshed from the JWKS endpoint at most every few minutes."""

    def __init__(self) -> None:
        self.keys: dict[str, dict[str, Any]] = {}
        self.fetched_at: float = 0.0

    def is_fresh(self) -> bool:
        return bool(self.keys) and (time.time() - self.fetched_at) < _JWKS_TTL_SECONDS

    def replace(self, jwks: dict[str, Any]) -> None:
        self.keys = {key["kid"]: key for key in jwks.get("keys", []) if key.get("kid")}
        self.fetched_at = time.time()

    def clear(self) -> None:
        self.keys = {}
        self.fetched_at = 0.0


_keys = _SigningKeyCache()


def _refresh_signing_keys() -> None:
    try:
        resp = httpx.get(settings.CLERK_JWKS_URL, timeout=10)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.exception("JWKS fetch failed", extra={"jwks_url": settings.CLERK_JWKS_URL})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to fetch signing keys",
        ) from exc
    _keys.replace(resp.json())


def _signing_key(kid: str) -> Optional[dict[str, Any]]:
    if not _keys.is_fresh():
        _refresh_signing_keys()
    key = _keys.keys.get(kid)
    if key is None:
        # Key rotation: refetch once before giving up.
        _refresh_signing_keys()
        key = _keys.keys.get(kid)
    return key


def verify_clerk_token(token: str) -> dict[str, Any]:
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        logger.warning("Invalid token header", exc_info=exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    kid = header.get("kid")
    if not kid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing kid in token")
    public_key = _signing_key(kid)
    if public_key is None:
        logger.warning("Signing key not found", extra={"kid": kid})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Signing key not found")

    try:
        claims = jwt.decode(
            token,
            key=jwk.construct(public_key).to_pem().decode(),
            algorithms=[public_key.get("alg", "RS256")],
            issuer=settings.CLERK_JWT_ISSUER,
            options={"verify_aud": False},
        )
    except ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired") from exc
    except (JWTError, JWSError, ValueError) as exc:
        logger.warning("Token verification failed", exc_info=exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    # Clerk session tokens carry `azp` rather than `aud`; accept either against the configured audience.
    audiences = claims.get("aud") or claims.get("azp")
    if isinstance(audiences, str):
        audiences = [audiences]
    if settings.CLERK_AUDIENCE and not set(audiences or []) & set(settings.CLERK_AUDIENCE):
        logger.warning("Token audience rejected", extra={"aud": audiences, "sub": claims.get("sub")})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token audience")

    logger.debug(
        "Verified Clerk token",
        extra={"kid": kid, "sub": claims.get("sub"), "org_id": claims.get("org_id")},
    )
    return claims
