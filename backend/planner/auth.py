"""Optional Auth0 bearer identity.

Planning is open to guests; a valid bearer token only upgrades the caller to
the authenticated rate-limit tier. Invalid or unverifiable tokens degrade to
guest rather than failing the request.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Annotated, Any

import httpx
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidKeyError, InvalidTokenError
from jwt.algorithms import RSAAlgorithm

from .settings import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)
AuthCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(security)]

JWKS_TTL_SECONDS = 15 * 60


class TokenRejected(Exception):
    """The bearer token could not be verified."""


class Auth0Verifier:
    def __init__(self) -> None:
        self._jwks: dict[str, Any] | None = None
        self._jwks_expiry: float = 0.0

    @property
    def configured(self) -> bool:
        return bool(settings.AUTH0_AUDIENCE and settings.auth0_issuer)

    async def _fetch_jwks(self) -> dict[str, Any]:
        issuer = settings.auth0_issuer
        if not issuer:
            raise TokenRejected("AUTH0_DOMAIN is not configured")
        url = issuer.rstrip("/") + "/.well-known/jwks.json"
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TokenRejected("Failed to fetch Auth0 JWKS") from exc

    async def _get_jwks(self) -> dict[str, Any]:
        now = time.time()
        if self._jwks and now < self._jwks_expiry:
            return self._jwks
        jwks = await self._fetch_jwks()
        self._jwks = jwks
        self._jwks_expiry = now + JWKS_TTL_SECONDS
        return jwks

    async def verify(self, token: str) -> dict[str, Any]:
        """
        Verify an RS256 Auth0 access token.

        Returns:
            Decoded token payload (always carries ``sub``).

        Raises:
            TokenRejected: malformed, unsigned by a known key, expired, or wrong
                audience/issuer.
        """
        if not self.configured:
            raise TokenRejected("Auth0 audience/domain not configured")

        try:
            header = jwt.get_unverified_header(token)
        except InvalidTokenError as exc:
            raise TokenRejected("Malformed token header") from exc

        if header.get("alg") != "RS256":
            raise TokenRejected(f"Unsupported algorithm: {header.get('alg')}")
        kid = header.get("kid")
        if not kid:
            raise TokenRejected("Missing key ID in token")

        jwks = await self._get_jwks()
        key = next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)
        if not key:
            raise TokenRejected("Unknown token signature key")

        try:
            public_key = RSAAlgorithm.from_jwk(json.dumps(key))
        except (InvalidKeyError, KeyError, ValueError) as exc:
            raise TokenRejected("Malformed token signature key") from exc

        try:
            payload = jwt.decode(
                token,
                key=public_key,
                algorithms=["RS256"],
                audience=settings.AUTH0_AUDIENCE,
                issuer=settings.auth0_issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except InvalidTokenError as exc:
            raise TokenRejected(str(exc) or "Invalid token") from exc

        if not payload.get("sub"):
            raise TokenRejected("Token missing subject claim")
        return payload


auth0_verifier = Auth0Verifier()


async def optional_subject(credentials: AuthCredentials) -> str | None:
    """FastAPI dependency: the verified ``sub`` claim, or ``None`` for guests."""
    if not credentials or not auth0_verifier.configured:
        return None
    try:
        payload = await auth0_verifier.verify(credentials.credentials)
    except TokenRejected as exc:
        logger.info("bearer token ignored, treating caller as guest: %s", exc)
        return None
    return str(payload["sub"])


__all__ = ["Auth0Verifier", "TokenRejected", "auth0_verifier", "optional_subject"]
