"""Origin allowlisting and bearer-token verification for the proxy."""

from __future__ import annotations

from typing import Any, Protocol
from urllib.parse import urlparse

import httpx
from loguru import logger

from app.core.config import Settings
from app.core.errors import (
    InvalidCredentialsError,
    MissingCredentialsError,
    OriginNotAllowedError,
)
from app.domain import AuthenticatedUser

ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type"
ALLOWED_METHODS = "GET, POST, OPTIONS"


def is_origin_allowed(origin: str | None, settings: Settings) -> bool:
    if not origin:
        return False
    candidate = origin.rstrip("/")
    if candidate in settings.allowed_origins:
        return True

    parsed = urlparse(candidate)
    host = (parsed.hostname or "").lower()
    if parsed.scheme != "https" or not host:
        return False
    return any(host.endswith(suffix) for suffix in settings.trusted_origin_suffixes)


def cors_headers(origin: str | None, settings: Settings) -> dict[str, str]:
    """CORS headers for a response; unknown origins see the default origin."""

    allow_origin = origin.rstrip("/") if origin and is_origin_allowed(origin, settings) else None
    return {
        "Access-Control-Allow-Origin": allow_origin or settings.default_origin,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Vary": "Origin",
    }


def check_origin(origin: str | None, settings: Settings) -> None:
    if not origin and settings.allow_missing_origin:
        return
    if not is_origin_allowed(origin, settings):
        logger.warning("Rejected request from origin {}", origin or "<none>")
        raise OriginNotAllowedError()


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise MissingCredentialsError()
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise MissingCredentialsError()
    return token.strip()


class IdentityVerifier(Protocol):
    async def verify(self, token: str) -> AuthenticatedUser | None:
        """Resolve a bearer token to a user, or ``None`` when it is not valid."""


class SupabaseIdentityVerifier:
    """Checks access tokens against the Supabase auth ``/user`` endpoint."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = str(settings.supabase_url).rstrip("/") if settings.supabase_url else None
        self.anon_key = settings.supabase_anon_key
        self.timeout = settings.upstream_timeout_seconds
        self.transport = transport

    def _headers(self, token: str) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        if self.anon_key:
            headers["apikey"] = self.anon_key
        return headers

    async def verify(self, token: str) -> AuthenticatedUser | None:
        if not self.base_url:
            raise RuntimeError("SUPABASE_URL must be set to verify bearer tokens")
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(f"{self.base_url}/auth/v1/user", headers=self._headers(token))
        if not response.is_success:
            logger.info("Identity provider rejected token with status {}", response.status_code)
            return None
        payload: Any = response.json()
        if not isinstance(payload, dict) or not payload.get("id"):
            return None
        return AuthenticatedUser(
            user_id=str(payload["id"]),
            email=payload.get("email"),
            role=payload.get("role"),
        )


async def authenticate(authorization: str | None, verifier: IdentityVerifier) -> AuthenticatedUser:
    """Require a bearer credential and resolve it through ``verifier``."""

    token = extract_bearer_token(authorization)
    try:
        user = await verifier.verify(token)
    except Exception as exc:
        logger.warning("Identity verification failed: {!r}", exc)
        raise InvalidCredentialsError() from exc
    if user is None:
        raise InvalidCredentialsError()
    logger.info("Authenticated user {}", user.user_id)
    return user
