from __future__ import annotations

import asyncio

import httpx
import pytest
from loguru import logger

from app.core.config import Settings
from app.core.errors import InvalidCredentialsError, MissingCredentialsError, OriginNotAllowedError
from app.domain import AuthenticatedUser
from app.services.access import (
    SupabaseIdentityVerifier,
    authenticate,
    check_origin,
    cors_headers,
    extract_bearer_token,
    is_origin_allowed,
)
from conftest import VALID_TOKEN, FakeVerifier


@pytest.mark.parametrize(
    ("origin", "allowed"),
    [
        ("https://app.example.com", True),
        ("https://app.example.com/", True),
        ("http://localhost:5173", True),
        ("https://preview-123.lovable.app", True),
        ("http://preview-123.lovable.app", False),
        ("https://lovable.app.evil.com", False),
        ("https://evillovable.app", False),
        ("https://app.example.com.evil.com", False),
        ("null", False),
        ("", False),
        (None, False),
    ],
)
def test_origin_allowlist(test_settings, origin, allowed):
    assert is_origin_allowed(origin, test_settings) is allowed


def test_cors_headers_reflect_allowed_origin(test_settings):
    headers = cors_headers("https://preview-123.lovable.app", test_settings)
    assert headers["Access-Control-Allow-Origin"] == "https://preview-123.lovable.app"
    assert headers["Access-Control-Allow-Headers"] == "authorization, x-client-info, apikey, content-type"
    assert headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"


def test_cors_headers_default_to_first_allowlisted_origin(test_settings):
    assert cors_headers("https://evil.example.org", test_settings)["Access-Control-Allow-Origin"] == (
        "https://app.example.com"
    )
    assert cors_headers(None, test_settings)["Access-Control-Allow-Origin"] == "https://app.example.com"


def test_check_origin_rejects_missing_origin_by_default(test_settings):
    with pytest.raises(OriginNotAllowedError) as excinfo:
        check_origin(None, test_settings)
    assert excinfo.value.status_code == 403


def test_check_origin_can_allow_server_to_server_calls():
    settings = Settings(allowed_origins="https://app.example.com", allow_missing_origin=True)
    check_origin(None, settings)
    with pytest.raises(OriginNotAllowedError):
        check_origin("https://evil.example.org", settings)


@pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic dXNlcjpwYXNz", "token abc"])
def test_bearer_token_is_required(header):
    with pytest.raises(MissingCredentialsError) as excinfo:
        extract_bearer_token(header)
    assert excinfo.value.status_code == 401


def test_bearer_scheme_is_case_insensitive():
    assert extract_bearer_token("bearer abc.def") == "abc.def"
    assert extract_bearer_token("Bearer  abc.def ") == "abc.def"


class _StaticVerifier:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error

    async def verify(self, token: str):
        if self.error is not None:
            raise self.error
        return self.result


def test_authenticate_returns_user():
    user = AuthenticatedUser(user_id="u1")
    assert asyncio.run(authenticate("Bearer t", _StaticVerifier(result=user))) == user


@pytest.mark.parametrize(
    "verifier",
    [_StaticVerifier(result=None), _StaticVerifier(error=httpx.ConnectError("down")), _StaticVerifier(error=RuntimeError())],
)
def test_authenticate_maps_failures_to_401(verifier):
    with pytest.raises(InvalidCredentialsError):
        asyncio.run(authenticate("Bearer t", verifier))


@pytest.fixture
def log_messages():
    messages: list[str] = []
    sink_id = logger.add(messages.append, format="{message}", level="DEBUG")
    yield messages
    logger.remove(sink_id)


def test_authenticate_logs_user_id_but_not_token(log_messages):
    user = asyncio.run(authenticate(f"Bearer {VALID_TOKEN}", FakeVerifier()))

    assert user.user_id == "user-123"
    logged = "".join(log_messages)
    assert "user-123" in logged
    assert VALID_TOKEN not in logged


def test_failed_verification_does_not_log_token(log_messages, test_settings):
    with pytest.raises(InvalidCredentialsError):
        asyncio.run(authenticate(f"Bearer {VALID_TOKEN}", _StaticVerifier(error=httpx.ConnectError("down"))))

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"msg": "invalid JWT"})

    verifier = SupabaseIdentityVerifier(test_settings, transport=httpx.MockTransport(handler))
    with pytest.raises(InvalidCredentialsError):
        asyncio.run(authenticate(f"Bearer {VALID_TOKEN}", verifier))

    logged = "".join(log_messages)
    assert "Identity verification failed" in logged
    assert VALID_TOKEN not in logged


def test_supabase_verifier_resolves_user(test_settings):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "abc-123", "email": "w@example.com", "role": "authenticated"})

    verifier = SupabaseIdentityVerifier(test_settings, transport=httpx.MockTransport(handler))
    user = asyncio.run(verifier.verify("jwt-token"))

    assert user == AuthenticatedUser(user_id="abc-123", email="w@example.com", role="authenticated")
    assert str(seen[0].url) == "https://project.supabase.test/auth/v1/user"
    assert seen[0].headers["authorization"] == "Bearer jwt-token"
    assert seen[0].headers["apikey"] == "anon-key"


def test_supabase_verifier_returns_none_on_rejection(test_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"msg": "invalid JWT"})

    verifier = SupabaseIdentityVerifier(test_settings, transport=httpx.MockTransport(handler))
    assert asyncio.run(verifier.verify("bad")) is None


def test_supabase_verifier_requires_configuration():
    verifier = SupabaseIdentityVerifier(Settings(supabase_url=None))
    with pytest.raises(RuntimeError):
        asyncio.run(verifier.verify("token"))
