from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.domain import AuthenticatedUser
from app.main import _identity_verifier, _settings, _upstream_client, app
from upstream.client import PolymarketUpstreamClient

ALLOWED_ORIGIN = "https://app.example.com"
VALID_TOKEN = "valid-token"
WALLET = "0x56687bf447db6ffa42ffe2204a05edaa20f55839"


@dataclass
class FakeUpstream:
    """Records outbound requests and replays canned responses keyed by path."""

    responses: dict[str, tuple[int, Any]] = field(default_factory=dict)
    calls: list[httpx.Request] = field(default_factory=list)

    def respond(self, path: str, payload: Any = None, *, status_code: int = 200) -> None:
        self.responses[path] = (status_code, payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        status_code, payload = self.responses.get(request.url.path, (200, []))
        if isinstance(payload, str):
            return httpx.Response(status_code, text=payload)
        return httpx.Response(status_code, json=payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeVerifier:
    def __init__(self) -> None:
        self.tokens: list[str] = []

    async def verify(self, token: str) -> AuthenticatedUser | None:
        self.tokens.append(token)
        if token == VALID_TOKEN:
            return AuthenticatedUser(user_id="user-123", email="whale@example.com")
        return None


@pytest.fixture
def test_settings(monkeypatch) -> Settings:
    settings = Settings(
        data_api_base_url="https://data-api.test",
        gamma_api_base_url="https://gamma-api.test",
        clob_api_base_url="https://clob.test",
        allowed_origins=[ALLOWED_ORIGIN, "http://localhost:5173"],
        trusted_origin_suffixes=[".lovable.app"],
        supabase_url="https://project.supabase.test",
        supabase_anon_key="anon-key",
        upstream_timeout_seconds=5,
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def fake_verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def client(test_settings, fake_upstream, fake_verifier):
    """Test client wired to fake upstream APIs and a fake identity provider."""
    app.dependency_overrides[_settings] = lambda: test_settings
    app.dependency_overrides[_identity_verifier] = lambda: fake_verifier
    app.dependency_overrides[_upstream_client] = lambda: PolymarketUpstreamClient(
        test_settings, transport=fake_upstream.transport
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Origin": ALLOWED_ORIGIN, "Authorization": f"Bearer {VALID_TOKEN}"}
