from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlencode

import httpx
from loguru import logger

from app.core.config import Settings
from app.core.errors import UpstreamError
from app.domain import (
    Endpoint,
    EventParams,
    LeaderboardParams,
    OrderBookParams,
    SearchParams,
    ValidatedParams,
    WalletParams,
)

_ERROR_BODY_LOG_LIMIT = 500


def _reject_constant(token: str) -> Any:
    raise ValueError(f"non-finite number {token} in JSON payload")


def _finite_float(token: str) -> float:
    value = float(token)
    if not math.isfinite(value):
        raise ValueError(f"non-finite number {token} in JSON payload")
    return value


def decode_json(text: str) -> Any:
    """Strict JSON decoding; NaN, Infinity and overflowing numbers are rejected."""
    return json.loads(text, parse_constant=_reject_constant, parse_float=_finite_float)


TRENDING_QUERY: tuple[tuple[str, str], ...] = (
    ("active", "true"),
    ("closed", "false"),
    ("limit", "20"),
    ("order", "volume"),
    ("ascending", "false"),
)


@dataclass(frozen=True, slots=True)
class UpstreamRequest:
    """Fully-resolved outbound GET for one logical endpoint."""

    api: str
    base_url: str
    path: str
    params: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    @property
    def url(self) -> str:
        query = urlencode(self.params)
        return f"{self.base_url}{self.path}" + (f"?{query}" if query else "")


def _serialize(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _request(settings: Settings, api: str, path: str, **params: Any) -> UpstreamRequest:
    return UpstreamRequest(
        api=api,
        base_url=settings.api_base_url(api),
        path=path,
        params=tuple((key, _serialize(value)) for key, value in params.items()),
    )


def build_request(
    endpoint: Endpoint, params: ValidatedParams, settings: Settings
) -> UpstreamRequest:
    """Translate a validated call into the upstream request that serves it."""

    if endpoint is Endpoint.LEADERBOARD and isinstance(params, LeaderboardParams):
        return _request(settings, "data", "/v1/leaderboard", limit=params.limit)
    if endpoint is Endpoint.SEARCH and isinstance(params, SearchParams):
        return _request(
            settings,
            "gamma",
            "/public-search",
            q=params.query,
            search_profiles=True,
            limit_per_type=50,
            optimized=True,
        )
    if endpoint is Endpoint.MARKETS and isinstance(params, SearchParams):
        return _request(
            settings,
            "gamma",
            "/public-search",
            q=params.query,
            limit_per_type=30,
            optimized=True,
        )
    if endpoint is Endpoint.TRENDING:
        return UpstreamRequest(
            api="gamma",
            base_url=settings.api_base_url("gamma"),
            path="/events",
            params=TRENDING_QUERY,
        )
    if endpoint is Endpoint.EVENT and isinstance(params, EventParams):
        if params.event_id:
            return _request(settings, "gamma", f"/events/{quote(params.event_id, safe='')}")
        return _request(settings, "gamma", f"/events/slug/{quote(params.slug or '', safe='')}")
    if endpoint is Endpoint.ORDERBOOK and isinstance(params, OrderBookParams):
        return _request(settings, "clob", "/book", token_id=params.token_id)
    if endpoint is Endpoint.POSITIONS and isinstance(params, WalletParams):
        return _request(settings, "data", "/positions", user=params.user)
    if endpoint is Endpoint.PROFILE and isinstance(params, WalletParams):
        return _request(settings, "data", "/profile", user=params.user)
    if endpoint is Endpoint.ACTIVITY and isinstance(params, WalletParams):
        return _request(settings, "data", "/activity", user=params.user, limit=50)
    raise ValueError(
        f"Parameters {type(params).__name__} do not match endpoint {endpoint.value!r}"
    )


class PolymarketUpstreamClient:
    """Single-shot GET client for the public Polymarket APIs.

    No retries are attempted here; callers that want them own the policy.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        self.settings = settings
        self.timeout = timeout if timeout is not None else settings.upstream_timeout_seconds
        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def execute(self, request: UpstreamRequest) -> Any:
        logger.info("Polymarket GET {} params={}", request.path, dict(request.params))
        try:
            response = await self.client.get(request.url)
        except httpx.HTTPError as exc:
            logger.error("Polymarket {} request to {} failed: {!r}", request.api, request.path, exc)
            raise UpstreamError(f"{request.api} API request failed: {exc!r}") from exc

        if not response.is_success:
            logger.error(
                "Polymarket {} API error {} for {}: {}",
                request.api,
                response.status_code,
                request.path,
                response.text[:_ERROR_BODY_LOG_LIMIT],
            )
            raise UpstreamError(
                f"{request.api} API returned {response.status_code}",
                upstream_status=response.status_code,
            )

        try:
            return decode_json(response.text)
        except ValueError as exc:
            logger.error(
                "Polymarket {} API returned invalid JSON for {}", request.api, request.path
            )
            raise UpstreamError(f"{request.api} API returned invalid JSON") from exc

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "PolymarketUpstreamClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
