from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated, Any, Mapping

from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

from . import schemas
from .core.config import Settings, get_settings, settings
from .core.logging import configure_logging
from .services.access import IdentityVerifier, SupabaseIdentityVerifier
from .services.proxy_service import ProxyRequest, ProxyResponse, ProxyService
from upstream.client import PolymarketUpstreamClient
from upstream.normalize import normalize_event, normalize_events, normalize_order_book, normalize_traders

app = FastAPI(title="Whale Copy-Trading Proxy", version="0.1.0", debug=settings.debug)

PROXY_METHODS = ["GET", "POST", "OPTIONS"]
VIEW_METHODS = ["GET", "OPTIONS"]
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": schemas.ErrorEnvelope} for status in (400, 401, 403, 500)
}


@app.on_event("startup")
def on_startup() -> None:
    """Configure logging when the API boots."""

    configure_logging(get_settings())


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


def _settings() -> Settings:
    return get_settings()


def _identity_verifier(config: Settings = Depends(_settings)) -> IdentityVerifier:
    return SupabaseIdentityVerifier(config)


async def _upstream_client(
    config: Settings = Depends(_settings),
) -> AsyncIterator[PolymarketUpstreamClient]:
    """One outbound client per inbound call, closed once the response is built."""

    async with PolymarketUpstreamClient(config) as client:
        yield client


def _proxy_service(
    config: Settings = Depends(_settings),
    verifier: IdentityVerifier = Depends(_identity_verifier),
    upstream: PolymarketUpstreamClient = Depends(_upstream_client),
) -> ProxyService:
    return ProxyService(config, verifier, upstream)


async def _proxy_request(request: Request) -> ProxyRequest:
    body: Any = None
    if request.method == "POST":
        try:
            body = await request.json()
        except ValueError:
            body = None
    return ProxyRequest(
        method=request.method,
        origin=request.headers.get("origin"),
        authorization=request.headers.get("authorization"),
        query_params=dict(request.query_params),
        body=body,
    )


def _render(result: ProxyResponse) -> Response:
    if not result.has_body:
        return Response(status_code=result.status_code, headers=result.headers)
    return JSONResponse(
        jsonable_encoder(result.payload),
        status_code=result.status_code,
        headers=result.headers,
    )


async def _serve(
    service: ProxyService,
    request: Request,
    endpoint: str,
    params: Mapping[str, Any],
    view=None,
) -> Response:
    proxy_request = await _proxy_request(request)
    result = await service.handle(proxy_request, endpoint=endpoint, params=params, view=view)
    return _render(result)


@app.api_route("/", methods=PROXY_METHODS, include_in_schema=False)
@app.api_route("/polymarket-proxy", methods=PROXY_METHODS, responses=ERROR_RESPONSES, tags=["proxy"])
async def polymarket_proxy(
    request: Request, service: ProxyService = Depends(_proxy_service)
) -> Response:
    """Forward one allowlisted call to Polymarket and return its normalized payload."""

    result = await service.handle(await _proxy_request(request))
    return _render(result)


@app.api_route(
    "/v1/traders",
    methods=VIEW_METHODS,
    response_model=list[schemas.Trader],
    responses=ERROR_RESPONSES,
    tags=["traders"],
)
async def list_traders(
    request: Request,
    limit: Annotated[str | None, Query(description="Number of leaderboard rows (1-100)")] = None,
    service: ProxyService = Depends(_proxy_service),
) -> Response:
    """Leaderboard rows as canonical trader records."""

    return await _serve(service, request, "leaderboard", {"limit": limit}, normalize_traders)


@app.api_route(
    "/v1/traders/search",
    methods=VIEW_METHODS,
    response_model=list[schemas.Trader],
    responses=ERROR_RESPONSES,
    tags=["traders"],
)
async def search_traders(
    request: Request,
    query: Annotated[str | None, Query(description="Profile search text")] = None,
    service: ProxyService = Depends(_proxy_service),
) -> Response:
    return await _serve(service, request, "search", {"query": query}, normalize_traders)


@app.api_route(
    "/v1/traders/{user}/positions", methods=VIEW_METHODS, responses=ERROR_RESPONSES, tags=["traders"]
)
async def trader_positions(
    user: str, request: Request, service: ProxyService = Depends(_proxy_service)
) -> Response:
    return await _serve(service, request, "positions", {"user": user})


@app.api_route(
    "/v1/events/trending",
    methods=VIEW_METHODS,
    response_model=list[schemas.MarketEvent],
    responses=ERROR_RESPONSES,
    tags=["events"],
)
async def trending_events(request: Request, service: ProxyService = Depends(_proxy_service)) -> Response:
    """Highest-volume active events."""

    return await _serve(service, request, "trending", {}, normalize_events)


@app.api_route(
    "/v1/events/search",
    methods=VIEW_METHODS,
    response_model=list[schemas.MarketEvent],
    responses=ERROR_RESPONSES,
    tags=["events"],
)
async def search_events(
    request: Request,
    query: Annotated[str | None, Query(description="Market search text")] = None,
    service: ProxyService = Depends(_proxy_service),
) -> Response:
    return await _serve(service, request, "markets", {"query": query}, normalize_events)


def _single_event(payload: Any) -> schemas.MarketEvent:
    if isinstance(payload, Mapping):
        return normalize_event(payload)
    return schemas.MarketEvent()


@app.api_route(
    "/v1/events/slug/{slug}",
    methods=VIEW_METHODS,
    response_model=schemas.MarketEvent,
    responses=ERROR_RESPONSES,
    tags=["events"],
)
async def get_event_by_slug(
    slug: str, request: Request, service: ProxyService = Depends(_proxy_service)
) -> Response:
    return await _serve(service, request, "event", {"slug": slug}, _single_event)


@app.api_route(
    "/v1/events/{event_id}",
    methods=VIEW_METHODS,
    response_model=schemas.MarketEvent,
    responses=ERROR_RESPONSES,
    tags=["events"],
)
async def get_event(
    event_id: str, request: Request, service: ProxyService = Depends(_proxy_service)
) -> Response:
    return await _serve(service, request, "event", {"id": event_id}, _single_event)


@app.api_route(
    "/v1/orderbook/{token_id}",
    methods=VIEW_METHODS,
    response_model=schemas.OrderBook,
    responses=ERROR_RESPONSES,
    tags=["orderbook"],
)
async def get_order_book(
    token_id: str, request: Request, service: ProxyService = Depends(_proxy_service)
) -> Response:
    """Order book with sorted levels and best bid/ask, spread and midpoint."""

    return await _serve(service, request, "orderbook", {"tokenId": token_id}, normalize_order_book)
