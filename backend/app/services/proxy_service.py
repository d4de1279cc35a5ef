"""Request router composing access control, validation, upstream and normalization."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from loguru import logger

from app.core.config import Settings
from app.core.errors import ProxyError, UpstreamError
from app.services.access import IdentityVerifier, authenticate, check_origin, cors_headers
from app.services.validation import validate_request
from upstream.client import PolymarketUpstreamClient, build_request
from upstream.normalize import normalize_response

DEFAULT_ENDPOINT = "leaderboard"
INTERNAL_ERROR_MESSAGE = "Internal server error"

ResponseView = Callable[[Any], Any]


@dataclass(slots=True)
class ProxyRequest:
    """Transport-agnostic view of one inbound call."""

    method: str
    origin: str | None = None
    authorization: str | None = None
    query_params: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None

    def merged_params(self) -> dict[str, Any]:
        params = dict(self.query_params)
        if isinstance(self.body, Mapping):
            # A null body field leaves the query-string value in place.
            params.update({key: value for key, value in self.body.items() if value is not None})
        return params


@dataclass(slots=True)
class ProxyResponse:
    status_code: int
    payload: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    has_body: bool = True


class ProxyService:
    """Single entry point that turns an inbound call into one upstream GET."""

    def __init__(
        self,
        settings: Settings,
        verifier: IdentityVerifier,
        upstream: PolymarketUpstreamClient,
    ) -> None:
        self.settings = settings
        self.verifier = verifier
        self.upstream = upstream

    async def fetch(self, endpoint: Any, raw_params: Mapping[str, Any]) -> Any:
        """Validate, forward and normalize one call; errors propagate."""

        validated = validate_request(endpoint, raw_params)
        descriptor = build_request(validated.endpoint, validated.params, self.settings)
        payload = await self.upstream.execute(descriptor)
        return normalize_response(validated.endpoint, payload)

    async def handle(
        self,
        request: ProxyRequest,
        *,
        endpoint: str | None = None,
        params: Mapping[str, Any] | None = None,
        view: ResponseView | None = None,
    ) -> ProxyResponse:
        """Serve ``request``; ``endpoint``/``params`` pin the call for typed routes."""

        headers = cors_headers(request.origin, self.settings)

        if request.method.upper() == "OPTIONS":
            try:
                check_origin(request.origin, self.settings)
            except ProxyError as exc:
                return ProxyResponse(exc.status_code, headers=headers, has_body=False)
            return ProxyResponse(200, headers=headers, has_body=False)

        try:
            check_origin(request.origin, self.settings)
            await authenticate(request.authorization, self.verifier)

            raw_params = dict(params) if params is not None else request.merged_params()
            requested = endpoint or raw_params.get("endpoint")
            if requested is None:
                requested = DEFAULT_ENDPOINT

            result = await self.fetch(requested, raw_params)
            if view is not None:
                result = view(result)
        except UpstreamError as exc:
            logger.error("Upstream failure: {} (status={})", exc.message, exc.upstream_status)
            return ProxyResponse(exc.status_code, {"error": exc.public_message}, headers)
        except ProxyError as exc:
            return ProxyResponse(exc.status_code, {"error": exc.message}, headers)
        except Exception:
            logger.exception("Unexpected error while serving proxy request")
            return ProxyResponse(500, {"error": INTERNAL_ERROR_MESSAGE}, headers)

        return ProxyResponse(200, result, headers)
