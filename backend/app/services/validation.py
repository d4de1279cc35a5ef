"""Allowlist and parameter validation for inbound proxy calls."""

from __future__ import annotations

import re
from typing import Any, Mapping

from app.core.errors import InputValidationError
from app.domain import (
    Endpoint,
    EventParams,
    LeaderboardParams,
    NoParams,
    OrderBookParams,
    SearchParams,
    ValidatedParams,
    ValidatedRequest,
    WalletParams,
)

WALLET_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
EVENT_LOCATOR_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
TOKEN_ID_PATTERN = re.compile(r"^[0-9]+$")
INTEGER_PATTERN = re.compile(r"^[+-]?[0-9]+$")

DEFAULT_LEADERBOARD_LIMIT = 100
MAX_LEADERBOARD_LIMIT = 100
MAX_QUERY_LENGTH = 200


def _as_text(value: Any) -> str | None:
    """Return scalar JSON values as text; ``None`` for anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, int):
        return str(value)
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _validate_limit(raw: Mapping[str, Any]) -> LeaderboardParams:
    value = raw.get("limit")
    if _is_blank(value):
        return LeaderboardParams(limit=DEFAULT_LEADERBOARD_LIMIT)
    text = _as_text(value)
    if text is None or not INTEGER_PATTERN.match(text):
        raise InputValidationError("limit must be an integer between 1 and 100")
    limit = int(text)
    if not 1 <= limit <= MAX_LEADERBOARD_LIMIT:
        raise InputValidationError("limit must be an integer between 1 and 100")
    return LeaderboardParams(limit=limit)


def _validate_query(raw: Mapping[str, Any]) -> SearchParams:
    value = raw.get("query")
    if _is_blank(value):
        value = raw.get("q")
    if _is_blank(value):
        raise InputValidationError("query is required")
    if not isinstance(value, str):
        raise InputValidationError("query must be a string")
    query = value.strip()
    if len(query) > MAX_QUERY_LENGTH:
        raise InputValidationError(
            f"query must be at most {MAX_QUERY_LENGTH} characters"
        )
    return SearchParams(query=query)


def _validate_event(raw: Mapping[str, Any]) -> EventParams:
    raw_id = raw.get("id")
    raw_slug = raw.get("slug")
    if _is_blank(raw_id) and _is_blank(raw_slug):
        raise InputValidationError("id or slug is required")

    if not _is_blank(raw_id):
        event_id = _as_text(raw_id)
        if event_id is None or not EVENT_LOCATOR_PATTERN.match(event_id):
            raise InputValidationError("Invalid event id")
        return EventParams(event_id=event_id)

    slug = _as_text(raw_slug)
    if slug is None or not EVENT_LOCATOR_PATTERN.match(slug):
        raise InputValidationError("Invalid event slug")
    return EventParams(slug=slug)


def _validate_token_id(raw: Mapping[str, Any]) -> OrderBookParams:
    value = raw.get("tokenId")
    if _is_blank(value):
        raise InputValidationError("tokenId is required")
    token_id = _as_text(value)
    if token_id is None or not TOKEN_ID_PATTERN.match(token_id):
        raise InputValidationError("Invalid tokenId")
    return OrderBookParams(token_id=token_id)


def _validate_wallet(raw: Mapping[str, Any]) -> WalletParams:
    value = raw.get("user")
    if value is None:
        raise InputValidationError("user is required")
    user = _as_text(value)
    if user is None or not WALLET_PATTERN.match(user):
        raise InputValidationError("Invalid wallet address")
    return WalletParams(user=user)


def _validate_nothing(raw: Mapping[str, Any]) -> NoParams:
    return NoParams()


_VALIDATORS = {
    Endpoint.LEADERBOARD: _validate_limit,
    Endpoint.SEARCH: _validate_query,
    Endpoint.MARKETS: _validate_query,
    Endpoint.TRENDING: _validate_nothing,
    Endpoint.EVENT: _validate_event,
    Endpoint.ORDERBOOK: _validate_token_id,
    Endpoint.POSITIONS: _validate_wallet,
    Endpoint.PROFILE: _validate_wallet,
    Endpoint.ACTIVITY: _validate_wallet,
}


def validate_params(endpoint: Endpoint, raw_params: Mapping[str, Any]) -> ValidatedParams:
    return _VALIDATORS[endpoint](raw_params)


def validate_request(endpoint: Any, raw_params: Mapping[str, Any] | None) -> ValidatedRequest:
    """Check the endpoint against the allowlist, then its parameters.

    Raises ``InputValidationError`` with a caller-facing message; nothing in
    here performs I/O, so a rejected call never reaches an upstream API.
    """

    parsed = Endpoint.parse(endpoint)
    if parsed is None:
        raise InputValidationError("Invalid endpoint")
    params = validate_params(parsed, raw_params or {})
    return ValidatedRequest(endpoint=parsed, params=params)
