"""Typed request-side representations that flow through the proxy pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Endpoint(str, Enum):
    """Closed set of logical operations the proxy is willing to forward."""

    LEADERBOARD = "leaderboard"
    SEARCH = "search"
    MARKETS = "markets"
    TRENDING = "trending"
    EVENT = "event"
    ORDERBOOK = "orderbook"
    POSITIONS = "positions"
    PROFILE = "profile"
    ACTIVITY = "activity"

    @classmethod
    def parse(cls, value: object) -> "Endpoint | None":
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class LeaderboardParams:
    limit: int = 100


@dataclass(frozen=True, slots=True)
class SearchParams:
    """Free-text query used by both profile and market search."""

    query: str


@dataclass(frozen=True, slots=True)
class EventParams:
    event_id: str | None = None
    slug: str | None = None


@dataclass(frozen=True, slots=True)
class OrderBookParams:
    token_id: str


@dataclass(frozen=True, slots=True)
class WalletParams:
    user: str


@dataclass(frozen=True, slots=True)
class NoParams:
    pass


ValidatedParams = (
    LeaderboardParams | SearchParams | EventParams | OrderBookParams | WalletParams | NoParams
)


@dataclass(frozen=True, slots=True)
class ValidatedRequest:
    endpoint: Endpoint
    params: ValidatedParams


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    """Identity returned by the external verification service."""

    user_id: str
    email: str | None = None
    role: str | None = None
