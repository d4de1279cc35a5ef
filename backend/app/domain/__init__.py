"""Domain models describing validated proxy requests."""

from .models import (
    AuthenticatedUser,
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

__all__ = [
    "AuthenticatedUser",
    "Endpoint",
    "EventParams",
    "LeaderboardParams",
    "NoParams",
    "OrderBookParams",
    "SearchParams",
    "ValidatedParams",
    "ValidatedRequest",
    "WalletParams",
]
