from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ErrorEnvelope(BaseModel):
    error: str


class Trader(BaseModel):
    wallet_address: str
    username: str | None = None
    avatar_url: str | None = None
    x_username: str | None = None
    bio: str | None = None
    is_verified: bool = False
    total_volume: float = 0.0
    total_profit: float = 0.0
    portfolio_value: float = 0.0
    rank: int | None = None
    open_positions: int = 0
    closed_positions: int = 0
    markets_traded: int = 0
    badges: list[str] = Field(default_factory=list)

    @field_validator("total_volume", "total_profit", "portfolio_value", mode="before")
    @classmethod
    def _coerce_numeric(cls, value: Any) -> float:
        if value is None:
            return 0.0
        return float(value)


class SubMarket(BaseModel):
    market_id: str | None = None
    question: str | None = None
    slug: str | None = None
    outcomes: list[str] = Field(default_factory=list)
    outcome_prices: list[float] = Field(default_factory=list)
    clob_token_ids: list[str] = Field(default_factory=list)
    best_bid: float | None = None
    best_ask: float | None = None
    spread: float | None = None
    volume: float | None = None
    liquidity: float | None = None
    open_interest: float | None = None
    active: bool | None = None
    closed: bool | None = None


class MarketEvent(BaseModel):
    event_id: str | None = None
    slug: str | None = None
    title: str | None = None
    description: str | None = None
    icon_url: str | None = None
    active: bool = False
    closed: bool = False
    start_time: datetime | None = None
    end_time: datetime | None = None
    volume: float = 0.0
    liquidity: float = 0.0
    open_interest: float = 0.0
    markets: list[SubMarket] = Field(default_factory=list)


class OrderBookLevel(BaseModel):
    price: float = Field(ge=0, le=1)
    size: float = Field(ge=0)


class OrderBook(BaseModel):
    market: str | None = None
    asset_id: str | None = None
    timestamp: str | None = None
    bids: list[OrderBookLevel] = Field(default_factory=list)
    asks: list[OrderBookLevel] = Field(default_factory=list)
    best_bid: float | None = None
    best_ask: float | None = None
    spread: float | None = None
    midpoint: float | None = None
