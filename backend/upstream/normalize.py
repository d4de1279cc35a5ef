from __future__ import annotations

import json
import math
from datetime import datetime
from typing import Any, Mapping, Sequence

from dateutil import parser as date_parser
from loguru import logger

from app.domain import Endpoint
from app.schemas import MarketEvent, OrderBook, OrderBookLevel, SubMarket, Trader


# Canonical trader field -> upstream keys, highest priority first. The
# leaderboard, public-search profiles and profile endpoints disagree on names.
TRADER_FIELD_SOURCES: dict[str, tuple[str, ...]] = {
    "wallet_address": ("proxyWallet", "wallet", "address", "user"),
    "username": ("userName", "name", "pseudonym"),
    "avatar_url": ("profileImageOptimized", "profileImage"),
    "x_username": ("xUsername",),
    "bio": ("bio",),
    "is_verified": ("verifiedBadge",),
    "total_volume": ("vol", "volume_amount", "profile_volume", "volume"),
    "total_profit": ("pnl", "profile_profit", "profit"),
    "portfolio_value": ("profile_value", "portfolioValue", "value"),
    "rank": ("rank",),
    "open_positions": ("openPositionCount",),
    "closed_positions": ("closedPositionCount",),
    "markets_traded": ("marketsTraded", "totalPositions"),
}

MEGA_WHALE_VOLUME = 1_000_000
WHALE_VOLUME = 100_000
BIG_PORTFOLIO_VALUE = 100_000


def _as_list(value: Any) -> list[Any]:
    """Return value as a list when possible, decoding JSON strings."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return date_parser.isoparse(str(value))
    except (ValueError, TypeError):
        return None


def _parse_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def _parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        float_val = _parse_float(value)
        if float_val is None:
            return None
        return int(round(float_val))


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _parse_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1"}:
            return True
        if lowered in {"false", "0"}:
            return False
    return None


def first_present(raw: Mapping[str, Any], keys: Sequence[str]) -> Any:
    """Return the first value among ``keys`` that is neither missing, null nor blank."""
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _extract_list(payload: Any, key: str) -> list[Any]:
    if isinstance(payload, Mapping):
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return []


def normalize_response(endpoint: Endpoint, payload: Any) -> Any:
    """Reshape an upstream payload into the proxy's per-endpoint contract.

    Missing or malformed wrappers degrade to an empty list; this function
    does not raise.
    """

    if endpoint is Endpoint.SEARCH:
        result: Any = _extract_list(payload, "profiles")
    elif endpoint is Endpoint.MARKETS:
        result = _extract_list(payload, "events")
    elif endpoint is Endpoint.TRENDING:
        result = payload if isinstance(payload, list) else _extract_list(payload, "events")
    else:
        result = payload

    if isinstance(result, list):
        logger.info("Normalized {} response with {} items", endpoint.value, len(result))
    return result


def trader_badges(trader: Trader) -> list[str]:
    badges: list[str] = []
    volume = trader.total_volume
    profit = trader.total_profit
    if volume > MEGA_WHALE_VOLUME:
        badges.append("mega-whale")
    elif volume > WHALE_VOLUME:
        badges.append("whale")
    if volume > 0 and profit > volume * 0.3:
        badges.append("hot-streak")
    elif volume > 0 and profit > volume * 0.1:
        badges.append("profitable")
    if trader.rank is not None and trader.rank <= 10:
        badges.append("legend")
    elif trader.rank is not None and trader.rank <= 50:
        badges.append("top-50")
    if trader.is_verified:
        badges.append("verified")
    if trader.portfolio_value > BIG_PORTFOLIO_VALUE:
        badges.append("big-portfolio")
    return badges


def normalize_trader(raw: Mapping[str, Any], *, position: int | None = None) -> Trader | None:
    """Build a canonical trader record; rows without a wallet are skipped."""
    resolved = {
        field: first_present(raw, sources) for field, sources in TRADER_FIELD_SOURCES.items()
    }
    wallet = resolved["wallet_address"]
    if not isinstance(wallet, str):
        return None

    rank = _parse_int(resolved["rank"])
    if rank is None and position is not None:
        rank = position

    trader = Trader(
        wallet_address=wallet,
        username=_text(resolved["username"]),
        avatar_url=_text(resolved["avatar_url"]),
        x_username=_text(resolved["x_username"]),
        bio=_text(resolved["bio"]),
        is_verified=bool(_parse_bool(resolved["is_verified"])),
        total_volume=_parse_float(resolved["total_volume"]) or 0.0,
        total_profit=_parse_float(resolved["total_profit"]) or 0.0,
        portfolio_value=_parse_float(resolved["portfolio_value"]) or 0.0,
        rank=rank,
        open_positions=_parse_int(resolved["open_positions"]) or 0,
        closed_positions=_parse_int(resolved["closed_positions"]) or 0,
        markets_traded=_parse_int(resolved["markets_traded"]) or 0,
    )
    trader.badges = trader_badges(trader)
    return trader


def normalize_traders(rows: Any) -> list[Trader]:
    if not isinstance(rows, list):
        return []
    traders: list[Trader] = []
    for index, row in enumerate(rows, start=1):
        if not isinstance(row, Mapping):
            continue
        trader = normalize_trader(row, position=index)
        if trader is not None:
            traders.append(trader)
    return traders


def _parse_prices(value: Any) -> list[float]:
    prices: list[float] = []
    for item in _as_list(value):
        price = _parse_float(item)
        if price is not None:
            prices.append(price)
    return prices


def normalize_sub_market(raw: Mapping[str, Any]) -> SubMarket:
    best_bid = _parse_float(raw.get("bestBid"))
    best_ask = _parse_float(raw.get("bestAsk"))
    spread = _parse_float(raw.get("spread"))
    if spread is None and best_bid is not None and best_ask is not None:
        spread = round(best_ask - best_bid, 6)

    raw_id = raw.get("id") or raw.get("conditionId")
    return SubMarket(
        market_id=str(raw_id) if raw_id else None,
        question=_text(raw.get("question") or raw.get("groupItemTitle")),
        slug=_text(raw.get("slug")),
        outcomes=[str(outcome) for outcome in _as_list(raw.get("outcomes"))],
        outcome_prices=_parse_prices(raw.get("outcomePrices")),
        clob_token_ids=[str(token) for token in _as_list(raw.get("clobTokenIds")) if token],
        best_bid=best_bid,
        best_ask=best_ask,
        spread=spread,
        volume=_parse_float(raw.get("volume") or raw.get("volumeNum")),
        liquidity=_parse_float(raw.get("liquidity") or raw.get("liquidityNum")),
        open_interest=_parse_float(raw.get("openInterest")),
        active=_parse_bool(raw.get("active")),
        closed=_parse_bool(raw.get("closed")),
    )


def _total(markets: list[SubMarket], attribute: str, fallback: Any) -> float:
    summed = sum(getattr(market, attribute) or 0.0 for market in markets)
    if summed:
        return summed
    return _parse_float(fallback) or 0.0


def normalize_event(raw: Mapping[str, Any]) -> MarketEvent:
    markets = [
        normalize_sub_market(item)
        for item in _as_list(raw.get("markets"))
        if isinstance(item, Mapping)
    ]
    raw_id = raw.get("id")
    return MarketEvent(
        event_id=str(raw_id) if raw_id else None,
        slug=_text(raw.get("slug")),
        title=_text(raw.get("title") or raw.get("name")),
        description=_text(raw.get("description")),
        icon_url=_text(raw.get("icon") or raw.get("image")),
        active=bool(_parse_bool(raw.get("active"))),
        closed=bool(_parse_bool(raw.get("closed"))),
        start_time=_parse_datetime(raw.get("startDate")),
        end_time=_parse_datetime(raw.get("endDate")),
        volume=_total(markets, "volume", raw.get("volume")),
        liquidity=_total(markets, "liquidity", raw.get("liquidity")),
        open_interest=_total(markets, "open_interest", raw.get("openInterest")),
        markets=markets,
    )


def normalize_events(rows: Any) -> list[MarketEvent]:
    if not isinstance(rows, list):
        return []
    return [normalize_event(row) for row in rows if isinstance(row, Mapping)]


def _parse_levels(value: Any) -> list[OrderBookLevel]:
    levels: list[OrderBookLevel] = []
    for item in _as_list(value):
        if not isinstance(item, Mapping):
            continue
        price = _parse_float(item.get("price"))
        size = _parse_float(item.get("size"))
        if price is None or size is None or not 0 <= price <= 1 or size < 0:
            continue
        levels.append(OrderBookLevel(price=price, size=size))
    return levels


def normalize_order_book(raw: Any) -> OrderBook:
    if not isinstance(raw, Mapping):
        return OrderBook()

    bids = sorted(_parse_levels(raw.get("bids")), key=lambda level: level.price, reverse=True)
    asks = sorted(_parse_levels(raw.get("asks")), key=lambda level: level.price)
    best_bid = bids[0].price if bids else None
    best_ask = asks[0].price if asks else None

    spread = midpoint = None
    if best_bid is not None and best_ask is not None:
        spread = round(best_ask - best_bid, 6)
        midpoint = round((best_ask + best_bid) / 2, 6)

    return OrderBook(
        market=_text(raw.get("market")),
        asset_id=_text(raw.get("asset_id")),
        timestamp=_text(raw.get("timestamp")),
        bids=bids,
        asks=asks,
        best_bid=best_bid,
        best_ask=best_ask,
        spread=spread,
        midpoint=midpoint,
    )
