"""Spot prices for the tradable assets, from a Yahoo-Finance-style chart API.

    GET {PRICE_API_URL}/v8/finance/chart/{symbol}?interval=1d&range=2d
      -> chart.result[0].meta.regularMarketPrice / chartPreviousClose

Each symbol is refetched at most every ``MIN_REFRESH_SECONDS``. When a fetch
fails the last cached price is served (stale); with no cache the lookup
raises PriceUnavailableError.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from config.settings import settings
from src.ag_common.datetime_utils import utc_now
from src.ag_common.errors import ExternalServiceError, PriceUnavailableError, UnsupportedAssetError
from src.ag_trading.domain.models import Asset, AssetInfo, PricePoint, PriceQuote

logger = logging.getLogger(__name__)

SERVICE_NAME = "price-api"
MIN_REFRESH_SECONDS = 15.0
MAX_HISTORY_DAYS = 365

# (max days, chart range)
HISTORY_RANGES: tuple[tuple[int, str], ...] = (
    (1, "1d"),
    (5, "5d"),
    (30, "1mo"),
    (90, "3mo"),
    (180, "6mo"),
    (MAX_HISTORY_DAYS, "1y"),
)

ASSETS: dict[str, Asset] = {
    a.id: a
    for a in (
        Asset("bitcoin", "BTC-USD", "Bitcoin", "crypto"),
        Asset("ethereum", "ETH-USD", "Ethereum", "crypto"),
        Asset("dogecoin", "DOGE-USD", "Dogecoin", "crypto"),
        Asset("gold", "GC=F", "Gold", "equity"),
        Asset("tsla", "TSLA", "Tesla, Inc.", "equity"),
        Asset("aapl", "AAPL", "Apple Inc.", "equity"),
        Asset("nvda", "NVDA", "NVIDIA Corporation", "equity"),
    )
}


def get_asset(asset_id: str) -> Asset:
    asset = ASSETS.get(asset_id)
    if asset is None:
        raise UnsupportedAssetError(asset_id)
    return asset


def parse_chart(payload: Any) -> tuple[Decimal, Decimal]:
    """(price, change_24h percent) from a chart response body."""
    try:
        meta = payload["chart"]["result"][0]["meta"]
        price = Decimal(str(meta["regularMarketPrice"]))
        previous = meta.get("chartPreviousClose") or meta.get("previousClose")
        previous_close = Decimal(str(previous)) if previous else None
    except (KeyError, IndexError, TypeError, InvalidOperation) as e:
        raise ExternalServiceError(SERVICE_NAME, f"malformed chart payload ({type(e).__name__})") from e
    if not price.is_finite() or price <= 0:
        raise ExternalServiceError(SERVICE_NAME, f"non-positive price {price}")
    change = Decimal("0")
    if previous_close:
        change = (price - previous_close) / previous_close * 100
    return price, change


def history_window(days: int) -> tuple[str, str]:
    """(range, interval) of the smallest chart range that covers ``days``.

    Intraday points for one day, hourly up to three months, daily beyond.
    """
    chart_range = next(r for limit, r in HISTORY_RANGES if days <= limit)
    if days <= 1:
        return chart_range, "5m"
    if days <= 90:
        return chart_range, "1h"
    return chart_range, "1d"


def parse_history(payload: Any) -> list[PricePoint]:
    """Close prices with their timestamps; bars with no close are skipped."""
    try:
        result = payload["chart"]["result"][0]
        timestamps = result.get("timestamp") or []
        closes = result["indicators"]["quote"][0].get("close") or []
        return [
            PricePoint(
                timestamp=datetime.fromtimestamp(ts, tz=timezone.utc),
                price=Decimal(str(close)),
            )
            for ts, close in zip(timestamps, closes)
            if close is not None
        ]
    except (KeyError, IndexError, TypeError, ValueError, OverflowError, InvalidOperation) as e:
        raise ExternalServiceError(SERVICE_NAME, f"malformed history payload ({type(e).__name__})") from e


def _optional_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def parse_asset_info(asset: Asset, payload: Any) -> AssetInfo:
    price, change_pct = parse_chart(payload)
    meta = payload["chart"]["result"][0]["meta"]
    previous = _optional_decimal(meta.get("chartPreviousClose") or meta.get("previousClose"))
    return AssetInfo(
        asset_id=asset.id,
        symbol=asset.symbol,
        name=meta.get("longName") or meta.get("shortName") or asset.name,
        asset_type=asset.asset_type,
        currency=meta.get("currency") or "USD",
        exchange=meta.get("fullExchangeName") or meta.get("exchangeName") or "",
        current_price=price,
        previous_close=previous,
        price_change_24h=price - previous if previous else Decimal("0"),
        price_change_percentage_24h=change_pct,
        high_24h=_optional_decimal(meta.get("regularMarketDayHigh")),
        low_24h=_optional_decimal(meta.get("regularMarketDayLow")),
        volume=_optional_decimal(meta.get("regularMarketVolume")),
        fifty_two_week_high=_optional_decimal(meta.get("fiftyTwoWeekHigh")),
        fifty_two_week_low=_optional_decimal(meta.get("fiftyTwoWeekLow")),
    )


class PriceFeed:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_url = (base_url or settings.PRICE_API_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            headers={"Accept": "application/json", "User-Agent": "Mozilla/5.0"},
            transport=transport,
        )
        self._clock = clock
        # symbol -> (quote, fetched_at)
        self._cache: dict[str, tuple[PriceQuote, float]] = {}

    async def close(self) -> None:
        await self._client.aclose()

    async def _chart(self, asset: Asset, chart_range: str, interval: str) -> Any:
        url = f"{self._base_url}/v8/finance/chart/{asset.symbol}"
        try:
            response = await self._client.get(url, params={"interval": interval, "range": chart_range})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                SERVICE_NAME, f"HTTP {e.response.status_code} for {asset.symbol}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError(SERVICE_NAME, f"{type(e).__name__} for {asset.symbol}") from e
        return payload

    async def _fetch(self, asset: Asset) -> PriceQuote:
        price, change = parse_chart(await self._chart(asset, "2d", "1d"))
        return PriceQuote(
            asset_id=asset.id,
            symbol=asset.symbol,
            name=asset.name,
            asset_type=asset.asset_type,
            price=price,
            change_24h=change,
            last_updated=utc_now(),
        )

    async def get_price(self, asset_id: str) -> PriceQuote:
        asset = get_asset(asset_id)
        now = self._clock()
        cached = self._cache.get(asset.symbol)
        if cached is not None and now - cached[1] < MIN_REFRESH_SECONDS:
            return cached[0]

        try:
            quote = await self._fetch(asset)
        except ExternalServiceError as e:
            if cached is not None:
                logger.warning("Serving stale price for %s: %s", asset.symbol, e.message)
                return cached[0]
            logger.warning("No price for %s: %s", asset.symbol, e.message)
            raise PriceUnavailableError(asset_id) from e

        self._cache[asset.symbol] = (quote, now)
        return quote

    async def get_prices(self, asset_ids: list[str] | None = None) -> dict[str, PriceQuote]:
        """Every requested asset that has a price; unavailable ones are left out."""
        ids = asset_ids if asset_ids is not None else list(ASSETS)
        results = await asyncio.gather(
            *(self.get_price(asset_id) for asset_id in ids), return_exceptions=True
        )
        prices: dict[str, PriceQuote] = {}
        for asset_id, result in zip(ids, results):
            if isinstance(result, PriceQuote):
                prices[asset_id] = result
            elif isinstance(result, BaseException) and not isinstance(result, PriceUnavailableError):
                raise result
        return prices

    async def get_history(self, asset_id: str, days: int) -> list[PricePoint]:
        asset = get_asset(asset_id)
        days = max(1, min(days, MAX_HISTORY_DAYS))
        chart_range, interval = history_window(days)
        points = parse_history(await self._chart(asset, chart_range, interval))
        cutoff = utc_now() - timedelta(days=days)
        return [p for p in points if p.timestamp >= cutoff]

    async def get_asset_info(self, asset_id: str) -> AssetInfo:
        asset = get_asset(asset_id)
        return parse_asset_info(asset, await self._chart(asset, "5d", "1d"))


_feed: PriceFeed | None = None


def get_price_feed() -> PriceFeed:
    global _feed  # noqa: PLW0603
    if _feed is None:
        _feed = PriceFeed()
    return _feed


async def close_price_feed() -> None:
    global _feed  # noqa: PLW0603
    if _feed is not None:
        await _feed.close()
        _feed = None
