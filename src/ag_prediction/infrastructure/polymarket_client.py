"""Polymarket Gamma (market metadata) and CLOB (order book) client.

One long-lived httpx.AsyncClient per process; closed from the app lifespan.
Every transport or HTTP-status failure surfaces as ExternalServiceError so
callers decide whether to skip or count the failure.
"""

import asyncio
import json
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from config.settings import settings
from src.ag_common.datetime_utils import utc_now
from src.ag_common.enums import ResolutionOutcome
from src.ag_common.errors import ExternalServiceError
from src.ag_prediction.domain.models import Quote
from src.ag_prediction.domain.pricing import apply_markup
from src.ag_prediction.domain.settlement import outcome_from_payout_numerators

logger = logging.getLogger(__name__)

SERVICE_NAME = "polymarket"
MIN_MARKET_VOLUME = Decimal("100")


def _to_decimal(value: object, default: Decimal) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def _maybe_json_list(value: object) -> list[Any]:
    # Gamma sometimes returns list fields as JSON-encoded strings
    if isinstance(value, list):
        return value
    if isinstance(value, str) and value:
        try:
            decoded = json.loads(value)
        except ValueError:
            return []
        return decoded if isinstance(decoded, list) else []
    return []


def _parse_datetime(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def extract_token_ids(market: dict[str, Any]) -> tuple[str | None, str | None]:
    """Return (yes_token_id, no_token_id).

    Matches tokens by outcome name first; otherwise index 1 is YES and
    index 0 is NO.
    """
    tokens = [t for t in _maybe_json_list(market.get("tokens")) if isinstance(t, dict)]
    if len(tokens) >= 2:
        by_outcome = {str(t.get("outcome", "")).lower(): t.get("token_id") for t in tokens}
        if by_outcome.get("yes") and by_outcome.get("no"):
            return str(by_outcome["yes"]), str(by_outcome["no"])
        no_id, yes_id = tokens[0].get("token_id"), tokens[1].get("token_id")
        return (str(yes_id) if yes_id else None, str(no_id) if no_id else None)

    clob_ids = _maybe_json_list(market.get("clobTokenIds"))
    if len(clob_ids) >= 2:
        outcomes = [str(o).lower() for o in _maybe_json_list(market.get("outcomes"))]
        if "yes" in outcomes and "no" in outcomes and len(outcomes) == len(clob_ids):
            return str(clob_ids[outcomes.index("yes")]), str(clob_ids[outcomes.index("no")])
        return str(clob_ids[1]), str(clob_ids[0])
    return None, None


def market_id_of(market: dict[str, Any]) -> str:
    return str(market.get("condition_id") or market.get("conditionId") or market.get("id"))


def market_end_date(market: dict[str, Any]) -> datetime | None:
    return _parse_datetime(market.get("end_date_iso") or market.get("endDate"))


def market_metadata(market: dict[str, Any]) -> dict[str, Any]:
    return {
        "description": market.get("description"),
        "market_slug": market.get("market_slug") or market.get("slug"),
        "image": market.get("image"),
        "icon": market.get("icon"),
        "category": market.get("category"),
        "tags": market.get("tags") or [],
        "outcomes": _maybe_json_list(market.get("outcomes")) or ["No", "Yes"],
    }


def is_listable(market: dict[str, Any]) -> bool:
    return (
        market.get("active") is True
        and market.get("archived") is False
        and market.get("closed") is False
        and _to_decimal(market.get("volume") or 0, Decimal(0)) > MIN_MARKET_VOLUME
    )


def best_prices(book: dict[str, Any]) -> tuple[Decimal, Decimal]:
    """(best bid, best ask) from a CLOB book; empty sides read as 0 and 1."""
    bids = book.get("bids") or []
    asks = book.get("asks") or []
    bid = _to_decimal(bids[0].get("price"), Decimal(0)) if bids else Decimal(0)
    ask = _to_decimal(asks[0].get("price"), Decimal(1)) if asks else Decimal(1)
    return bid, ask


class PolymarketClient:
    def __init__(
        self,
        gamma_url: str | None = None,
        clob_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._gamma_url = (gamma_url or settings.POLYMARKET_GAMMA_URL).rstrip("/")
        self._clob_url = (clob_url or settings.POLYMARKET_CLOB_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(SERVICE_NAME, f"HTTP {e.response.status_code} for {url}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError(SERVICE_NAME, f"{type(e).__name__} for {url}") from e

    # ------------------------------------------------------------------
    # Gamma
    # ------------------------------------------------------------------

    async def fetch_active_markets(self) -> list[dict[str, Any]]:
        payload = await self._get_json(f"{self._gamma_url}/markets")
        if not isinstance(payload, list):
            raise ExternalServiceError(SERVICE_NAME, "unexpected /markets payload")
        markets = [m for m in payload if isinstance(m, dict) and is_listable(m)]
        logger.debug("Gamma returned %d markets, %d listable", len(payload), len(markets))
        return markets

    async def fetch_market_details(self, pm_market_id: str) -> dict[str, Any] | None:
        """None when Polymarket does not know the id."""
        url = f"{self._gamma_url}/markets/{pm_market_id}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise ExternalServiceError(SERVICE_NAME, f"{type(e).__name__} for {url}") from e
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        try:
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(SERVICE_NAME, f"HTTP {e.response.status_code} for {url}") from e
        except ValueError as e:
            raise ExternalServiceError(SERVICE_NAME, f"invalid JSON from {url}") from e
        return payload if isinstance(payload, dict) and payload else None

    async def check_resolution(self, pm_market_id: str) -> ResolutionOutcome | None:
        market = await self.fetch_market_details(pm_market_id)
        if not market or not (market.get("closed") and market.get("resolved")):
            return None
        return outcome_from_payout_numerators(_maybe_json_list(market.get("payout_numerators")))

    # ------------------------------------------------------------------
    # CLOB
    # ------------------------------------------------------------------

    async def fetch_order_book(self, token_id: str) -> dict[str, Any]:
        payload = await self._get_json(f"{self._clob_url}/book", params={"token_id": token_id})
        return payload if isinstance(payload, dict) else {}

    async def fetch_quote(self, yes_token_id: str, no_token_id: str) -> Quote:
        """Best bid/ask for both tokens with the platform markup applied."""
        yes_book, no_book = await asyncio.gather(
            self.fetch_order_book(yes_token_id),
            self.fetch_order_book(no_token_id),
        )
        yes_bid, yes_ask = apply_markup(*best_prices(yes_book))
        no_bid, no_ask = apply_markup(*best_prices(no_book))
        return Quote(
            yes_bid=yes_bid,
            yes_ask=yes_ask,
            no_bid=no_bid,
            no_ask=no_ask,
            src_timestamp=utc_now(),
        )


_client: PolymarketClient | None = None


def get_polymarket_client() -> PolymarketClient:
    global _client  # noqa: PLW0603
    if _client is None:
        _client = PolymarketClient()
    return _client


async def close_polymarket_client() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.close()
        _client = None
