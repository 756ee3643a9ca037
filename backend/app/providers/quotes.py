"""Quote feed used to mark open lots to market."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping, Protocol

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)

OPEN_MARKET_STATES = frozenset({"REGULAR", "PRE", "POST"})
CLOSED_MARKET_STATES = frozenset({"CLOSED"})


class QuoteServiceError(RuntimeError):
    """Raised when the quote service returns an unusable response."""


@dataclass(frozen=True)
class Quote:
    ticker: str
    price: Decimal | None = None
    volume: int | None = None
    is_market_open: bool | None = None


class QuoteFeed(Protocol):
    async def fetch_quotes(self, tickers: Iterable[str]) -> dict[str, Quote]:
        """Return one quote per requested ticker; never raises."""
        ...


def determine_market_open(market_state: str | None, *, on: date | None = None) -> bool | None:
    """Map a quote ``marketState`` to open/closed/unknown.

    Weekends are always closed when ``on`` is given.
    """

    if on is not None and on.weekday() >= 5:
        return False
    if not market_state:
        return None
    state = market_state.upper()
    if state in OPEN_MARKET_STATES:
        return True
    if state in CLOSED_MARKET_STATES:
        return False
    return None


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        return None
    if not price.is_finite() or price < 0:
        return None
    return price


def _to_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_quote_payload(payload: Any, *, on: date | None = None) -> dict[str, Quote]:
    """Extract quotes from a ``{"result": [...]}`` payload.

    The upstream ``{"quoteResponse": {"result": [...]}}`` envelope is accepted
    as well. Malformed items are skipped.
    """

    if not isinstance(payload, Mapping):
        return {}
    rows = payload.get("result")
    if rows is None and isinstance(payload.get("quoteResponse"), Mapping):
        rows = payload["quoteResponse"].get("result")
    if not isinstance(rows, list):
        return {}
    quotes: dict[str, Quote] = {}
    for row in rows:
        if not isinstance(row, Mapping) or not row.get("symbol"):
            continue
        ticker = str(row["symbol"]).upper()
        quotes[ticker] = Quote(
            ticker=ticker,
            price=_to_decimal(row.get("regularMarketPrice")),
            volume=_to_int(row.get("regularMarketVolume")),
            is_market_open=determine_market_open(row.get("marketState"), on=on),
        )
    return quotes


def _unknown(tickers: Iterable[str]) -> dict[str, Quote]:
    return {ticker: Quote(ticker=ticker) for ticker in tickers}


class HTTPQuoteFeed:
    """Fetch quotes from ``GET {base_url}/quotes?symbols=A,B``.

    Transport and payload errors are logged and reported as unknown quotes.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.quote_service_url or "").rstrip("/")
        self._timeout = timeout or settings.quote_timeout_seconds
        self._token = token if token is not None else settings.quote_service_token
        self._client = client
        self._clock = clock

    async def _request(self, symbols: list[str]) -> Any:
        if not self._base_url:
            raise QuoteServiceError("quote service URL is not configured")
        headers: dict[str, str] = {}
        if self._token:
            headers["X-Internal-Token"] = self._token
        url = f"{self._base_url}/quotes"
        params = {"symbols": ",".join(symbols)}
        if self._client is not None:
            response = await self._client.get(url, params=params, headers=headers, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url, params=params, headers=headers)
        if response.status_code >= 400:
            raise QuoteServiceError(f"quote service returned {response.status_code}")
        return response.json()

    async def fetch_quotes(self, tickers: Iterable[str]) -> dict[str, Quote]:
        symbols = sorted({t.strip().upper() for t in tickers if t and t.strip()})
        if not symbols:
            return {}
        try:
            payload = await self._request(symbols)
        except (httpx.HTTPError, QuoteServiceError, ValueError) as exc:
            logger.warning("Quote fetch failed for %s: %s", ",".join(symbols), exc)
            return _unknown(symbols)
        parsed = parse_quote_payload(payload, on=self._clock())
        quotes = _unknown(symbols)
        quotes.update({ticker: quote for ticker, quote in parsed.items() if ticker in quotes})
        return quotes

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


class StaticQuoteFeed:
    """In-memory feed returning fixed prices."""

    def __init__(self, prices: Mapping[str, Decimal | float | str | None] | None = None) -> None:
        self._quotes = {
            ticker.upper(): Quote(ticker=ticker.upper(), price=_to_decimal(price))
            for ticker, price in (prices or {}).items()
        }
        self.calls: list[list[str]] = []

    def set_price(self, ticker: str, price: Decimal | float | str | None) -> None:
        ticker = ticker.upper()
        self._quotes[ticker] = Quote(ticker=ticker, price=_to_decimal(price))

    async def fetch_quotes(self, tickers: Iterable[str]) -> dict[str, Quote]:
        symbols = sorted({t.upper() for t in tickers})
        self.calls.append(symbols)
        return {ticker: self._quotes.get(ticker, Quote(ticker=ticker)) for ticker in symbols}


__all__ = [
    "HTTPQuoteFeed",
    "Quote",
    "QuoteFeed",
    "QuoteServiceError",
    "StaticQuoteFeed",
    "determine_market_open",
    "parse_quote_payload",
]
