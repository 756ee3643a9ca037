"""Account orchestration: persistence, command dispatch and mark-to-market reports."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable

from app.config import AppSettings, get_settings
from app.providers.quotes import Quote, QuoteFeed
from app.services.persistence import AccountStateRepository
from app.services.price_refresher import PriceRefresher
from margin_ledger.account import AccountContainer, AccountState, Command, CommandResult, default_broker_settings
from margin_ledger.ledger import get_current_debit, get_total_interest
from margin_ledger.margin import (
    AccountSummary,
    PositionSummary,
    build_position_snapshots,
    get_account_summary,
    get_position_summary,
)
from margin_ledger.models import AccountSettings, MatchPolicy, PDTStatus, Trade
from margin_ledger.pdt import get_pdt_status, get_pdt_warning_message, would_create_day_trade
from margin_ledger.rates import pick_tier_apr

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PDTReport:
    status: PDTStatus
    warning: str


def initial_state(settings: AppSettings) -> AccountState:
    """Empty account using the broker and policy defaults from configuration."""

    broker = replace(
        default_broker_settings(),
        broker_name=settings.default_broker_name,
        day_count_basis=settings.day_count_basis,
        initial_margin_pct=settings.initial_margin_pct,
        maintenance_margin_pct=settings.maintenance_margin_pct,
    )
    account_settings = AccountSettings(
        match_policy=MatchPolicy(settings.lot_allocation_method),
        default_fees_per_trade=settings.default_fees_per_trade,
    )
    return AccountState(broker=broker, settings=account_settings)


class MarginAccountService:
    """Single owner of the account container.

    Commands are serialized with an :class:`asyncio.Lock`; each accepted
    command is persisted before the lock is released.
    """

    def __init__(
        self,
        repository: AccountStateRepository | None = None,
        *,
        feed: QuoteFeed | None = None,
        settings: AppSettings | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository
        self._feed = feed
        self._clock = clock
        self._container = AccountContainer(initial_state(self._settings), clock=clock)
        self._lock = asyncio.Lock()
        self._quotes: dict[str, Quote] = {}
        self._prices: dict[str, Decimal] = {}

    @property
    def state(self) -> AccountState:
        return self._container.state

    @property
    def key(self) -> str:
        return self._settings.account_key

    def today(self) -> date:
        return self._clock()

    async def load(self) -> AccountState:
        if self._repository is None:
            return self.state
        stored = await self._repository.get(self.key)
        async with self._lock:
            if stored is not None:
                self._container = AccountContainer(stored, clock=self._clock)
                logger.info("Loaded account %s with %d trades", self.key, len(stored.trades))
            else:
                logger.info("No stored account for %s; starting empty", self.key)
        return self.state

    async def dispatch(self, command: Command) -> CommandResult:
        async with self._lock:
            result = self._container.dispatch(command)
            if result.ok and self._repository is not None:
                await self._repository.set(self.key, result.state)
        return result

    async def replace_state(self, state: AccountState) -> AccountState:
        async with self._lock:
            self._container = AccountContainer(state, clock=self._clock)
            if self._repository is not None:
                await self._repository.set(self.key, state)
        return state

    # ---- Quotes ----

    def open_tickers(self) -> list[str]:
        return sorted({lot.ticker for lot in self.state.lots})

    def update_quotes(self, quotes: dict[str, Quote]) -> None:
        """Merge fresh quotes; an unknown price keeps the last known one."""

        for ticker, quote in quotes.items():
            self._quotes[ticker] = quote
            if quote.price is not None:
                self._prices[ticker] = quote.price

    def set_price(self, ticker: str, price: Decimal | None) -> None:
        if price is None:
            self._prices.pop(ticker.upper(), None)
        else:
            self._prices[ticker.upper()] = price

    def prices(self) -> dict[str, Decimal | None]:
        return {ticker: self._prices.get(ticker) for ticker in self.open_tickers()}

    def quote(self, ticker: str) -> Quote | None:
        return self._quotes.get(ticker.upper())

    async def refresh_quotes(self) -> dict[str, Quote]:
        if self._feed is None:
            return {}
        quotes = await self._feed.fetch_quotes(self.open_tickers())
        self.update_quotes(quotes)
        return quotes

    def build_refresher(self, interval_seconds: float | None = None) -> PriceRefresher | None:
        if self._feed is None:
            return None
        return PriceRefresher(
            self._feed,
            self.open_tickers,
            self.update_quotes,
            interval_seconds or self._settings.quote_refresh_seconds,
        )

    # ---- Reports ----

    def current_apr(self) -> Decimal:
        state = self.state
        if state.ledger and state.ledger[-1].apr_used is not None:
            return state.ledger[-1].apr_used
        return pick_tier_apr(get_current_debit(state.ledger), state.broker.tiers)

    def account_summary(self, as_of: date | None = None) -> AccountSummary:
        state = self.state
        positions = build_position_snapshots(state.lots, self.prices(), as_of or self.today())
        return get_account_summary(
            positions,
            state.lots,
            get_current_debit(state.ledger),
            state.broker,
            current_apr=self.current_apr(),
        )

    def position_summaries(self) -> list[PositionSummary]:
        state = self.state
        prices = self.prices()
        return [
            get_position_summary(ticker, state.lots, prices.get(ticker), state.broker.maintenance_margin_pct)
            for ticker in self.open_tickers()
        ]

    def pdt_report(self, as_of: date | None = None) -> PDTReport:
        status = get_pdt_status(self.state.trades, as_of or self.today())
        return PDTReport(status=status, warning=get_pdt_warning_message(status))

    def would_create_day_trade(self, trade: Trade) -> bool:
        return would_create_day_trade(trade, self.state.trades)

    def total_interest(self, start: date, end: date) -> Decimal:
        return get_total_interest(start, end, self.state.ledger)

    def trades_for(self, tickers: Iterable[str] | None = None) -> list[Trade]:
        if tickers is None:
            return list(self.state.trades)
        wanted = {t.upper() for t in tickers}
        return [t for t in self.state.trades if t.ticker in wanted]


__all__ = ["MarginAccountService", "PDTReport", "initial_state"]
