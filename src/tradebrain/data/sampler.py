"""Market sampling with real-source routing and simulated fallback."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait

from tradebrain.brokers.base import ExecutionGateway
from tradebrain.data.base import QuoteSource
from tradebrain.data.simulated import RandomWalkSimulator
from tradebrain.domain.models import MarketQuote
from tradebrain.errors import GatewayError, MarketDataError, RelayUnavailableError

TRANSIENT_ERRORS = (GatewayError, MarketDataError)


class MarketSampler:
    """Produce one quote per symbol, falling back to the random walk.

    Routing waterfall per symbol: crypto pairs go to the public quote
    source; other symbols go to the broker quote endpoint when running live
    with credentials; anything that yields no price is simulated.

    Network lookups run on worker threads. Their results are joined back
    before any simulator or price-history state is touched, so all mutation
    happens on the caller's thread.
    """

    def __init__(
        self,
        universe: list[str],
        simulator: RandomWalkSimulator,
        crypto_source: QuoteSource | None = None,
        gateway: ExecutionGateway | None = None,
        rng: random.Random | None = None,
        sample_timeout: float = 8.0,
        max_workers: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.universe = list(universe)
        self.simulator = simulator
        self.crypto_source = crypto_source
        self.gateway = gateway
        self.rng = rng or random.Random()
        self.sample_timeout = sample_timeout
        self.max_workers = max_workers
        self._clock = clock
        self._last_prices: dict[str, float] = {}
        self._logger = logging.getLogger("tradebrain.data.sampler")

    def sample(self, symbol: str, live: bool = False) -> MarketQuote:
        """Return a quote for one symbol; only permanent failures escape."""
        try:
            fetched = self._fetch_real(symbol, live)
        except TRANSIENT_ERRORS as exc:
            self._logger.debug("%s: real quote unavailable (%s); simulating", symbol, exc)
            fetched = None
        return self._resolve(symbol, fetched)

    def select_symbols(self, batch_size: int, held: Iterable[str] = ()) -> list[str]:
        """Pick `batch_size` random universe symbols plus every held symbol."""
        count = min(batch_size, len(self.universe))
        selected = self.rng.sample(self.universe, count)
        for symbol in held:
            if symbol not in selected:
                selected.append(symbol)
        return selected

    def scan_batch(
        self,
        batch_size: int,
        held: Iterable[str] = (),
        live: bool = False,
    ) -> list[MarketQuote]:
        """Sample a batch concurrently and return one quote per selected symbol.

        A transient failure or stalled lookup for one symbol is replaced by
        its simulated value. A `RelayUnavailableError` from any lookup aborts
        the whole batch before any state changes.
        """
        symbols = self.select_symbols(batch_size, held)
        if not symbols:
            return []
        fetched = self._fetch_concurrently(symbols, live)
        return [self._resolve(symbol, fetched.get(symbol)) for symbol in symbols]

    def last_price(self, symbol: str) -> float | None:
        return self._last_prices.get(symbol)

    def _fetch_concurrently(
        self,
        symbols: list[str],
        live: bool,
    ) -> dict[str, tuple[float, str] | None]:
        workers = len(symbols)
        if self.max_workers is not None:
            workers = max(1, min(self.max_workers, workers))
        executor = ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix="sampler",
        )
        try:
            futures: dict[str, Future[tuple[float, str] | None]] = {
                symbol: executor.submit(self._fetch_real, symbol, live) for symbol in symbols
            }
            done, _pending = wait(futures.values(), timeout=self.sample_timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        results: dict[str, tuple[float, str] | None] = {}
        for symbol, future in futures.items():
            if future not in done:
                self._logger.warning("%s: quote lookup stalled; simulating", symbol)
                results[symbol] = None
                continue
            try:
                results[symbol] = future.result()
            except RelayUnavailableError:
                raise
            except TRANSIENT_ERRORS as exc:
                self._logger.debug("%s: real quote unavailable (%s); simulating", symbol, exc)
                results[symbol] = None
        return results

    def _fetch_real(self, symbol: str, live: bool) -> tuple[float, str] | None:
        if self.crypto_source is not None and self.crypto_source.supports(symbol):
            price = self.crypto_source.get_quote(symbol)
            return (price, "crypto") if price else None
        if live and self.gateway is not None and self.gateway.has_credentials():
            price = self.gateway.get_latest_quote(symbol)
            return (price, "broker") if price else None
        return None

    def _resolve(self, symbol: str, fetched: tuple[float, str] | None) -> MarketQuote:
        if fetched is None:
            quote = self.simulator.step(symbol)
        else:
            price, source = fetched
            previous = self._last_prices.get(symbol)
            change = (price - previous) / previous * 100.0 if previous else 0.0
            self.simulator.anchor(symbol, price)
            quote = MarketQuote(
                symbol=symbol,
                price=price,
                change_percent=round(change, 4),
                timestamp=self._clock(),
                source=source,
            )
        self._last_prices[symbol] = quote.price
        return quote
