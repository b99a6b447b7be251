"""Runtime wiring and the trading control loop."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable
from dataclasses import asdict
from pathlib import Path
from typing import Any
from uuid import uuid4

from tradebrain.brokers.alpaca_gateway import AlpacaGateway
from tradebrain.brokers.base import ExecutionGateway
from tradebrain.brokers.circuit_breaker import CircuitBreaker
from tradebrain.config import Settings
from tradebrain.data.crypto_quotes import CoinGeckoQuoteSource
from tradebrain.data.sampler import MarketSampler
from tradebrain.data.simulated import RandomWalkSimulator
from tradebrain.decision.engine import DecisionEngine
from tradebrain.decision.openai_client import OpenAIDecisionClient
from tradebrain.domain.events import EventType, TradeEvent
from tradebrain.domain.models import (
    ConnectionStatus,
    LoopState,
    MarketQuote,
    Mode,
    OrderResult,
    PortfolioState,
    TradeDecision,
)
from tradebrain.errors import GatewayError, RelayUnavailableError
from tradebrain.execution.ledger import ExecutionLedger, ExecutionReport
from tradebrain.logging.event_sink import JsonlEventSink, generate_plotly_report
from tradebrain.logging.logger import HumanLogger, setup_logger
from tradebrain.memory.store import MemoryStore


def screen_candidates(
    quotes: list[MarketQuote],
    portfolio: PortfolioState,
    change_threshold: float = 0.05,
) -> list[MarketQuote]:
    """Keep quotes that moved more than `change_threshold` percent or are held."""
    return [
        quote
        for quote in quotes
        if abs(quote.change_percent) > change_threshold or portfolio.quantity(quote.symbol) > 0
    ]


class ControlLoop:
    """Drive one non-overlapping sample -> decide -> execute -> reconcile cycle per tick.

    All services are injected. Shared state (portfolio, price marks, mode)
    is read once at the start of a cycle and committed at the end, all on
    the thread that calls `run_cycle`.
    """

    def __init__(
        self,
        settings: Settings,
        sampler: MarketSampler,
        memory: MemoryStore,
        engine: DecisionEngine,
        ledger: ExecutionLedger,
        event_sink: JsonlEventSink | None = None,
        human_logger: HumanLogger | None = None,
        run_id: str | None = None,
        clock: Callable[[], float] = time.monotonic,
        wait: Callable[[float], Any] | None = None,
    ) -> None:
        self.settings = settings
        self.sampler = sampler
        self.memory = memory
        self.engine = engine
        self.ledger = ledger
        self.event_sink = event_sink
        self.human_logger = human_logger or HumanLogger()
        self.run_id = run_id or uuid4().hex
        self.mode = settings.requested_mode()
        self.state = LoopState.INITIALIZING
        self.status = ConnectionStatus.SIMULATION
        self.portfolio = PortfolioState.starting(settings.initial_cash)
        self.start_equity = settings.initial_cash
        self.prices: dict[str, float] = {}
        self.last_quotes: list[MarketQuote] = []
        self.last_order: OrderResult | None = None
        self.cycle_count = 0
        self._clock = clock
        self._stop = threading.Event()
        self._wait = wait or self._stop.wait
        self._logger = logging.getLogger("tradebrain.runtime")

    def initialize(self) -> None:
        """Sync the live account once, then enter RUNNING (or DEGRADED)."""
        self._emit(
            EventType.RUN_STARTED,
            {"universe": self.settings.symbols, "requested_mode": self.mode.value},
        )
        self.human_logger.run_started(self.run_id, self.mode.value, len(self.settings.symbols))
        if not self.settings.is_simulation and not self.settings.has_credentials():
            self.human_logger.warning("No broker credentials configured; running in SIMULATION")
        self.state = LoopState.RUNNING
        if self.mode is Mode.LIVE:
            self._sync_live_account(initial=True)

    def run(self, max_cycles: int | None = None) -> int:
        """Run cycles on a fixed interval until stopped; return completed cycles."""
        if self.state is LoopState.INITIALIZING:
            self.initialize()
        limit = max_cycles if max_cycles is not None else self.settings.max_cycles
        completed = 0
        try:
            while not self._stop.is_set():
                started = self._clock()
                self.run_cycle()
                completed += 1
                if limit is not None and completed >= limit:
                    break
                elapsed = self._clock() - started
                self._wait(max(0.0, float(self.settings.interval_seconds) - elapsed))
        finally:
            self.state = LoopState.STOPPED
        return completed

    def stop(self) -> None:
        """Stop between ticks; an in-flight cycle always completes."""
        self._stop.set()

    def run_cycle(self) -> None:
        """Run one cycle; any failure is logged and the loop carries on."""
        self.cycle_count += 1
        try:
            self._cycle()
        except RelayUnavailableError as exc:
            self.demote(f"execution relay lost during cycle: {exc}")
        except Exception as exc:
            self._logger.exception("Cycle %s failed", self.cycle_count)
            self.human_logger.error(f"Cycle {self.cycle_count} crashed (auto-recovering): {exc}")
            self._emit(EventType.ERROR, {"message": str(exc)})

    def demote(self, reason: str) -> None:
        """Switch LIVE to SIMULATION; only `reconfigure` can switch back."""
        if self.mode is not Mode.LIVE:
            self._logger.debug("Ignoring demotion while already in simulation: %s", reason)
            return
        self.mode = Mode.SIMULATION
        self.settings = self.settings.with_overrides(is_simulation=True)
        self.state = LoopState.DEGRADED
        self.status = ConnectionStatus.SIMULATION
        self.human_logger.mode_switch(reason)
        self._emit(EventType.MODE_SWITCH, {"to": Mode.SIMULATION.value, "reason": reason})

    def reconfigure(self, **overrides: object) -> None:
        """Apply new settings explicitly; the only path back to LIVE."""
        self.settings = self.settings.with_overrides(**overrides)
        self.mode = self.settings.requested_mode()
        self.state = LoopState.RUNNING
        if self.mode is Mode.LIVE:
            self._sync_live_account(initial=False)
        else:
            self.status = ConnectionStatus.SIMULATION
        self._emit(EventType.RECONFIGURED, {"mode": self.mode.value})

    def _cycle(self) -> None:
        settings = self.settings
        portfolio = self.portfolio
        mode = self.mode

        quotes = self.sampler.scan_batch(
            settings.batch_size,
            held=portfolio.held_symbols(),
            live=mode is Mode.LIVE,
        )
        prices = {**self.prices, **{quote.symbol: quote.price for quote in quotes}}
        self.last_quotes = quotes
        self.memory.record_all(quotes)
        self.human_logger.scan(quotes)
        self._emit(EventType.SCAN, {"quotes": [asdict(quote) for quote in quotes]})

        report: ExecutionReport | None = None
        if settings.trading_enabled:
            candidates = screen_candidates(quotes, portfolio, settings.candidate_change_pct)
            if candidates:
                report = self._decide_and_execute(candidates, prices, portfolio, mode)

        updated = report.portfolio if report is not None else portfolio
        if report is not None:
            self._apply_report(report)
        if self.mode is Mode.SIMULATION:
            updated = self.ledger.mark_to_market(updated, prices)
        elif report is None:
            updated = self._refresh_live(updated, prices)

        self.portfolio = updated
        self.prices = prices
        self.human_logger.portfolio(updated.cash, updated.equity, len(updated.positions))
        self.human_logger.run_pnl(updated.equity, self.start_equity)
        self._emit(EventType.CYCLE_SUMMARY, serialize_portfolio(updated))

    def _decide_and_execute(
        self,
        candidates: list[MarketQuote],
        prices: dict[str, float],
        portfolio: PortfolioState,
        mode: Mode,
    ) -> ExecutionReport | None:
        symbols = [quote.symbol for quote in candidates]
        self.human_logger.brain(len(candidates))
        decisions = self.engine.decide(
            candidates,
            self.memory.batch_context(symbols),
            self.memory.learning_context(),
            portfolio,
        )
        actionable = [decision for decision in decisions if decision.is_actionable]
        for decision in actionable:
            self.human_logger.decision(decision)
        self._emit(
            EventType.DECISIONS,
            {
                "candidates": symbols,
                "decisions": [serialize_decision(decision) for decision in decisions],
                "dropped": self.engine.last_dropped,
            },
        )
        if not actionable:
            return None
        return self.ledger.execute(actionable, prices, portfolio, mode)

    def _apply_report(self, report: ExecutionReport) -> None:
        for result in report.results:
            self.human_logger.order(result)
            self._emit(EventType.ORDER, serialize_result(result))
            self.last_order = result
        for rejected in report.rejected:
            decision = rejected.decision
            self.human_logger.rejected(decision.symbol, decision.action.value, rejected.reason)
            self._emit(
                EventType.TRADE_REJECTED,
                {**serialize_decision(decision), "reason": rejected.reason},
            )
        for outcome in report.outcomes:
            self.memory.record_outcome(outcome)
        for warning in report.warnings:
            self._set_connectivity_error(warning)
        if report.account_refreshed:
            self.status = ConnectionStatus.CONNECTED
        if report.permanent_failure is not None:
            self.demote(f"execution relay lost during trade: {report.permanent_failure}")

    def _refresh_live(self, portfolio: PortfolioState, prices: dict[str, float]) -> PortfolioState:
        try:
            refreshed = self.ledger.sync_account(portfolio)
        except RelayUnavailableError as exc:
            self.demote(f"execution relay lost during account refresh: {exc}")
            return self.ledger.mark_to_market(portfolio, prices)
        except GatewayError as exc:
            self._set_connectivity_error(f"account refresh failed: {exc}")
            return portfolio
        self.status = ConnectionStatus.CONNECTED
        return refreshed

    def _sync_live_account(self, initial: bool) -> None:
        try:
            synced = self.ledger.sync_account(self.portfolio)
        except RelayUnavailableError as exc:
            self.demote(f"execution relay not detected: {exc}")
            return
        except GatewayError as exc:
            self._set_connectivity_error(f"failed to connect to broker: {exc}")
            return
        if initial:
            self.start_equity = synced.equity
            synced = PortfolioState(
                cash=synced.cash,
                positions=synced.positions,
                equity=synced.equity,
                initial_balance=synced.equity,
                cost_basis=synced.cost_basis,
            )
        self.portfolio = synced
        self.status = ConnectionStatus.CONNECTED
        self.human_logger.connectivity(self.status.value)
        self._emit(
            EventType.CONNECTIVITY,
            {"status": self.status.value, **serialize_portfolio(synced)},
        )

    def _set_connectivity_error(self, detail: str) -> None:
        self.status = ConnectionStatus.ERROR
        self.human_logger.connectivity(self.status.value, detail)
        self._emit(EventType.CONNECTIVITY, {"status": self.status.value, "detail": detail})

    def _emit(self, event_type: EventType, payload: dict[str, Any]) -> None:
        if self.event_sink is None:
            return
        self.event_sink.emit(
            TradeEvent(
                run_id=self.run_id,
                mode=self.mode,
                event_type=event_type,
                cycle=self.cycle_count,
                payload=payload,
            )
        )


def serialize_portfolio(portfolio: PortfolioState) -> dict[str, Any]:
    """Convert a portfolio into a stable event payload."""
    return {
        "cash": round(float(portfolio.cash), 4),
        "equity": round(float(portfolio.equity), 4),
        "initial_balance": round(float(portfolio.initial_balance), 4),
        "positions": dict(sorted(portfolio.positions.items())),
    }


def serialize_decision(decision: TradeDecision) -> dict[str, Any]:
    return {
        "symbol": decision.symbol,
        "action": decision.action.value,
        "quantity": decision.quantity,
        "confidence": decision.confidence,
        "reasoning": decision.reasoning,
    }


def serialize_result(result: OrderResult) -> dict[str, Any]:
    return {
        "symbol": result.symbol,
        "action": result.action.value,
        "quantity": result.quantity,
        "status": result.status.value,
        "price": result.price,
        "error": result.error,
    }


def build_gateway(settings: Settings) -> AlpacaGateway:
    """Build the execution gateway with its own circuit breaker."""
    return AlpacaGateway(
        api_key=settings.alpaca_api_key,
        secret_key=settings.alpaca_secret_key,
        base_url=settings.alpaca_base_url,
        data_url=settings.alpaca_data_url,
        relay_url=settings.relay_url,
        timeout=settings.request_timeout_seconds,
        breaker=CircuitBreaker(
            threshold=settings.breaker_failure_threshold,
            backoff_seconds=settings.breaker_backoff_seconds,
        ),
    )


def build_sampler(settings: Settings, gateway: ExecutionGateway | None) -> MarketSampler:
    """Build the market sampler; one seed drives both symbol picks and the walk."""
    rng = random.Random(settings.random_seed)
    return MarketSampler(
        universe=settings.symbols,
        simulator=RandomWalkSimulator(rng=rng),
        crypto_source=CoinGeckoQuoteSource(
            base_url=settings.coingecko_url,
            timeout=settings.request_timeout_seconds,
        ),
        gateway=gateway,
        rng=rng,
        sample_timeout=settings.request_timeout_seconds,
    )


def build_decision_engine(settings: Settings) -> DecisionEngine:
    """Build the decision engine; without an API key it never trades."""
    if not settings.openai_api_key:
        return DecisionEngine(client=None)
    return DecisionEngine(
        client=OpenAIDecisionClient(
            api_key=settings.openai_api_key,
            model=settings.decision_model,
            timeout=settings.decision_timeout_seconds,
        )
    )


def build_loop(
    settings: Settings,
    run_id: str | None = None,
    event_sink: JsonlEventSink | None = None,
) -> ControlLoop:
    """Wire owned service instances into a control loop."""
    gateway = build_gateway(settings)
    return ControlLoop(
        settings=settings,
        sampler=build_sampler(settings, gateway),
        memory=MemoryStore(
            capacity=settings.memory_capacity,
            outcome_capacity=settings.outcome_capacity,
        ),
        engine=build_decision_engine(settings),
        ledger=ExecutionLedger(gateway=gateway),
        event_sink=event_sink,
        run_id=run_id,
    )


def run(settings: Settings) -> int:
    """Run the control loop until interrupted or `max_cycles` is reached."""
    setup_logger(settings.log_level, settings.log_file)
    run_id = uuid4().hex
    run_directory = Path(settings.events_dir) / run_id
    run_directory.mkdir(parents=True, exist_ok=True)
    events_path = run_directory / "events.jsonl"
    report_path = run_directory / "report.html"

    event_sink = JsonlEventSink(str(events_path))
    loop = build_loop(settings, run_id=run_id, event_sink=event_sink)

    exit_code = 0
    try:
        loop.run()
    except KeyboardInterrupt:
        loop.stop()
        exit_code = 0
    except Exception as exc:
        loop.human_logger.error(str(exc))
        event_sink.emit(
            TradeEvent(
                run_id=run_id,
                mode=loop.mode,
                event_type=EventType.ERROR,
                cycle=loop.cycle_count,
                payload={"message": str(exc)},
            )
        )
        exit_code = 1
    finally:
        generate_plotly_report(str(events_path), str(report_path))
    return exit_code


def show_portfolio(settings: Settings) -> int:
    """Print the live account snapshot and long positions, then exit."""
    if settings.requested_mode() is not Mode.LIVE:
        raise ValueError("--portfolio requires live mode with broker credentials")
    setup_logger(settings.log_level, settings.log_file)
    human_logger = HumanLogger("tradebrain.portfolio")
    gateway = build_gateway(settings)
    try:
        account = gateway.get_account()
        positions = gateway.get_positions()
    except (GatewayError, RelayUnavailableError) as exc:
        human_logger.error(f"Failed to read live portfolio: {exc}")
        return 1
    human_logger.portfolio(account.cash, account.equity, len(positions))
    for symbol, quantity in sorted(positions.items()):
        print(f"{symbol}: {quantity}")
    return 0
