"""Apply trade decisions to the portfolio in simulated or live mode."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from tradebrain.brokers.base import ExecutionGateway
from tradebrain.domain.models import (
    Mode,
    OrderResult,
    OrderStatus,
    PortfolioState,
    TradeAction,
    TradeDecision,
    TradeOutcome,
)
from tradebrain.errors import GatewayError, RelayUnavailableError


@dataclass(frozen=True)
class RejectedTrade:
    """A decision the ledger refused to apply."""

    decision: TradeDecision
    reason: str


@dataclass(frozen=True)
class ExecutionReport:
    """Everything one `execute` call produced; the caller decides what to do next."""

    portfolio: PortfolioState
    results: list[OrderResult] = field(default_factory=list)
    rejected: list[RejectedTrade] = field(default_factory=list)
    outcomes: list[TradeOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    permanent_failure: RelayUnavailableError | None = None
    account_refreshed: bool = False

    @property
    def last_result(self) -> OrderResult | None:
        return self.results[-1] if self.results else None

    @property
    def mode_switch_required(self) -> bool:
        return self.permanent_failure is not None


class ExecutionLedger:
    """Sequential executor over one price snapshot.

    Decisions are applied in the order given, each priced from the snapshot
    taken at scan time. The input portfolio is never mutated; a new
    `PortfolioState` is returned in the report.
    """

    def __init__(
        self,
        gateway: ExecutionGateway | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.gateway = gateway
        self._clock = clock
        self._logger = logging.getLogger("tradebrain.execution.ledger")

    def execute(
        self,
        decisions: list[TradeDecision],
        prices: dict[str, float],
        portfolio: PortfolioState,
        mode: Mode,
    ) -> ExecutionReport:
        actionable = [decision for decision in decisions if decision.is_actionable]
        if mode is Mode.LIVE:
            return self._execute_live(actionable, prices, portfolio)
        return self._execute_simulated(actionable, prices, portfolio)

    def mark_to_market(self, portfolio: PortfolioState, prices: dict[str, float]) -> PortfolioState:
        """Recompute equity as cash plus holdings valued at `prices`."""
        return replace(portfolio, equity=portfolio.cash + portfolio.market_value(prices))

    def sync_account(self, portfolio: PortfolioState) -> PortfolioState:
        """Replace cash, equity and positions with the broker's view.

        Raises `GatewayError` or `RelayUnavailableError`; the previous
        snapshot is left intact on failure.
        """
        if self.gateway is None:
            raise GatewayError("No execution gateway configured")
        account = self.gateway.get_account()
        positions = self.gateway.get_positions()
        return replace(
            portfolio,
            cash=account.cash,
            equity=account.equity,
            positions=positions,
            cost_basis={
                symbol: basis
                for symbol, basis in portfolio.cost_basis.items()
                if symbol in positions
            },
        )

    def _execute_simulated(
        self,
        decisions: list[TradeDecision],
        prices: dict[str, float],
        portfolio: PortfolioState,
    ) -> ExecutionReport:
        cash = portfolio.cash
        positions = dict(portfolio.positions)
        cost_basis = dict(portfolio.cost_basis)
        results: list[OrderResult] = []
        rejected: list[RejectedTrade] = []
        outcomes: list[TradeOutcome] = []

        for decision in decisions:
            symbol = decision.symbol
            qty = int(decision.quantity)
            price = prices.get(symbol)
            if qty <= 0:
                rejected.append(RejectedTrade(decision, "quantity below one share"))
                continue
            if price is None or price <= 0:
                rejected.append(RejectedTrade(decision, f"no price for {symbol}"))
                continue

            held = positions.get(symbol, 0)
            if decision.action is TradeAction.BUY:
                cost = qty * price
                if cost > cash:
                    rejected.append(
                        RejectedTrade(
                            decision,
                            f"insufficient funds: need ${cost:,.2f}, have ${cash:,.2f}",
                        )
                    )
                    continue
                cash -= cost
                cost_basis[symbol] = (
                    cost_basis.get(symbol, price) * held + cost
                ) / (held + qty)
                positions[symbol] = held + qty
            else:
                if held < qty:
                    rejected.append(
                        RejectedTrade(decision, f"insufficient holdings: hold {held}, sell {qty}")
                    )
                    continue
                cash += qty * price
                entry = cost_basis.get(symbol, price)
                outcomes.append(TradeOutcome(symbol=symbol, profit=(price - entry) * qty))
                remaining = held - qty
                if remaining == 0:
                    positions.pop(symbol, None)
                    cost_basis.pop(symbol, None)
                else:
                    positions[symbol] = remaining
            results.append(
                OrderResult(
                    symbol=symbol,
                    action=decision.action,
                    quantity=qty,
                    status=OrderStatus.FILLED,
                    price=price,
                    timestamp=self._clock(),
                )
            )

        updated = replace(portfolio, cash=cash, positions=positions, cost_basis=cost_basis)
        return ExecutionReport(
            portfolio=self.mark_to_market(updated, prices),
            results=results,
            rejected=rejected,
            outcomes=outcomes,
        )

    def _execute_live(
        self,
        decisions: list[TradeDecision],
        prices: dict[str, float],
        portfolio: PortfolioState,
    ) -> ExecutionReport:
        if self.gateway is None:
            raise GatewayError("Live execution requires an execution gateway")
        results: list[OrderResult] = []
        rejected: list[RejectedTrade] = []
        warnings: list[str] = []

        for decision in decisions:
            qty = int(decision.quantity)
            if qty <= 0:
                rejected.append(RejectedTrade(decision, "quantity below one share"))
                continue
            side = "buy" if decision.action is TradeAction.BUY else "sell"
            try:
                self.gateway.submit_order(decision.symbol, qty, side)
            except RelayUnavailableError as exc:
                self._logger.error("Relay lost during execution; abandoning batch: %s", exc)
                return ExecutionReport(
                    portfolio=portfolio,
                    results=results,
                    rejected=rejected,
                    permanent_failure=exc,
                )
            except GatewayError as exc:
                results.append(
                    OrderResult(
                        symbol=decision.symbol,
                        action=decision.action,
                        quantity=qty,
                        status=OrderStatus.FAILED,
                        price=prices.get(decision.symbol),
                        error=str(exc),
                        timestamp=self._clock(),
                    )
                )
                continue
            results.append(
                OrderResult(
                    symbol=decision.symbol,
                    action=decision.action,
                    quantity=qty,
                    status=OrderStatus.SENT,
                    price=prices.get(decision.symbol),
                    timestamp=self._clock(),
                )
            )

        try:
            refreshed = self.sync_account(portfolio)
        except RelayUnavailableError as exc:
            return ExecutionReport(
                portfolio=portfolio,
                results=results,
                rejected=rejected,
                permanent_failure=exc,
            )
        except GatewayError as exc:
            warnings.append(f"account refresh failed: {exc}")
            return ExecutionReport(
                portfolio=portfolio,
                results=results,
                rejected=rejected,
                warnings=warnings,
            )
        return ExecutionReport(
            portfolio=refreshed,
            results=results,
            rejected=rejected,
            account_refreshed=True,
        )
