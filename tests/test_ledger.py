from __future__ import annotations

import pytest

from tradebrain.domain.models import (
    AccountSnapshot,
    Mode,
    OrderStatus,
    PortfolioState,
    TradeAction,
    TradeDecision,
)
from tradebrain.errors import GatewayError, RelayUnavailableError
from tradebrain.execution.ledger import ExecutionLedger


def buy(symbol: str, qty: float) -> TradeDecision:
    return TradeDecision(symbol=symbol, action=TradeAction.BUY, quantity=qty)


def sell(symbol: str, qty: float) -> TradeDecision:
    return TradeDecision(symbol=symbol, action=TradeAction.SELL, quantity=qty)


class StubGateway:
    def __init__(
        self,
        order_errors: dict[str, Exception] | None = None,
        account_error: Exception | None = None,
    ) -> None:
        self.order_errors = order_errors or {}
        self.account_error = account_error
        self.orders: list[tuple[str, int, str]] = []

    def has_credentials(self) -> bool:
        return True

    def get_account(self) -> AccountSnapshot:
        if self.account_error is not None:
            raise self.account_error
        return AccountSnapshot(equity=10_250.0, cash=9_000.0, buying_power=18_000.0)

    def get_positions(self) -> dict[str, int]:
        return {"AAPL": 5}

    def submit_order(self, symbol: str, qty: int, side: str) -> dict[str, object]:
        self.orders.append((symbol, qty, side))
        error = self.order_errors.get(symbol)
        if error is not None:
            raise error
        return {"id": f"order-{len(self.orders)}"}

    def get_latest_quote(self, symbol: str) -> float | None:
        return None


def test_simulated_buy_debits_cash() -> None:
    ledger = ExecutionLedger(clock=lambda: 5.0)
    portfolio = PortfolioState.starting(100_000.0)

    report = ledger.execute([buy("X", 10)], {"X": 50.0}, portfolio, Mode.SIMULATION)

    assert report.portfolio.cash == 99_500.0
    assert report.portfolio.positions == {"X": 10}
    assert report.portfolio.equity == pytest.approx(100_000.0)
    assert report.last_result is not None
    assert report.last_result.status is OrderStatus.FILLED
    assert report.last_result.price == 50.0
    assert portfolio.positions == {}


def test_simulated_full_sell_removes_position_and_records_outcome() -> None:
    ledger = ExecutionLedger()
    portfolio = PortfolioState(
        cash=1_000.0,
        positions={"X": 10},
        cost_basis={"X": 50.0},
    )

    report = ledger.execute([sell("X", 10)], {"X": 55.0}, portfolio, Mode.SIMULATION)

    assert report.portfolio.cash == 1_550.0
    assert report.portfolio.positions == {}
    assert report.portfolio.cost_basis == {}
    assert len(report.outcomes) == 1
    assert report.outcomes[0].profit == pytest.approx(50.0)


def test_rejections_leave_portfolio_untouched() -> None:
    ledger = ExecutionLedger()
    portfolio = PortfolioState(cash=100.0, positions={"Y": 1}, equity=120.0)

    report = ledger.execute(
        [buy("X", 10), sell("Y", 5), buy("Z", 1), buy("X", 0.4)],
        {"X": 50.0, "Y": 20.0},
        portfolio,
        Mode.SIMULATION,
    )

    reasons = [item.reason for item in report.rejected]
    assert len(reasons) == 4
    assert reasons[0].startswith("insufficient funds")
    assert reasons[1].startswith("insufficient holdings")
    assert reasons[2] == "no price for Z"
    assert reasons[3] == "quantity below one share"
    assert report.results == []
    assert report.portfolio.cash == 100.0
    assert report.portfolio.positions == {"Y": 1}


def test_hold_decisions_are_ignored() -> None:
    ledger = ExecutionLedger()
    hold = TradeDecision(symbol="X", action=TradeAction.HOLD, quantity=5)

    report = ledger.execute([hold], {"X": 10.0}, PortfolioState.starting(100.0), Mode.SIMULATION)

    assert report.results == []
    assert report.rejected == []


def test_decisions_apply_sequentially_against_running_cash() -> None:
    ledger = ExecutionLedger()

    report = ledger.execute(
        [buy("A", 6), buy("B", 6)],
        {"A": 10.0, "B": 10.0},
        PortfolioState.starting(100.0),
        Mode.SIMULATION,
    )

    assert [result.symbol for result in report.results] == ["A"]
    assert report.rejected[0].decision.symbol == "B"
    assert report.portfolio.cash == 40.0


def test_equity_matches_cash_plus_marked_holdings() -> None:
    ledger = ExecutionLedger()
    prices = {"A": 12.5, "B": 3.0}

    report = ledger.execute(
        [buy("A", 4), buy("B", 10), sell("A", 1)],
        prices,
        PortfolioState.starting(1_000.0),
        Mode.SIMULATION,
    )

    portfolio = report.portfolio
    assert all(qty > 0 for qty in portfolio.positions.values())
    assert portfolio.cash >= 0
    assert portfolio.equity == pytest.approx(portfolio.cash + 3 * 12.5 + 10 * 3.0)


def test_average_cost_basis_feeds_realized_profit() -> None:
    ledger = ExecutionLedger()
    first = ledger.execute([buy("A", 2)], {"A": 10.0}, PortfolioState.starting(1_000.0), Mode.SIMULATION)
    second = ledger.execute([buy("A", 2)], {"A": 20.0}, first.portfolio, Mode.SIMULATION)

    closed = ledger.execute([sell("A", 4)], {"A": 12.0}, second.portfolio, Mode.SIMULATION)

    assert second.portfolio.cost_basis["A"] == pytest.approx(15.0)
    assert closed.outcomes[0].profit == pytest.approx(-12.0)
    assert closed.outcomes[0].is_win is False


def test_live_orders_are_sent_then_account_refreshed() -> None:
    gateway = StubGateway()
    ledger = ExecutionLedger(gateway=gateway)

    report = ledger.execute(
        [buy("AAPL", 2.7), sell("MSFT", 1)],
        {"AAPL": 190.0},
        PortfolioState.starting(100.0),
        Mode.LIVE,
    )

    assert gateway.orders == [("AAPL", 2, "buy"), ("MSFT", 1, "sell")]
    assert [result.status for result in report.results] == [OrderStatus.SENT, OrderStatus.SENT]
    assert report.account_refreshed is True
    assert report.portfolio.cash == 9_000.0
    assert report.portfolio.equity == 10_250.0
    assert report.portfolio.positions == {"AAPL": 5}


def test_live_transient_failure_marks_order_failed_and_continues() -> None:
    gateway = StubGateway(order_errors={"AAPL": GatewayError("insufficient buying power", 403)})
    ledger = ExecutionLedger(gateway=gateway)

    report = ledger.execute(
        [buy("AAPL", 1), buy("MSFT", 1)],
        {},
        PortfolioState.starting(100.0),
        Mode.LIVE,
    )

    assert [result.status for result in report.results] == [OrderStatus.FAILED, OrderStatus.SENT]
    assert report.results[0].error == "insufficient buying power"
    assert report.mode_switch_required is False


def test_live_relay_loss_abandons_remaining_decisions() -> None:
    gateway = StubGateway(order_errors={"AAPL": RelayUnavailableError("relay gone")})
    ledger = ExecutionLedger(gateway=gateway)
    portfolio = PortfolioState.starting(100.0)

    report = ledger.execute([buy("AAPL", 1), buy("MSFT", 1)], {}, portfolio, Mode.LIVE)

    assert gateway.orders == [("AAPL", 1, "buy")]
    assert report.mode_switch_required is True
    assert report.portfolio is portfolio


def test_live_refresh_failure_keeps_previous_snapshot() -> None:
    gateway = StubGateway(account_error=GatewayError("timeout"))
    ledger = ExecutionLedger(gateway=gateway)
    portfolio = PortfolioState.starting(100.0)

    report = ledger.execute([buy("AAPL", 1)], {}, portfolio, Mode.LIVE)

    assert report.portfolio is portfolio
    assert report.account_refreshed is False
    assert report.warnings == ["account refresh failed: timeout"]


def test_sync_account_without_gateway_raises() -> None:
    with pytest.raises(GatewayError):
        ExecutionLedger().sync_account(PortfolioState.starting(1.0))
