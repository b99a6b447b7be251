"""Logging setup and the concise human-readable run logger."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from tradebrain.domain.models import MarketQuote, OrderResult, OrderStatus, TradeDecision

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(log_level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """Configure and return the `tradebrain` root logger.

    Logs are written to console, plus an optional file if `log_file` is set.
    """
    logger = logging.getLogger("tradebrain")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.propagate = False

    if logger.handlers:
        return logger

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


class HumanLogger:
    """Operator log with fixed line types."""

    def __init__(self, name: str = "tradebrain.loop") -> None:
        self._logger = logging.getLogger(name)

    def run_started(self, run_id: str, mode: str, universe_size: int) -> None:
        self._logger.info("run | %s | mode %s | universe %s symbols", run_id[:10], mode, universe_size)

    def scan(self, quotes: Iterable[MarketQuote]) -> None:
        quotes = list(quotes)
        sources: dict[str, int] = {}
        for quote in quotes:
            sources[quote.source] = sources.get(quote.source, 0) + 1
        breakdown = " ".join(f"{source} {count}" for source, count in sorted(sources.items()))
        self._logger.info("scan | %s symbols | %s", len(quotes), breakdown or "none")

    def brain(self, candidate_count: int) -> None:
        self._logger.info("brain | analyzing %s assets", candidate_count)

    def decision(self, decision: TradeDecision) -> None:
        self._logger.info(
            "brain | %s %s %s | confidence %.0f | %s",
            decision.action.value,
            self._format_qty(decision.quantity),
            decision.symbol,
            decision.confidence,
            decision.reasoning,
        )

    def order(self, result: OrderResult) -> None:
        parts = [
            f"order | {result.status.value} | {result.action.value} "
            f"{self._format_qty(result.quantity)} {result.symbol}"
        ]
        if result.price is not None:
            parts.append(f"@ ${result.price:,.2f}")
        if result.error:
            parts.append(result.error)
        if result.status is OrderStatus.FAILED:
            self._logger.error(" | ".join(parts))
        else:
            self._logger.info(" | ".join(parts))

    def rejected(self, symbol: str, action: str, reason: str) -> None:
        self._logger.error("rejected | %s %s | %s", action, symbol, reason)

    def mode_switch(self, reason: str) -> None:
        self._logger.warning("mode | switching to SIMULATION | %s", reason)

    def connectivity(self, status: str, detail: str = "") -> None:
        if detail:
            self._logger.warning("connectivity | %s | %s", status, detail)
        else:
            self._logger.info("connectivity | %s", status)

    def portfolio(self, cash: float, equity: float, positions: int) -> None:
        self._logger.info(
            "portfolio | cash $%s | equity $%s | positions %s",
            f"{cash:,.2f}",
            f"{equity:,.2f}",
            positions,
        )

    def run_pnl(self, equity: float, start_equity: float) -> None:
        pnl = equity - start_equity
        pnl_pct = pnl / start_equity if start_equity else 0.0
        self._logger.info(
            "pnl | session_start_equity $%s | equity $%s | session_pnl %s | session_pnl%% %s",
            f"{start_equity:,.2f}",
            f"{equity:,.2f}",
            f"{pnl:+,.2f}",
            f"{pnl_pct * 100.0:+,.3f}%",
        )

    def warning(self, message: str) -> None:
        self._logger.warning("warning | %s", message)

    def error(self, message: str) -> None:
        self._logger.error("error | %s", message)

    @staticmethod
    def _format_qty(value: float, precision: int = 8) -> str:
        normalized = 0.0 if abs(float(value)) < 1e-9 else float(value)
        text = f"{normalized:.{precision}f}".rstrip("0").rstrip(".")
        return text or "0"
