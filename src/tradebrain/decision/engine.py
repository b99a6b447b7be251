"""Stateless boundary to the external decision model."""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Protocol

from tradebrain.domain.models import MarketQuote, PortfolioState, TradeAction, TradeDecision

MAX_REASONING_CHARS = 500


class DecisionModelClient(Protocol):
    """Transport that sends one request payload and returns the raw reply."""

    def complete(self, request: dict[str, Any]) -> str:
        """Return the model's raw response text (expected JSON)."""


class DecisionEngine:
    """Turn candidates plus context into validated trade decisions.

    The engine never raises for model problems: a failed call, non-JSON
    reply, or schema violation all yield an empty list. Individual entries
    that fail validation are dropped and counted in `last_dropped`.
    """

    def __init__(self, client: DecisionModelClient | None) -> None:
        self.client = client
        self.last_dropped = 0
        self._warned_missing_client = False
        self._logger = logging.getLogger("tradebrain.decision")

    @staticmethod
    def build_request(
        candidates: list[MarketQuote],
        market_context: str,
        learning_context: str,
        portfolio: PortfolioState,
    ) -> dict[str, Any]:
        """Build the JSON request sent to the model."""
        return {
            "candidates": [
                {
                    "symbol": quote.symbol,
                    "price": quote.price,
                    "changePercent": quote.change_percent,
                }
                for quote in candidates
            ],
            "marketContext": market_context,
            "learningContext": learning_context,
            "portfolio": {
                "cash": round(portfolio.cash, 2),
                "positions": dict(sorted(portfolio.positions.items())),
            },
        }

    def decide(
        self,
        candidates: list[MarketQuote],
        market_context: str,
        learning_context: str,
        portfolio: PortfolioState,
    ) -> list[TradeDecision]:
        self.last_dropped = 0
        if not candidates:
            return []
        if self.client is None:
            if not self._warned_missing_client:
                self._logger.warning("No decision model configured; holding all positions")
                self._warned_missing_client = True
            return []

        request = self.build_request(candidates, market_context, learning_context, portfolio)
        try:
            raw = self.client.complete(request)
        except Exception as exc:
            self._logger.error("Decision model call failed: %s", exc)
            return []
        return self.parse_decisions(raw)

    def parse_decisions(self, raw: str | dict[str, Any] | None) -> list[TradeDecision]:
        """Parse a model reply into decisions, dropping invalid entries."""
        self.last_dropped = 0
        payload = _load_json(raw)
        if not isinstance(payload, dict):
            self._logger.warning("Decision model reply was not a JSON object")
            return []
        entries = payload.get("decisions")
        if not isinstance(entries, list):
            self._logger.warning("Decision model reply has no 'decisions' list")
            return []

        decisions: list[TradeDecision] = []
        for entry in entries:
            decision = parse_decision(entry)
            if decision is None:
                self.last_dropped += 1
                continue
            decisions.append(decision)
        if self.last_dropped:
            self._logger.warning("Dropped %s invalid decision(s)", self.last_dropped)
        return decisions


def parse_decision(entry: Any) -> TradeDecision | None:
    """Validate one raw entry; return None when it must not be executed."""
    if not isinstance(entry, dict):
        return None
    symbol = entry.get("symbol")
    if not isinstance(symbol, str) or not symbol.strip():
        return None
    action_text = entry.get("action")
    if not isinstance(action_text, str):
        return None
    try:
        action = TradeAction(action_text.strip().upper())
    except ValueError:
        return None
    quantity = entry.get("quantity")
    if not _is_number(quantity) or not math.isfinite(quantity) or quantity < 0:
        return None
    confidence = entry.get("confidence", 0)
    if not _is_number(confidence) or not math.isfinite(confidence):
        confidence = 0.0
    reasoning = entry.get("reasoning", "")
    return TradeDecision(
        symbol=symbol.strip().upper(),
        action=action,
        quantity=float(quantity),
        confidence=max(0.0, min(100.0, float(confidence))),
        reasoning=str(reasoning)[:MAX_REASONING_CHARS],
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _load_json(raw: str | dict[str, Any] | None) -> Any:
    if raw is None or isinstance(raw, dict):
        return raw
    text = str(raw).strip()
    if "```json" in text:
        text = text.split("```json", 1)[1].split("```", 1)[0]
    elif text.startswith("```"):
        text = text.split("```")[1]
    try:
        return json.loads(text)
    except ValueError:
        return None
