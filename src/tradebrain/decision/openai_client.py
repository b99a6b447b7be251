"""OpenAI chat-completions transport for the decision model."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from openai import OpenAI

SYSTEM_INSTRUCTION = """
You are "TradeBrain", a hedge fund AI manager.
Your goal is to analyze a batch of potential stock opportunities and generate a list of buy/sell orders.
You will receive a JSON request with "candidates" (current price and change percent),
"marketContext" (recent price paths, volatility and trend from memory),
"learningContext" (win rate and recent wins/losses) and the current "portfolio".
Respond with a JSON object of the form:
{"decisions": [{"symbol": str, "action": "BUY"|"SELL"|"HOLD", "quantity": number,
"reasoning": str, "confidence": number 0-100}]}
1. Analyze the trends.
2. Check the confidence. Only trade if confidence > 70.
3. Diversify. Don't put all cash into one asset.
4. If you decide to BUY, ensure quantity is reasonable (e.g., 1-10 shares depending on price).
5. Only SELL what the portfolio holds. Never spend more cash than available.
6. If there is no good trade for a symbol, return HOLD.
""".strip()


class OpenAIDecisionClient:
    """Send decision requests through `chat.completions` in JSON mode."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        temperature: float = 0.3,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.client = client or OpenAI(api_key=api_key, timeout=timeout)
        self._logger = logging.getLogger("tradebrain.decision.openai")

    def complete(self, request: dict[str, Any]) -> str:
        start = time.perf_counter()
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user", "content": json.dumps(request)},
            ],
            response_format={"type": "json_object"},
            temperature=self.temperature,
        )
        elapsed_ms = (time.perf_counter() - start) * 1000
        self._logger.info("Decision model replied in %.0fms", elapsed_ms)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
