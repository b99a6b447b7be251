"""Alpaca execution API behind timeouts and a circuit breaker."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import requests

from tradebrain.brokers.circuit_breaker import CircuitBreaker
from tradebrain.domain.models import AccountSnapshot
from tradebrain.errors import CircuitOpenError, GatewayError, RelayUnavailableError

DATA_PATH_PREFIXES = ("/v2/stocks/", "/v1beta1/news")
RELAY_NOT_FOUND_MARKER = "NOT_FOUND"


class AlpacaGateway:
    """REST wrapper that classifies failures instead of retrying them.

    When `relay_url` is set, every call is POSTed to the relay as
    ``{targetPath, method, headers, body}``. Otherwise requests go straight
    to Alpaca, routed by path prefix to the data or trading host.

    Transient failures (timeouts, upstream 4xx/5xx, malformed bodies) feed
    the breaker and raise `GatewayError`. In relay mode, signs that the relay
    itself is missing (HTML pages, not-found markers, refused connections)
    raise `RelayUnavailableError` and bypass the breaker. In direct mode
    those are upstream problems and count as transient.
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        base_url: str = "https://paper-api.alpaca.markets",
        data_url: str = "https://data.alpaca.markets",
        relay_url: str = "",
        timeout: float = 8.0,
        breaker: CircuitBreaker | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.data_url = data_url.rstrip("/")
        self.relay_url = relay_url.strip()
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker()
        self._api_key = api_key
        self._secret_key = secret_key
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self._logger = logging.getLogger("tradebrain.brokers.alpaca")

    def has_credentials(self) -> bool:
        return bool(self._api_key and self._secret_key)

    def get_account(self) -> AccountSnapshot:
        payload = self._request("GET", "/v2/account")
        return self._parse(lambda: self._to_account(payload), "/v2/account")

    def get_positions(self) -> dict[str, int]:
        payload = self._request("GET", "/v2/positions")
        return self._parse(lambda: self._to_positions(payload), "/v2/positions")

    def submit_order(self, symbol: str, qty: int, side: str) -> dict[str, Any]:
        if qty <= 0:
            raise ValueError(f"{symbol}: order quantity must be positive, got {qty}")
        normalized_side = side.strip().lower()
        if normalized_side not in {"buy", "sell"}:
            raise ValueError(f"{symbol}: unsupported order side {side!r}")
        body = {
            "symbol": symbol,
            "qty": int(qty),
            "side": normalized_side,
            "type": "market",
            "time_in_force": "day",
        }
        self._logger.info("Sending order: %s %s %s", normalized_side.upper(), qty, symbol)
        payload = self._request("POST", "/v2/orders", body=body)
        return payload if isinstance(payload, dict) else {}

    def get_latest_quote(self, symbol: str) -> float | None:
        path = f"/v2/stocks/{symbol}/quotes/latest?feed=iex"
        payload = self._request("GET", path)
        return self._parse(lambda: self._best_price(payload), path)

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        if self.breaker.is_open():
            raise CircuitOpenError(
                "Circuit breaker open: skipping execution API calls for "
                f"{self.breaker.seconds_until_close():.0f}s"
            )
        try:
            response = self._send(method, path, body)
        except requests.Timeout as exc:
            self.breaker.record_failure(f"timeout on {path}")
            raise GatewayError(f"Request to {path} timed out after {self.timeout}s") from exc
        except requests.ConnectionError as exc:
            if self.relay_url:
                self._logger.warning("Execution relay unreachable: %s", exc)
                raise RelayUnavailableError(f"Execution relay unreachable for {path}") from exc
            self.breaker.record_failure(f"connection error on {path}")
            raise GatewayError(f"Could not connect to Alpaca for {path}: {exc}") from exc
        except requests.RequestException as exc:
            self.breaker.record_failure(str(exc))
            raise GatewayError(f"Request to {path} failed: {exc}") from exc

        if self.relay_url:
            self._check_relay_present(response, path)

        if response.status_code >= 400:
            message = self._error_message(response)
            self.breaker.record_failure(message)
            raise GatewayError(
                f"Alpaca API error {response.status_code} for {path}: {message}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            self.breaker.record_failure(f"malformed body for {path}")
            raise GatewayError(f"Alpaca response for {path} was not valid JSON") from exc

        self.breaker.record_success()
        return payload

    @staticmethod
    def _check_relay_present(response: requests.Response, path: str) -> None:
        content_type = str(response.headers.get("content-type", "")).lower()
        if "text/html" in content_type:
            raise RelayUnavailableError(f"Execution relay not found (HTML response for {path})")
        if response.status_code == 404 and RELAY_NOT_FOUND_MARKER in response.text:
            raise RelayUnavailableError(f"Execution relay not found for {path}")

    def _send(self, method: str, path: str, body: dict[str, Any] | None) -> requests.Response:
        headers = {
            "APCA-API-KEY-ID": self._api_key,
            "APCA-API-SECRET-KEY": self._secret_key,
            "Content-Type": "application/json",
        }
        if self.relay_url:
            return self.session.request(
                method="POST",
                url=self.relay_url,
                json={"targetPath": path, "method": method, "headers": headers, "body": body},
                timeout=self.timeout,
            )
        return self.session.request(
            method=method,
            url=f"{self.route(path)}{path}",
            json=body if method not in {"GET", "HEAD"} else None,
            headers=headers,
            timeout=self.timeout,
        )

    def route(self, path: str) -> str:
        """Pick the upstream host for `path` the same way the relay does."""
        if any(path.startswith(prefix) for prefix in DATA_PATH_PREFIXES):
            return self.data_url
        return self.base_url

    def _parse(self, parser: Callable[[], Any], path: str) -> Any:
        try:
            return parser()
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            self.breaker.record_failure(f"unexpected payload for {path}")
            raise GatewayError(f"Alpaca payload for {path} was malformed: {exc}") from exc

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        text = response.text or ""
        try:
            data = response.json()
        except ValueError:
            return text[:100] or "Alpaca API error via relay"
        if isinstance(data, dict):
            return str(data.get("message") or data.get("error") or "Alpaca API error via relay")
        return str(data)[:100]

    @staticmethod
    def _to_account(payload: Any) -> AccountSnapshot:
        if not isinstance(payload, dict):
            raise ValueError("account payload is not an object")
        cash = float(payload["cash"])
        equity = float(payload.get("equity", cash))
        return AccountSnapshot(
            equity=equity,
            cash=cash,
            buying_power=float(payload.get("buying_power", cash)),
            currency=str(payload.get("currency", "USD")),
        )

    @staticmethod
    def _to_positions(payload: Any) -> dict[str, int]:
        if not isinstance(payload, list):
            raise ValueError("positions payload is not a list")
        positions: dict[str, int] = {}
        for item in payload:
            if str(item.get("side", "long")).lower() == "short":
                continue
            qty = int(float(item.get("qty", 0)))
            if qty > 0:
                positions[str(item["symbol"]).upper()] = qty
        return positions

    @staticmethod
    def _best_price(payload: Any) -> float | None:
        if not isinstance(payload, dict):
            raise ValueError("quote payload is not an object")
        quote = payload.get("quote") or {}
        for key in ("ap", "bp"):
            value = quote.get(key)
            if value is not None and float(value) > 0:
                return float(value)
        return None
