"""Public, unauthenticated crypto quotes from CoinGecko."""

from __future__ import annotations

import requests

from tradebrain.errors import MarketDataError

COINGECKO_IDS = {
    "BTC/USD": "bitcoin",
    "ETH/USD": "ethereum",
    "SOL/USD": "solana",
    "DOGE/USD": "dogecoin",
    "DOT/USD": "polkadot",
    "ADA/USD": "cardano",
}


class CoinGeckoQuoteSource:
    """Fetch USD spot prices by CoinGecko coin id."""

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 8.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @staticmethod
    def normalize_symbol(symbol: str) -> str:
        compact = symbol.strip().upper().replace("/", "").replace("-", "")
        if compact.endswith("USDT") and len(compact) >= 7:
            compact = f"{compact[:-4]}USD"
        if compact.endswith("USD") and len(compact) > 3:
            return f"{compact[:-3]}/USD"
        return symbol.strip().upper()

    def supports(self, symbol: str) -> bool:
        """Return True when `symbol` is a mapped crypto pair."""
        return self.normalize_symbol(symbol) in COINGECKO_IDS

    def get_quote(self, symbol: str) -> float | None:
        """Return the USD price, None when unmapped, or raise on fetch errors."""
        coin_id = COINGECKO_IDS.get(self.normalize_symbol(symbol))
        if coin_id is None:
            return None
        try:
            response = self.session.get(
                f"{self.base_url}/simple/price",
                params={"ids": coin_id, "vs_currencies": "usd"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise MarketDataError(f"CoinGecko request failed for {symbol}: {exc}") from exc
        if response.status_code >= 400:
            raise MarketDataError(f"CoinGecko error {response.status_code} for {symbol}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise MarketDataError(f"CoinGecko response for {symbol} was not valid JSON") from exc
        entry = payload.get(coin_id) if isinstance(payload, dict) else None
        if entry is None:
            return None
        if not isinstance(entry, dict):
            raise MarketDataError(f"CoinGecko entry for {symbol} has unexpected shape")
        price = entry.get("usd")
        if price is None:
            return None
        try:
            value = float(price)
        except (TypeError, ValueError) as exc:
            raise MarketDataError(f"CoinGecko price for {symbol} is not numeric") from exc
        return value if value > 0 else None
