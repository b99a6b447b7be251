"""Market sampling: real quote sources and the simulated fallback."""

from .base import QuoteSource
from .crypto_quotes import CoinGeckoQuoteSource
from .sampler import MarketSampler
from .simulated import RandomWalkSimulator

__all__ = ["CoinGeckoQuoteSource", "MarketSampler", "QuoteSource", "RandomWalkSimulator"]
