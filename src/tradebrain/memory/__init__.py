"""Rolling historical context for the decision model."""

from .store import MemoryStore

__all__ = ["MemoryStore"]
