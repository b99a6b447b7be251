"""Decision model boundary."""

from .engine import DecisionEngine, DecisionModelClient, parse_decision
from .openai_client import OpenAIDecisionClient

__all__ = ["DecisionEngine", "DecisionModelClient", "OpenAIDecisionClient", "parse_decision"]
