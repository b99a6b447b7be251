"""Portfolio ledger and order execution."""

from .ledger import ExecutionLedger, ExecutionReport, RejectedTrade

__all__ = ["ExecutionLedger", "ExecutionReport", "RejectedTrade"]
