"""Run events appended to the per-run JSONL stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from .models import Mode


class EventType(StrEnum):
    """Fixed set of event kinds the control loop records."""

    RUN_STARTED = "run_started"
    SCAN = "scan"
    DECISIONS = "decisions"
    ORDER = "order"
    TRADE_REJECTED = "trade_rejected"
    MODE_SWITCH = "mode_switch"
    CONNECTIVITY = "connectivity"
    RECONFIGURED = "reconfigured"
    CYCLE_SUMMARY = "cycle_summary"
    ERROR = "error"


@dataclass(frozen=True)
class TradeEvent:
    """One loop event, stamped with the mode active when it happened."""

    run_id: str
    mode: Mode
    event_type: EventType
    cycle: int = 0
    payload: dict[str, Any] = field(default_factory=dict)
    ts: str = field(default_factory=lambda: datetime.now(tz=UTC).isoformat())

    def to_record(self) -> dict[str, Any]:
        return {
            "ts": self.ts,
            "run_id": self.run_id,
            "cycle": self.cycle,
            "mode": self.mode.value,
            "event_type": self.event_type.value,
            "payload": self.payload,
        }
