"""JSONL event sink and per-run Plotly report generator."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd
import plotly.express as px

from tradebrain.domain.events import EventType, TradeEvent


class JsonlEventSink:
    """Append-only JSONL writer."""

    def __init__(self, path: str) -> None:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.path = output_path

    def emit(self, event: TradeEvent) -> None:
        record = event.to_record()
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, sort_keys=True, default=str))
            handle.write("\n")


def load_events(path: str | Path) -> list[dict[str, Any]]:
    """Load JSONL records from disk."""
    records: list[dict[str, Any]] = []
    input_path = Path(path)
    if not input_path.exists():
        return records
    with input_path.open("r", encoding="utf-8") as handle:
        for line in handle:
            text = line.strip()
            if not text:
                continue
            records.append(json.loads(text))
    return records


def equity_frame(events: list[dict[str, Any]]) -> pd.DataFrame:
    """Build a per-cycle cash/equity frame from `cycle_summary` events."""
    rows = [
        {
            "ts": event.get("ts"),
            "cycle": event.get("cycle", 0),
            "mode": event.get("mode", ""),
            "cash": float(event.get("payload", {}).get("cash", 0.0)),
            "equity": float(event.get("payload", {}).get("equity", 0.0)),
        }
        for event in events
        if event.get("event_type") == EventType.CYCLE_SUMMARY
    ]
    frame = pd.DataFrame(rows, columns=["ts", "cycle", "mode", "cash", "equity"])
    frame["ts"] = pd.to_datetime(frame["ts"], utc=True, errors="coerce")
    return frame


def generate_plotly_report(events_jsonl_path: str, output_html_path: str) -> None:
    """Render an equity timeline and event counts for one run."""
    events = load_events(events_jsonl_path)
    output = Path(output_html_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    if not events:
        empty_df = pd.DataFrame({"event_type": ["none"], "count": [0]})
        figure = px.bar(empty_df, x="event_type", y="count", title="Run Event Summary")
        figure.write_html(str(output), include_plotlyjs="cdn")
        return

    counts = (
        pd.DataFrame({"event_type": [event.get("event_type") for event in events]})
        .groupby("event_type", dropna=False)
        .size()
        .reset_index(name="count")
    )
    html_parts = [
        "<html><head><meta charset='utf-8'><title>tradebrain run report</title></head><body>",
    ]
    frame = equity_frame(events)
    if not frame.empty:
        series = frame.melt(
            id_vars=["ts", "cycle", "mode"],
            value_vars=["equity", "cash"],
            var_name="series",
            value_name="value",
        )
        timeline = px.line(
            series,
            x="ts",
            y="value",
            color="series",
            title="Equity and Cash by Cycle",
            hover_data=["cycle", "mode"],
        )
        html_parts.append(timeline.to_html(full_html=False, include_plotlyjs="cdn"))
        include_js: bool | str = False
    else:
        include_js = "cdn"
    bars = px.bar(counts, x="event_type", y="count", title="Run Event Counts")
    html_parts.append(bars.to_html(full_html=False, include_plotlyjs=include_js))
    html_parts.append("</body></html>")
    output.write_text("".join(html_parts), encoding="utf-8")
