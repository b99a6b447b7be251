from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tradebrain.domain.events import EventType, TradeEvent
from tradebrain.domain.models import Mode, OrderResult, OrderStatus, TradeAction
from tradebrain.logging.event_sink import (
    JsonlEventSink,
    equity_frame,
    generate_plotly_report,
    load_events,
)
from tradebrain.logging.logger import HumanLogger


def test_sink_appends_jsonl_records(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "events.jsonl"
    sink = JsonlEventSink(str(path))

    sink.emit(TradeEvent(run_id="r1", mode=Mode.SIMULATION, event_type=EventType.SCAN, cycle=1))
    sink.emit(
        TradeEvent(
            run_id="r1",
            mode=Mode.SIMULATION,
            event_type=EventType.CYCLE_SUMMARY,
            cycle=1,
            payload={"cash": 900.0, "equity": 1010.0},
        )
    )

    records = load_events(path)
    assert [record["event_type"] for record in records] == ["scan", "cycle_summary"]
    assert records[1]["payload"]["equity"] == 1010.0


def test_load_events_missing_file_is_empty(tmp_path: Path) -> None:
    assert load_events(tmp_path / "absent.jsonl") == []


def test_equity_frame_uses_cycle_summaries() -> None:
    events = [
        {"event_type": "scan", "cycle": 1},
        {
            "event_type": "cycle_summary",
            "cycle": 1,
            "mode": "LIVE",
            "ts": "2026-01-01T00:00:00+00:00",
            "payload": {"cash": 10.0, "equity": 12.5},
        },
    ]

    frame = equity_frame(events)

    assert list(frame["equity"]) == [12.5]
    assert list(frame["mode"]) == ["LIVE"]


def test_report_is_written_for_empty_and_populated_runs(tmp_path: Path) -> None:
    empty_report = tmp_path / "empty.html"
    generate_plotly_report(str(tmp_path / "none.jsonl"), str(empty_report))
    assert empty_report.exists()

    events_path = tmp_path / "events.jsonl"
    sink = JsonlEventSink(str(events_path))
    sink.emit(
        TradeEvent(
            run_id="r1",
            mode=Mode.SIMULATION,
            event_type=EventType.CYCLE_SUMMARY,
            cycle=1,
            payload={"cash": 1.0, "equity": 2.0},
        )
    )
    report = tmp_path / "report.html"
    generate_plotly_report(str(events_path), str(report))

    html = report.read_text(encoding="utf-8")
    assert "Equity and Cash by Cycle" in html
    assert "Run Event Counts" in html


def test_failed_orders_log_at_error_level(caplog: pytest.LogCaptureFixture) -> None:
    human = HumanLogger("tradebrain.test")
    result = OrderResult(
        symbol="AAPL",
        action=TradeAction.BUY,
        quantity=2,
        status=OrderStatus.FAILED,
        error="insufficient buying power",
    )

    with caplog.at_level(logging.INFO, logger="tradebrain.test"):
        human.order(result)
        human.run_pnl(1_100.0, 1_000.0)

    assert caplog.records[0].levelno == logging.ERROR
    assert "FAILED | BUY 2 AAPL | insufficient buying power" in caplog.records[0].getMessage()
    assert "session_pnl +100.00" in caplog.records[1].getMessage()
