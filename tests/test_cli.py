from __future__ import annotations

import pytest

from tradebrain import cli
from tradebrain.cli import apply_cli_overrides, build_parser
from tradebrain.config import Settings


def test_cli_overrides_produce_expected_settings() -> None:
    parser = build_parser()
    args = parser.parse_args(
        [
            "--simulation",
            "--no-trading",
            "--interval-seconds",
            "15",
            "--max-cycles",
            "3",
            "--symbols",
            "spy,eth/usd",
            "--batch-size",
            "4",
            "--relay-url",
            "https://relay.test/api/alpaca",
            "--events-dir",
            "runs/test",
            "--seed",
            "99",
        ]
    )

    settings = apply_cli_overrides(Settings(), args)

    assert settings.is_simulation is True
    assert settings.trading_enabled is False
    assert settings.interval_seconds == 15
    assert settings.max_cycles == 3
    assert settings.symbols == ["SPY", "ETH/USD"]
    assert settings.batch_size == 4
    assert settings.relay_url == "https://relay.test/api/alpaca"
    assert settings.events_dir == "runs/test"
    assert settings.random_seed == 99


def test_live_flag_clears_simulation() -> None:
    args = build_parser().parse_args(["--live"])

    settings = apply_cli_overrides(Settings(is_simulation=True), args)

    assert settings.is_simulation is False


def test_no_flags_keep_environment_settings() -> None:
    base = Settings(is_simulation=True, batch_size=7)

    settings = apply_cli_overrides(base, build_parser().parse_args([]))

    assert settings == base


def test_mode_flags_are_mutually_exclusive() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--simulation", "--live"])


def test_cli_rejects_non_positive_cycles() -> None:
    args = build_parser().parse_args(["--max-cycles", "0"])

    with pytest.raises(ValueError):
        apply_cli_overrides(Settings(), args)


def test_main_reports_configuration_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli.Settings, "from_env", classmethod(lambda cls: Settings()))
    monkeypatch.setattr(cli, "run", lambda _settings: pytest.fail("run should not start"))

    assert cli.main(["--batch-size", "0"]) == 2


def test_main_runs_loop_with_merged_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[Settings] = []
    monkeypatch.setattr(cli.Settings, "from_env", classmethod(lambda cls: Settings()))
    monkeypatch.setattr(cli, "run", lambda settings: captured.append(settings) or 0)

    assert cli.main(["--simulation", "--max-cycles", "1"]) == 0
    assert captured[0].is_simulation is True
    assert captured[0].max_cycles == 1


def test_portfolio_requires_live_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli.Settings, "from_env", classmethod(lambda cls: Settings()))

    assert cli.main(["--portfolio"]) == 2
