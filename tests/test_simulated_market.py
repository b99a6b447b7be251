from __future__ import annotations

import random

import pytest

from tradebrain.data.simulated import PRICE_FLOOR, RandomWalkSimulator


class ScriptedRandom(random.Random):
    def __init__(self, values: list[float]) -> None:
        super().__init__(0)
        self.values = list(values)

    def random(self) -> float:
        return self.values.pop(0)


def test_reference_prices_seed_known_symbols() -> None:
    simulator = RandomWalkSimulator(rng=random.Random(7))

    assert simulator.state("BTC/USD").price == 65000.0
    assert simulator.state("SPY").price == 500.0
    other = simulator.state("KO").price
    assert 10.0 <= other < 210.0


def test_step_applies_trend_bias_and_rounds() -> None:
    # trend seed, drift draw, reversal draw
    simulator = RandomWalkSimulator(rng=ScriptedRandom([0.9, 0.75, 0.5]))

    quote = simulator.step("SPY")

    expected = 500.0 + (0.75 - 0.5 + 0.05) * 500.0 * 0.015
    assert quote.price == round(expected, 2)
    assert quote.change_percent == pytest.approx(round((expected - 500.0) / 5.0, 4))
    assert quote.source == "simulated"
    assert simulator.state("SPY").trend == 1


def test_reversal_flips_trend() -> None:
    simulator = RandomWalkSimulator(rng=ScriptedRandom([0.9, 0.5, 0.05]))

    simulator.step("SPY")

    assert simulator.state("SPY").trend == -1


def test_price_never_drops_below_floor() -> None:
    # initial price, trend seed (down), drift draw, reversal draw
    simulator = RandomWalkSimulator(volatility=5.0, rng=ScriptedRandom([0.1, 0.0, 0.0, 0.5]))
    simulator.anchor("PENNY", 1.2)

    quote = simulator.step("PENNY")

    assert quote.price == PRICE_FLOOR


def test_anchor_continues_walk_from_real_price() -> None:
    simulator = RandomWalkSimulator(rng=random.Random(3))
    simulator.anchor("NVDA", 123.45)
    simulator.anchor("NVDA", -1.0)

    assert simulator.state("NVDA").price == 123.45


def test_walks_are_independent_per_symbol() -> None:
    simulator = RandomWalkSimulator(rng=random.Random(11))
    for _ in range(5):
        simulator.step("SPY")

    assert simulator.state("ETH/USD").price == 3500.0
