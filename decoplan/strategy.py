"""
Alternative allocations of total decompression time across stops.

Presentation-only: the minutes are reshaped by a weighting curve over the
stop sequence without recomputing tissue loading. Never use the output as an
actual ascent plan.
"""

from dataclasses import replace
from enum import Enum
from typing import Dict, List, Sequence

import numpy as np

from .exceptions import InvalidConfiguration, InvalidParameter
from .planner import ScheduleRow


class Strategy(str, Enum):
    UNIFORM = "uniform"
    LINEAR = "linear"
    S_CURVE = "s-curve"
    EXPONENTIAL = "exponential"

    @classmethod
    def parse(cls, value) -> "Strategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidConfiguration(
                f"Unknown strategy: {value!r}. Use one of {[s.value for s in cls]}."
            ) from None


def strategy_weights(n: int, strategy) -> np.ndarray:
    """Un-normalized weight per stop; index 0 is the deepest stop.

    Each stop sits at x = i / (n - 1) along the ascent (x = 0 when n == 1):
        uniform      1
        linear       1 + x
        s-curve      0.5 + logistic(6 * (x - 0.5))
        exponential  exp(2x)
    """
    strategy = Strategy.parse(strategy)
    x = np.arange(n) / (n - 1) if n > 1 else np.zeros(n)

    if strategy is Strategy.UNIFORM:
        return np.ones(n)
    if strategy is Strategy.LINEAR:
        return 1.0 + x
    if strategy is Strategy.S_CURVE:
        return 0.5 + 1.0 / (1.0 + np.exp(-6.0 * (x - 0.5)))
    return np.exp(2.0 * x)


def allocate_minutes(weights: np.ndarray, total: int) -> List[int]:
    """Split `total` minutes in proportion to `weights` (largest remainder).

    Leftover minutes go one at a time to the largest fractional parts, ties
    to the lower index.
    """
    shares = weights / weights.sum() * total
    minutes = np.floor(shares).astype(int)
    fractions = shares - minutes
    order = sorted(range(len(weights)), key=lambda i: (-fractions[i], i))

    remainder = total - int(minutes.sum())
    for k in range(remainder):
        minutes[order[k % len(order)]] += 1
    return [int(m) for m in minutes]


def redistribute(
    rows: Sequence[ScheduleRow], total_deco_time: int, strategy
) -> List[ScheduleRow]:
    """Reallocate `total_deco_time` across the stops in `rows`.

    Returns new rows with the same depths and gas labels; their minutes sum
    exactly to `total_deco_time`.
    """
    strategy = Strategy.parse(strategy)
    if total_deco_time < 0:
        raise InvalidParameter(
            f"Total deco time must be >= 0, got {total_deco_time}"
        )
    if not rows:
        return []

    weights = strategy_weights(len(rows), strategy)
    minutes = allocate_minutes(weights, int(total_deco_time))
    return [replace(row, minutes=m) for row, m in zip(rows, minutes)]


def compare_strategies(
    rows: Sequence[ScheduleRow], total_deco_time: int
) -> Dict[str, List[ScheduleRow]]:
    """One redistributed stop table per strategy, keyed by strategy tag."""
    return {
        strategy.value: redistribute(rows, total_deco_time, strategy)
        for strategy in Strategy
    }
