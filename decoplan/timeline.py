"""
Saturation-over-time samples for visualization.

The recorder integrates the planned depth/time path on its own tissue state:
travel segments with the Schreiner equation, holds with the Haldane equation.
It is presentation-only and never feeds back into the planner's state.
"""

from dataclasses import dataclass
from typing import List, Tuple

from .ceiling import CeilingCalculator, CompartmentReading
from .gas import GasMix
from .tissue import TissueState, initial_state, load_at_depth, travel

TRAVEL_STEP = 0.5  # min
HOLD_STEP = 1.0  # min
_EPS = 1e-9


@dataclass(frozen=True)
class TimelineSample:
    time: float  # min since start of descent
    depth: float  # m
    phase: str
    compartments: Tuple[CompartmentReading, ...]


class TimelineRecorder:
    """Follows descent, holds and ascents, sampling tissue readings as it goes.

    Readings use GF low at the current depth.
    """

    def __init__(self, calculator: CeilingCalculator, state: TissueState = None):
        self.calculator = calculator
        self.state = state.copy() if state is not None else initial_state()
        self.time = 0.0
        self.depth = 0.0
        self.samples: List[TimelineSample] = []

    def travel(self, end_depth: float, rate: float, gas: GasMix, phase: str) -> None:
        """Move linearly from the current depth to `end_depth` at `rate` m/min."""
        start = self.depth
        duration = abs(end_depth - start) / rate
        if duration <= 0:
            return
        if not self.samples:
            self._sample(phase)

        elapsed = 0.0
        while elapsed < duration - _EPS:
            step = min(TRAVEL_STEP, duration - elapsed)
            elapsed += step
            next_depth = start + (end_depth - start) * (elapsed / duration)
            self.state = travel(self.state, self.depth, next_depth, step, gas.n2, gas.he)
            self.time += step
            self.depth = next_depth
            self._sample(phase)
        self.depth = end_depth

    def hold(self, minutes: float, gas: GasMix, phase: str) -> None:
        """Stay at the current depth for `minutes`."""
        if not self.samples:
            self._sample(phase)

        elapsed = 0.0
        while elapsed < minutes - _EPS:
            step = min(HOLD_STEP, minutes - elapsed)
            elapsed += step
            self.state = load_at_depth(self.state, self.depth, gas.n2, gas.he, step)
            self.time += step
            self._sample(phase)

    def finish(self) -> List[TimelineSample]:
        """Append the surfacing sample and return the timeline.

        A plan without a final ascent surfaces immediately from its last depth.
        """
        self.depth = 0.0
        self._sample("Surface")
        return list(self.samples)

    def _sample(self, phase: str) -> None:
        gf = self.calculator.gf.gf_low
        self.samples.append(
            TimelineSample(
                time=self.time,
                depth=self.depth,
                phase=phase,
                compartments=self.calculator.readings(self.state, self.depth, gf),
            )
        )
