"""
Staged decompression planning for a single square dive profile.

Drives the tissue state through descent, bottom time and a 3 m stop search
toward the surface, producing the stop table, the chronological schedule,
tissue snapshots and a saturation timeline.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .ceiling import CeilingCalculator, CompartmentReading
from .exceptions import ExcessiveDecompressionTime
from .gas import GasMix
from .parameters import DiveParameters
from .timeline import TimelineRecorder, TimelineSample
from .tissue import TissueState, initial_state, load_at_depth, travel, update
from .zhl16_constants import (
    CEILING_TOLERANCE,
    STOP_INCREMENT,
    inspired_pressure,
    round_up_to_stop,
)

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    DESCENT = "Descent"
    BOTTOM = "Bottom"
    ASCENT = "Ascent"
    STOP = "Stop"


class StopOutcome(Enum):
    PASS_THROUGH = "pass_through"  # ceiling already clear, no stop
    CLEARED = "cleared"  # stop held until the ceiling cleared
    RUNAWAY = "runaway"  # per-stop cap reached with the ceiling still blocking


@dataclass(frozen=True)
class ScheduleRow:
    """A required decompression stop."""
    stop_depth: float  # m
    minutes: int
    gas_label: str


@dataclass(frozen=True)
class ScheduleEvent:
    """One segment of the chronological dive schedule."""
    phase: Phase
    start_depth: float
    end_depth: float
    rate: Optional[float]  # m/min, None for holds
    minutes: float  # travel rounded up, holds exact
    accumulated_minutes: int  # running total, rounded up

    @property
    def depth_range(self) -> str:
        if self.start_depth == self.end_depth:
            return f"{self.start_depth:g}m"
        return f"{self.start_depth:g}-{self.end_depth:g}m"

    @property
    def rate_label(self) -> str:
        return f"{self.rate:.1f} m/min" if self.rate else ""


@dataclass(frozen=True)
class TissueSnapshot:
    """Tissue readings at bottom end, at each stop and on surfacing."""
    phase: str
    depth: float
    time: int
    compartments: Tuple[CompartmentReading, ...]

    @property
    def leading_compartment(self) -> CompartmentReading:
        return max(self.compartments, key=lambda c: c.ceiling)


@dataclass(frozen=True)
class StopSearchResult:
    state: TissueState
    minutes: int
    outcome: StopOutcome


@dataclass(frozen=True)
class DecoPlan:
    """Complete decompression plan for one dive."""
    rows: List[ScheduleRow]  # deepest first
    total_runtime: int
    total_deco_time: int
    schedule: List[ScheduleEvent]
    tissue_snapshots: List[TissueSnapshot]
    tissue_timeline: List[TimelineSample]
    first_stop_depth: float

    @property
    def requires_deco(self) -> bool:
        return len(self.rows) > 0

    def to_dict(self) -> dict:
        """Plain dict for JSON serialization."""
        data = asdict(self)
        for event, raw in zip(data["schedule"], self.schedule):
            event["phase"] = raw.phase.value
            event["depth_range"] = raw.depth_range
            event["rate_label"] = raw.rate_label
        data["requires_deco"] = self.requires_deco
        return data


@dataclass
class _Run:
    """Mutable bookkeeping for a single planning run."""
    state: TissueState
    timeline: TimelineRecorder
    position: float = 0.0  # depth of the last stop (or the bottom)
    runtime: float = 0.0
    rows: List[ScheduleRow] = field(default_factory=list)
    schedule: List[ScheduleEvent] = field(default_factory=list)
    snapshots: List[TissueSnapshot] = field(default_factory=list)


def _round_up(minutes: float) -> int:
    # Drop float noise before rounding up (e.g. 30.000000000000004)
    return math.ceil(round(minutes, 9))


class DecompressionPlanner:
    """
    Bühlmann ZH-L16C planner with gradient factors for square profiles.

    Phases run in strict order: descent, bottom, stop search from the first
    stop up to the last stop depth, final stop, final ascent. Each call to
    plan() owns its tissue state, so one planner may be shared across threads.
    """

    def __init__(self, params: DiveParameters):
        """
        Args:
            params: dive parameters; validated here, before any simulation
        """
        params.validate()
        self.params = params
        self.gf = params.gradient_factors
        self.calculator = CeilingCalculator(self.gf)
        self.gases = params.gas_resolver()

    def plan(self) -> DecoPlan:
        p = self.params
        bottom_gas = self.gases.bottom_gas
        run = _Run(state=initial_state(), timeline=TimelineRecorder(self.calculator))

        # Descent
        descent_time = p.depth / p.descent_rate
        if p.integrate_descent:
            run.state = travel(
                run.state, 0.0, p.depth, descent_time, bottom_gas.n2, bottom_gas.he
            )
        run.runtime += descent_time
        run.schedule.append(
            ScheduleEvent(
                phase=Phase.DESCENT,
                start_depth=0.0,
                end_depth=p.depth,
                rate=p.descent_rate,
                minutes=_round_up(descent_time),
                accumulated_minutes=_round_up(run.runtime),
            )
        )
        run.timeline.travel(p.depth, p.descent_rate, bottom_gas, Phase.DESCENT.value)

        # Bottom
        run.state = self.bottom_loading(run.state, bottom_gas)
        run.runtime += p.bottom_time
        run.schedule.append(
            ScheduleEvent(
                phase=Phase.BOTTOM,
                start_depth=p.depth,
                end_depth=p.depth,
                rate=None,
                minutes=p.bottom_time,
                accumulated_minutes=_round_up(run.runtime),
            )
        )
        run.timeline.hold(p.bottom_time, bottom_gas, Phase.BOTTOM.value)

        first_stop = self.first_stop_depth(run.state)
        logger.debug(f"First stop depth: {first_stop:g}m")
        run.snapshots.append(self._snapshot("Bottom", p.depth, run, first_stop))

        # Stop search, 3 m at a time
        run.position = p.depth
        depth = first_stop
        while depth > p.last_stop_depth:
            self._stop_level(run, depth, first_stop, final=False)
            depth -= STOP_INCREMENT

        if 0 < p.last_stop_depth < p.depth:
            self._stop_level(run, p.last_stop_depth, first_stop, final=True)

        self._final_ascent(run)
        run.snapshots.append(self._snapshot("Surface", 0.0, run, first_stop))

        total_deco_time = sum(row.minutes for row in run.rows)
        total_runtime = _round_up(run.runtime)
        logger.info(
            f"Plan {p.depth:g}m/{p.bottom_time:g}min "
            f"GF {self.gf.gf_low:.2f}/{self.gf.gf_high:.2f}: "
            f"{len(run.rows)} stops, deco {total_deco_time} min, "
            f"runtime {total_runtime} min"
        )

        return DecoPlan(
            rows=run.rows,
            total_runtime=total_runtime,
            total_deco_time=total_deco_time,
            schedule=run.schedule,
            tissue_snapshots=run.snapshots,
            tissue_timeline=run.timeline.finish(),
            first_stop_depth=first_stop,
        )

    def bottom_loading(self, state: TissueState, gas: GasMix) -> TissueState:
        """Constant-depth loading, one update per whole minute of bottom time."""
        p = self.params
        p_n2 = inspired_pressure(p.depth, gas.n2)
        p_he = inspired_pressure(p.depth, gas.he)
        whole_minutes = int(p.bottom_time)
        for _ in range(whole_minutes):
            state = update(state, p_n2, p_he, 1.0)
        remainder = p.bottom_time - whole_minutes
        if remainder > 0:
            state = update(state, p_n2, p_he, remainder)
        return state

    def first_stop_depth(self, state: TissueState) -> float:
        """Ceiling at the bottom (GF low), rounded up to a 3 m stop.

        Capped at the deepest stop depth not below the bottom.
        """
        depth = self.params.depth
        ceiling = self.calculator.ceiling(state, depth, depth)
        deepest = math.floor(depth / STOP_INCREMENT) * STOP_INCREMENT
        return min(round_up_to_stop(ceiling), float(deepest))

    def search_stop(
        self,
        state: TissueState,
        depth: float,
        first_stop: float,
        gas: GasMix,
    ) -> StopSearchResult:
        """Hold at `depth` one minute at a time until the ceiling clears it."""
        p_n2 = inspired_pressure(depth, gas.n2)
        p_he = inspired_pressure(depth, gas.he)
        minutes = 0
        while self.calculator.ceiling(state, depth, first_stop) > depth - CEILING_TOLERANCE:
            if minutes >= self.params.max_stop_minutes:
                return StopSearchResult(state, minutes, StopOutcome.RUNAWAY)
            state = update(state, p_n2, p_he, 1.0)
            minutes += 1

        outcome = StopOutcome.CLEARED if minutes else StopOutcome.PASS_THROUGH
        return StopSearchResult(state, minutes, outcome)

    def _stop_level(self, run: _Run, depth: float, first_stop: float, final: bool) -> None:
        gas = self.gases.deco_gas(depth)
        result = self.search_stop(run.state, depth, first_stop, gas)
        if result.outcome is StopOutcome.RUNAWAY:
            raise ExcessiveDecompressionTime(depth, result.minutes)
        run.state = result.state

        if result.outcome is StopOutcome.CLEARED:
            self._record_stop(run, depth, result.minutes, gas, first_stop)
        elif not final and run.position > depth:
            # Passing through: a fixed 3 m of travel, not added to the schedule
            rate = self.params.ascent.rate_from(run.position)
            run.state = load_at_depth(
                run.state, depth, gas.n2, gas.he, STOP_INCREMENT / rate
            )

    def _record_stop(
        self, run: _Run, depth: float, minutes: int, gas: GasMix, first_stop: float
    ) -> None:
        run.rows.append(ScheduleRow(depth, minutes, self.gases.gas_label(depth)))

        if run.position != depth:
            # Rate from where the ascent starts, not the destination
            rate = self.params.ascent.rate_from(run.position)
            ascent_time = (run.position - depth) / rate
            run.runtime += ascent_time
            run.schedule.append(
                ScheduleEvent(
                    phase=Phase.ASCENT,
                    start_depth=run.position,
                    end_depth=depth,
                    rate=rate,
                    minutes=_round_up(ascent_time),
                    accumulated_minutes=_round_up(run.runtime),
                )
            )
            # Ascent loading follows the hold, at the ascent's starting depth
            run.state = load_at_depth(
                run.state, run.position, gas.n2, gas.he, ascent_time
            )
            run.timeline.travel(depth, rate, gas, Phase.ASCENT.value)

        run.runtime += minutes
        run.schedule.append(
            ScheduleEvent(
                phase=Phase.STOP,
                start_depth=depth,
                end_depth=depth,
                rate=None,
                minutes=minutes,
                accumulated_minutes=_round_up(run.runtime),
            )
        )
        run.timeline.hold(minutes, gas, Phase.STOP.value)
        run.snapshots.append(self._snapshot(f"Stop @ {depth:g}m", depth, run, first_stop))
        run.position = depth
        logger.debug(f"Stop {depth:g}m for {minutes} min on {gas.label}")

    def _final_ascent(self, run: _Run) -> None:
        """Surface from the last stop depth, whether or not a stop was held there.

        With no last stop (depth 0) the diver is already considered surfaced.
        """
        p = self.params
        if p.last_stop_depth <= 0:
            return
        start = min(p.last_stop_depth, p.depth)
        gas = self.gases.deco_gas(start)
        rate = p.ascent.rate_from(start)
        ascent_time = start / rate
        run.runtime += ascent_time
        run.schedule.append(
            ScheduleEvent(
                phase=Phase.ASCENT,
                start_depth=start,
                end_depth=0.0,
                rate=rate,
                minutes=_round_up(ascent_time),
                accumulated_minutes=_round_up(run.runtime),
            )
        )
        run.state = load_at_depth(run.state, start, gas.n2, gas.he, ascent_time)
        run.timeline.travel(0.0, rate, gas, Phase.ASCENT.value)
        run.position = 0.0

    def _snapshot(
        self, phase: str, depth: float, run: _Run, first_stop: float
    ) -> TissueSnapshot:
        gf = self.gf.at(depth, first_stop)
        return TissueSnapshot(
            phase=phase,
            depth=depth,
            time=_round_up(run.runtime),
            compartments=self.calculator.readings(run.state, depth, gf),
        )


def plan_dive(params: DiveParameters) -> DecoPlan:
    """Validate `params` and compute the decompression plan."""
    return DecompressionPlanner(params).plan()
