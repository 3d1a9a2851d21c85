"""
Tests for the decompression planner.

Reference dives use air with GF 30/85, 20 m/min descent and a flat
10 m/min ascent unless stated otherwise. Pinned stop tables and runtimes are
the published reference planner's output for the same inputs.
"""

import json
from dataclasses import replace
from functools import lru_cache

import numpy as np
import pytest

from decoplan.exceptions import (
    DecoPlanError,
    ExcessiveDecompressionTime,
    InvalidConfiguration,
    InvalidParameter,
)
from decoplan.gas import AIR, DecoGasPolicy
from decoplan.parameters import AscentMode, AscentRatePolicy, DiveParameters
from decoplan.planner import (
    DecompressionPlanner,
    Phase,
    ScheduleEvent,
    StopOutcome,
    plan_dive,
)
from decoplan.tissue import TissueState, initial_state, load_at_depth
from decoplan.zhl16_constants import NUM_COMPARTMENTS

# (gf_low, gf_high) in percent, low <= high
GF_GRID = [(low, high) for low in range(10, 100, 5) for high in range(low, 100, 5)]


@lru_cache(maxsize=None)
def deco_minutes(gf_low_pct: int, gf_high_pct: int) -> int:
    """Total deco time of the 40 m / 20 min reference dive for a GF pair."""
    params = DiveParameters(
        depth=40, bottom_time=20, last_stop_depth=3,
        gf_low=gf_low_pct / 100.0, gf_high=gf_high_pct / 100.0,
    )
    return plan_dive(params).total_deco_time


def stop_table(plan):
    return [(row.stop_depth, row.minutes) for row in plan.rows]


def schedule_table(plan):
    return [
        (e.phase.value, e.depth_range, e.minutes, e.accumulated_minutes)
        for e in plan.schedule
    ]


@pytest.fixture
def deco_params():
    """40 m for 20 minutes on air, last stop 3 m."""
    return DiveParameters(depth=40, bottom_time=20, last_stop_depth=3)


@pytest.fixture
def no_deco_params():
    """12 m for 20 minutes on air, last stop 3 m."""
    return DiveParameters(depth=12, bottom_time=20, last_stop_depth=3)


@pytest.fixture
def banded_params(deco_params):
    """Reference dive with 6 m/min below 21 m and 9 m/min above."""
    return replace(deco_params, ascent=AscentRatePolicy(mode=AscentMode.BANDED))


@pytest.fixture
def deco_plan(deco_params):
    return plan_dive(deco_params)


class TestNoDecoDive:
    """A short shallow dive needs no stops."""

    def test_no_stops(self, no_deco_params):
        """No rows, no deco time, first stop at the surface."""
        plan = plan_dive(no_deco_params)
        assert plan.rows == []
        assert plan.total_deco_time == 0
        assert not plan.requires_deco
        assert plan.first_stop_depth == 0.0

    def test_runtime(self, no_deco_params):
        """0.6 min descent + 20 min bottom + 0.3 min from the last stop depth."""
        assert plan_dive(no_deco_params).total_runtime == 21

    def test_final_ascent_starts_at_last_stop_depth(self, no_deco_params):
        """The surfacing ascent runs 3-0 m even though no stop was held."""
        schedule = plan_dive(no_deco_params).schedule
        assert [e.phase for e in schedule] == [Phase.DESCENT, Phase.BOTTOM, Phase.ASCENT]
        ascent = schedule[-1]
        assert ascent.start_depth == 3.0
        assert ascent.end_depth == 0.0
        assert ascent.rate == 10.0
        assert ascent.minutes == 1
        assert ascent.accumulated_minutes == 21

    def test_snapshots(self, no_deco_params):
        """Only bottom and surface snapshots are taken."""
        snapshots = plan_dive(no_deco_params).tissue_snapshots
        assert [s.phase for s in snapshots] == ["Bottom", "Surface"]


class TestReferenceDive:
    """40 m / 20 min on air, GF 30/85, last stop 3 m, pinned end to end."""

    def test_stop_table(self, deco_plan):
        """Stops at 12, 9, 6 and 3 m."""
        assert stop_table(deco_plan) == [(12.0, 2), (9.0, 3), (6.0, 4), (3.0, 7)]

    def test_totals(self, deco_plan):
        """16 min of deco in a 42 min dive."""
        assert deco_plan.total_deco_time == 16
        assert deco_plan.total_runtime == 42

    def test_first_stop(self, deco_plan):
        """The bottom ceiling rounds up to a 15 m first stop, passed through."""
        assert deco_plan.first_stop_depth == 15.0

    def test_schedule(self, deco_plan):
        """Full chronological schedule with rounded travel times."""
        assert schedule_table(deco_plan) == [
            ("Descent", "0-40m", 2, 2),
            ("Bottom", "40m", 20, 22),
            ("Ascent", "40-12m", 3, 25),
            ("Stop", "12m", 2, 27),
            ("Ascent", "12-9m", 1, 28),
            ("Stop", "9m", 3, 31),
            ("Ascent", "9-6m", 1, 31),
            ("Stop", "6m", 4, 35),
            ("Ascent", "6-3m", 1, 35),
            ("Stop", "3m", 7, 42),
            ("Ascent", "3-0m", 1, 42),
        ]

    def test_banded_reference(self, banded_params):
        """Slower deep ascent lengthens the 9 and 3 m stops."""
        plan = plan_dive(banded_params)
        assert stop_table(plan) == [(12.0, 2), (9.0, 4), (6.0, 4), (3.0, 8)]
        assert plan.total_deco_time == 18
        assert plan.total_runtime == 47

    def test_last_stop_six(self):
        """Default 6 m last stop ends the table there and surfaces from 6 m."""
        plan = plan_dive(DiveParameters(depth=40, bottom_time=20))
        assert stop_table(plan) == [(12.0, 2), (9.0, 3), (6.0, 4)]
        assert plan.total_deco_time == 9
        assert plan.total_runtime == 36
        assert plan.schedule[-1].depth_range == "6-0m"

    def test_last_stop_zero_surfaces_from_last_stop(self, deco_params):
        """Without a last stop depth the plan ends at the 3 m stop."""
        plan = plan_dive(replace(deco_params, last_stop_depth=0))
        assert stop_table(plan) == [(12.0, 2), (9.0, 3), (6.0, 4), (3.0, 7)]
        assert plan.schedule[-1].phase is Phase.STOP
        assert plan.schedule[-1].depth_range == "3m"
        assert plan.total_runtime == 42
        assert plan.tissue_snapshots[-1].phase == "Surface"


class TestPassThrough:
    """A level needing no stop still off-gasses for one 3 m leg."""

    def test_uses_rate_from_previous_position(self, banded_params):
        """15 m is passed at 3 / 6 min: the rate from 40 m, not from 15 m."""
        planner = DecompressionPlanner(banded_params)
        bottom = planner.bottom_loading(initial_state(), AIR)
        first = planner.first_stop_depth(bottom)
        assert first == 15.0

        passed = load_at_depth(bottom, 15.0, AIR.n2, AIR.he, 3.0 / 6.0)
        held = planner.search_stop(passed, 12.0, first, AIR)
        assert held.outcome is StopOutcome.CLEARED
        assert held.minutes == 2
        # Ascent 40-12 m loads after the hold, at its starting depth
        expected = load_at_depth(held.state, 40.0, AIR.n2, AIR.he, 28.0 / 6.0)

        snapshot = plan_dive(banded_params).tissue_snapshots[1]
        assert snapshot.phase == "Stop @ 12m"
        np.testing.assert_allclose([c.n2 for c in snapshot.compartments], expected.n2)

        shallow_rate = load_at_depth(bottom, 15.0, AIR.n2, AIR.he, 3.0 / 9.0)
        assert not np.allclose(shallow_rate.n2, passed.n2)

    def test_not_added_to_schedule_or_runtime(self, deco_plan):
        """Passing 15 m adds no event; the first ascent goes straight to 12 m."""
        ascent = deco_plan.schedule[2]
        assert ascent.depth_range == "40-12m"
        assert all(e.start_depth != 15.0 for e in deco_plan.schedule)


class TestPlanInvariants:
    """Properties that hold for every plan."""

    def test_ends_with_last_stop(self, deco_plan):
        """Shallowest row is the last stop depth."""
        assert deco_plan.rows[-1].stop_depth == 3.0

    def test_stop_depths_decrease_in_increments(self, deco_plan):
        """Stop depths are strictly decreasing multiples of 3 m."""
        depths = [row.stop_depth for row in deco_plan.rows]
        assert all(d % 3 == 0 for d in depths)
        assert all(a > b for a, b in zip(depths, depths[1:]))
        assert all(d >= 3 for d in depths)
        assert depths[0] <= deco_plan.first_stop_depth

    def test_bottom_gas_label(self, deco_plan):
        """Without a gas switch every stop is on air."""
        assert {row.gas_label for row in deco_plan.rows} == {"Air"}

    def test_deco_time_consistent(self, deco_plan):
        """Row minutes, Stop event minutes and the total agree."""
        stop_minutes = [e.minutes for e in deco_plan.schedule if e.phase is Phase.STOP]
        assert sum(row.minutes for row in deco_plan.rows) == deco_plan.total_deco_time
        assert sum(stop_minutes) == deco_plan.total_deco_time
        assert stop_minutes == [row.minutes for row in deco_plan.rows]

    def test_runtime_matches_last_event(self, deco_plan):
        """Total runtime equals the final accumulated minutes."""
        assert deco_plan.total_runtime == deco_plan.schedule[-1].accumulated_minutes

    def test_schedule_labels(self, deco_plan):
        """Depth range and rate labels for travel and holds."""
        schedule = deco_plan.schedule
        assert schedule[0].rate_label == "20.0 m/min"
        assert schedule[1].rate_label == ""
        assert schedule[2].rate_label == "10.0 m/min"

    def test_each_stop_preceded_by_ascent(self, deco_plan):
        """Every stop is reached by an ascent ending at its depth."""
        schedule = deco_plan.schedule
        for i, event in enumerate(schedule):
            if event.phase is Phase.STOP:
                assert schedule[i - 1].phase is Phase.ASCENT
                assert schedule[i - 1].end_depth == event.start_depth

    def test_accumulated_minutes_non_decreasing(self, deco_plan):
        """Running totals never go backwards."""
        accumulated = [e.accumulated_minutes for e in deco_plan.schedule]
        assert accumulated == sorted(accumulated)

    def test_snapshots(self, deco_plan):
        """Bottom, one per stop, then surface."""
        phases = [s.phase for s in deco_plan.tissue_snapshots]
        assert phases[0] == "Bottom"
        assert phases[-1] == "Surface"
        assert phases[1:-1] == [f"Stop @ {row.stop_depth:g}m" for row in deco_plan.rows]

    def test_snapshot_readings(self, deco_plan):
        """Each snapshot reading has n2 + he == total."""
        for snapshot in deco_plan.tissue_snapshots:
            assert len(snapshot.compartments) == NUM_COMPARTMENTS
            for reading in snapshot.compartments:
                assert reading.total == pytest.approx(reading.n2 + reading.he)

    def test_fast_tissue_leads_at_bottom(self, deco_plan):
        """Short deep exposure is led by the fastest compartment."""
        bottom = deco_plan.tissue_snapshots[0]
        assert bottom.leading_compartment.compartment == 1

    def test_idempotent(self, deco_params):
        """Two runs with the same inputs compare equal."""
        assert plan_dive(deco_params) == plan_dive(deco_params)

    def test_to_dict_is_json_serializable(self, deco_plan):
        """Exported dict survives a JSON round trip."""
        data = json.loads(json.dumps(deco_plan.to_dict()))
        assert data["requires_deco"] is True
        assert data["schedule"][0]["phase"] == "Descent"
        assert data["schedule"][0]["depth_range"] == "0-40m"
        assert data["total_runtime"] == 42


class TestGradientFactorEffect:
    """GF scales the tolerated excess, so larger factors hold stops longer here."""

    @pytest.mark.parametrize("low, high", GF_GRID)
    def test_raising_either_factor_never_shortens_deco(self, low, high):
        """Deco time is non-decreasing in gf_low and in gf_high."""
        base = deco_minutes(low, high)
        if high + 5 < 100:
            assert deco_minutes(low, high + 5) >= base
        if low + 5 <= high:
            assert deco_minutes(low + 5, high) >= base

    def test_wide_gf_gap(self, deco_params):
        """A far larger GF pair starts deeper and decompresses longer."""
        gentle = plan_dive(replace(deco_params, gf_low=0.2, gf_high=0.5))
        strict = plan_dive(replace(deco_params, gf_low=0.9, gf_high=0.95))
        assert strict.total_deco_time > gentle.total_deco_time
        assert strict.first_stop_depth > gentle.first_stop_depth


class TestDecoGas:
    """Deco gas policies change the gas at the stops."""

    def test_nitrox_then_oxygen_labels(self, deco_params):
        """EAN 50 deeper than 6 m, O2 at 6 m and shallower."""
        plan = plan_dive(replace(deco_params, deco_gas=DecoGasPolicy.NITROX_O2))
        for row in plan.rows:
            expected = "O2" if row.stop_depth <= 6 else "EAN 50"
            assert row.gas_label == expected

    def test_oxygen_labels(self, deco_params):
        """Pure oxygen at every stop."""
        plan = plan_dive(replace(deco_params, deco_gas=DecoGasPolicy.O2))
        assert {row.gas_label for row in plan.rows} == {"O2"}

    def test_richer_deco_gas_shortens_deco(self, deco_plan, deco_params):
        """Switching off air never lengthens deco."""
        plan = plan_dive(replace(deco_params, deco_gas=DecoGasPolicy.NITROX_O2))
        assert plan.total_deco_time <= deco_plan.total_deco_time


class TestTrimix:
    """Helium-bearing bottom gases."""

    def test_bottom_snapshot_carries_helium(self):
        """Every compartment has taken up helium by the end of the bottom."""
        params = DiveParameters(depth=60, bottom_time=20, gas="tx18/45", last_stop_depth=3)
        plan = plan_dive(params)
        bottom = plan.tissue_snapshots[0]
        assert all(r.he > 0 for r in bottom.compartments)
        assert plan.requires_deco
        assert {row.gas_label for row in plan.rows} == {"Trimix 18/45"}

    def test_custom_matches_preset(self):
        """A custom 21/35 trimix plans exactly like the preset."""
        preset = DiveParameters(depth=50, bottom_time=20, gas="21/35")
        custom = DiveParameters(
            depth=50, bottom_time=20, gas="custom",
            custom_type="trimix", custom_o2=21, custom_he=35,
        )
        assert plan_dive(preset).rows == plan_dive(custom).rows


class TestAscentRates:
    """Rates are taken from the depth where each ascent segment starts."""

    def test_banded_rates(self, banded_params):
        """6 m/min for segments starting below 21 m, 9 m/min otherwise."""
        plan = plan_dive(banded_params)
        ascents = [e for e in plan.schedule if e.phase is Phase.ASCENT]
        assert ascents[0].start_depth == 40.0
        assert ascents[0].rate == 6.0
        assert ascents[-1].rate == 9.0
        for event in ascents:
            expected = 6.0 if event.start_depth > 21 else 9.0
            assert event.rate == expected

    def test_slower_ascent_lengthens_runtime(self, deco_params):
        """A 3 m/min ascent takes longer than 10 m/min."""
        fast = plan_dive(deco_params)
        slow = plan_dive(replace(deco_params, ascent=AscentRatePolicy(rate=3.0)))
        assert slow.total_runtime > fast.total_runtime


class TestLastStop:
    """Placement of the final stop."""

    def test_last_stop_zero_keeps_three_metre_stops(self, deco_params):
        """The 3 m level is still searched when the last stop is 0 m."""
        plan = plan_dive(replace(deco_params, last_stop_depth=0))
        assert all(row.stop_depth > 0 for row in plan.rows)
        assert all(e.end_depth != 0.0 for e in plan.schedule if e.phase is Phase.ASCENT)

    def test_last_stop_not_below_bottom(self):
        """No stop is held at or below the bottom depth."""
        plan = plan_dive(DiveParameters(depth=6, bottom_time=30, last_stop_depth=6))
        assert plan.rows == []
        assert plan.schedule[-1].depth_range == "6-0m"

    def test_final_ascent_capped_at_bottom(self):
        """A last stop deeper than the dive surfaces from the bottom."""
        plan = plan_dive(DiveParameters(depth=5, bottom_time=10, last_stop_depth=6))
        assert plan.schedule[-1].depth_range == "5-0m"

    def test_final_ascent_uses_deco_gas(self):
        """Oxygen from the last stop is breathed on the way up."""
        air = plan_dive(DiveParameters(depth=12, bottom_time=20, last_stop_depth=3))
        oxygen = plan_dive(DiveParameters(
            depth=12, bottom_time=20, last_stop_depth=3, deco_gas=DecoGasPolicy.O2,
        ))
        surface_air = air.tissue_snapshots[-1].compartments[0]
        surface_o2 = oxygen.tissue_snapshots[-1].compartments[0]
        assert surface_o2.n2 < surface_air.n2


class TestDescentIntegration:
    """Optional Schreiner loading during descent."""

    def test_descent_loading_raises_bottom_tensions(self, deco_params):
        """Integrated descent leaves more nitrogen at the bottom."""
        plain = plan_dive(deco_params).tissue_snapshots[0]
        integrated = plan_dive(
            replace(deco_params, integrate_descent=True)
        ).tissue_snapshots[0]
        assert integrated.compartments[0].n2 > plain.compartments[0].n2

    def test_descent_time_unchanged(self, deco_params, deco_plan):
        """The descent event itself is identical either way."""
        plan = plan_dive(replace(deco_params, integrate_descent=True))
        assert plan.schedule[0] == deco_plan.schedule[0]


class TestTimeline:
    """Saturation-over-time samples attached to the plan."""

    def test_starts_and_ends_at_surface(self, deco_plan):
        """First sample at the start of descent, last sample on surfacing."""
        timeline = deco_plan.tissue_timeline
        assert timeline[0].time == 0.0
        assert timeline[0].depth == 0.0
        assert timeline[0].phase == Phase.DESCENT.value
        assert timeline[-1].phase == "Surface"
        assert timeline[-1].depth == 0.0

    def test_times_non_decreasing(self, deco_plan):
        """Samples are chronological."""
        times = [s.time for s in deco_plan.tissue_timeline]
        assert times == sorted(times)

    def test_covers_every_phase(self, deco_plan):
        """Descent, bottom, ascents, stops and surfacing are all sampled."""
        phases = {s.phase for s in deco_plan.tissue_timeline}
        assert phases >= {"Descent", "Bottom", "Ascent", "Stop", "Surface"}

    def test_follows_real_path(self, no_deco_params):
        """The timeline ascends the full 12 m at the surfacing rate."""
        timeline = plan_dive(no_deco_params).tissue_timeline
        assert timeline[-1].time == pytest.approx(0.6 + 20 + 1.2)

    def test_surfaces_without_final_ascent(self, deco_params):
        """With no last stop the surfacing sample is at 0 m right after 3 m."""
        timeline = plan_dive(replace(deco_params, last_stop_depth=0)).tissue_timeline
        assert timeline[-1].depth == 0.0
        assert timeline[-2].depth == 3.0
        assert timeline[-1].time == timeline[-2].time


class TestStopSearch:
    """The per-depth hold loop."""

    def test_clear_state_passes_through(self, deco_params):
        """Surface-saturated tissues need no stop."""
        planner = DecompressionPlanner(deco_params)
        result = planner.search_stop(initial_state(), 9.0, 15.0, AIR)
        assert result.outcome is StopOutcome.PASS_THROUGH
        assert result.minutes == 0

    def test_loaded_state_clears(self, deco_params):
        """Holding ends once the ceiling is inside the tolerance."""
        planner = DecompressionPlanner(deco_params)
        loaded = planner.bottom_loading(initial_state(), AIR)
        result = planner.search_stop(loaded, 3.0, 15.0, AIR)
        assert result.outcome is StopOutcome.CLEARED
        assert result.minutes > 0
        assert planner.calculator.ceiling(result.state, 3.0, 15.0) <= 3.0 - 0.1

    def test_cap_reports_runaway(self, deco_params):
        """Hitting the per-stop cap is reported, not truncated."""
        planner = DecompressionPlanner(replace(deco_params, max_stop_minutes=1))
        loaded = planner.bottom_loading(initial_state(), AIR)
        result = planner.search_stop(loaded, 3.0, 15.0, AIR)
        assert result.outcome is StopOutcome.RUNAWAY
        assert result.minutes == 1


class TestFirstStop:
    """Ceiling at the bottom, rounded to a stop depth."""

    def test_clamped_to_bottom(self):
        """A ceiling below a shallow bottom is capped at the deepest 3 m level."""
        planner = DecompressionPlanner(DiveParameters(depth=10, bottom_time=20))
        heavy = TissueState(
            n2=np.full(NUM_COMPARTMENTS, 4.0), he=np.zeros(NUM_COMPARTMENTS)
        )
        assert planner.first_stop_depth(heavy) == 9.0

    def test_clean_state_has_no_first_stop(self, deco_params):
        """Surface-saturated tissues give a first stop of 0 m."""
        planner = DecompressionPlanner(deco_params)
        assert planner.first_stop_depth(initial_state()) == 0.0


class TestErrors:
    """Invalid inputs fail before any simulation."""

    @pytest.mark.parametrize("overrides", [
        {"depth": 0},
        {"bottom_time": -1},
        {"gf_low": 0.9, "gf_high": 0.5},
        {"descent_rate": 0},
    ])
    def test_invalid_parameter(self, deco_params, overrides):
        """Out-of-range inputs raise InvalidParameter."""
        with pytest.raises(InvalidParameter):
            plan_dive(replace(deco_params, **overrides))

    def test_unknown_gas(self, deco_params):
        """An unrecognized bottom gas raises InvalidConfiguration."""
        with pytest.raises(InvalidConfiguration):
            plan_dive(replace(deco_params, gas="nitrox99"))

    def test_runaway_stop(self, deco_params):
        """A stop that cannot clear under the cap raises with its depth."""
        with pytest.raises(ExcessiveDecompressionTime) as exc_info:
            plan_dive(replace(deco_params, max_stop_minutes=1))
        assert exc_info.value.minutes == 1
        assert exc_info.value.depth == 12.0

    def test_errors_share_base_class(self, deco_params):
        """Every planner error is a DecoPlanError."""
        with pytest.raises(DecoPlanError):
            plan_dive(replace(deco_params, depth=-5))


class TestScheduleEvent:
    """Display helpers."""

    def test_travel_labels(self):
        """Travel shows a depth range and a rate."""
        event = ScheduleEvent(Phase.ASCENT, 40.0, 21.0, 6.0, 4, 26)
        assert event.depth_range == "40-21m"
        assert event.rate_label == "6.0 m/min"

    def test_hold_labels(self):
        """Holds show a single depth and no rate."""
        event = ScheduleEvent(Phase.STOP, 9.0, 9.0, None, 3, 30)
        assert event.depth_range == "9m"
        assert event.rate_label == ""
