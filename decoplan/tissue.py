"""
Tissue compartment state for the ZH-L16C model.

All tissue math is vectorized across the 16 compartments using numpy. States
are never mutated in place: every update returns a new TissueState.
"""

from dataclasses import dataclass

import numpy as np

from .zhl16_constants import (
    NUM_COMPARTMENTS,
    SURFACE_N2_PRESSURE,
    N2_K,
    HE_K,
    METERS_PER_BAR,
    haldane_vec,
    inspired_pressure,
    schreiner_vec,
)


@dataclass(frozen=True, eq=False)
class TissueState:
    """N2 and He partial pressures (bar) per compartment, shape (16,)."""

    n2: np.ndarray
    he: np.ndarray

    @property
    def total(self) -> np.ndarray:
        return self.n2 + self.he

    def copy(self) -> "TissueState":
        return TissueState(n2=self.n2.copy(), he=self.he.copy())


def initial_state() -> TissueState:
    """Every compartment in equilibrium with air at the surface."""
    return TissueState(
        n2=np.full(NUM_COMPARTMENTS, SURFACE_N2_PRESSURE),
        he=np.zeros(NUM_COMPARTMENTS),
    )


def update(
    state: TissueState,
    p_insp_n2: float,
    p_insp_he: float,
    minutes: float,
) -> TissueState:
    """Apply the Haldane equation independently to nitrogen and helium."""
    return TissueState(
        n2=haldane_vec(state.n2, p_insp_n2, minutes, N2_K),
        he=haldane_vec(state.he, p_insp_he, minutes, HE_K),
    )


def load_at_depth(
    state: TissueState,
    depth: float,
    f_n2: float,
    f_he: float,
    minutes: float,
) -> TissueState:
    """Constant-depth exposure breathing the given inert fractions."""
    return update(
        state,
        inspired_pressure(depth, f_n2),
        inspired_pressure(depth, f_he),
        minutes,
    )


def travel(
    state: TissueState,
    start_depth: float,
    end_depth: float,
    minutes: float,
    f_n2: float,
    f_he: float,
) -> TissueState:
    """Linear depth change between two depths (Schreiner equation)."""
    if minutes <= 0:
        return state.copy()
    # bar/min of ambient pressure change
    rate = (end_depth - start_depth) / METERS_PER_BAR / minutes
    return TissueState(
        n2=schreiner_vec(
            state.n2, inspired_pressure(start_depth, f_n2), rate * f_n2, minutes, N2_K
        ),
        he=schreiner_vec(
            state.he, inspired_pressure(start_depth, f_he), rate * f_he, minutes, HE_K
        ),
    )
