"""
GF-adjusted ceiling calculation over the 16 ZH-L16C compartments.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .tissue import TissueState
from .zhl16_constants import (
    NUM_COMPARTMENTS,
    TISSUE_LABELS,
    GradientFactors,
    allowed_ambient_pressure,
    ambient_pressure,
    m_value_gf,
    pressure_to_depth,
    tolerated_ambient_pressure,
)


@dataclass(frozen=True)
class CompartmentReading:
    """Derived view of one compartment at a reference depth."""

    compartment: int  # 1-based
    label: str
    n2: float
    he: float
    total: float
    m_value: float  # bar, largest tolerated tissue pressure
    saturation: float  # percent of m_value
    ceiling: float  # m


class CeilingCalculator:
    """Shallowest depth at which no compartment exceeds its GF-adjusted limit.

    The gradient factor is interpolated between gf_low at the first stop and
    gf_high at the surface; the first stop depth is supplied by the caller and
    stays fixed for the whole ascent.
    """

    def __init__(self, gf: GradientFactors):
        self.gf = gf

    def compartment_ceilings(
        self, state: TissueState, depth: float, first_stop_depth: float
    ) -> np.ndarray:
        """Ceiling depth (m) per compartment, GF evaluated at `depth`."""
        gf = self.gf.at(depth, first_stop_depth)
        return self._ceilings(state, gf)

    def ceiling(
        self, state: TissueState, depth: float, first_stop_depth: float
    ) -> float:
        """Overall ceiling (m): the deepest compartment ceiling.

        Never shallower than the depth of zero ambient pressure.
        """
        ceilings = self.compartment_ceilings(state, depth, first_stop_depth)
        return max(float(np.max(ceilings)), pressure_to_depth(0.0))

    def leading_compartment(
        self, state: TissueState, depth: float, first_stop_depth: float
    ) -> int:
        """0-based index of the compartment dictating the ceiling."""
        ceilings = self.compartment_ceilings(state, depth, first_stop_depth)
        return int(np.argmax(ceilings))

    def readings(
        self, state: TissueState, depth: float, gf: float
    ) -> Tuple[CompartmentReading, ...]:
        """Per-compartment M-value and saturation at a reference depth and GF."""
        ref_depth = max(depth, 0.0)
        m_values = m_value_gf(state.n2, state.he, ambient_pressure(ref_depth), gf)
        ceilings = self._ceilings(state, gf)
        total = state.total

        readings = []
        for c in range(NUM_COMPARTMENTS):
            n2 = float(state.n2[c])
            he = float(state.he[c])
            m = float(m_values[c])
            tot = n2 + he
            readings.append(
                CompartmentReading(
                    compartment=c + 1,
                    label=TISSUE_LABELS[c],
                    n2=n2,
                    he=he,
                    total=tot,
                    m_value=m,
                    saturation=100.0 * tot / m if m > 0 and total[c] > 0 else 0.0,
                    ceiling=float(ceilings[c]),
                )
            )
        return tuple(readings)

    @staticmethod
    def _ceilings(state: TissueState, gf: float) -> np.ndarray:
        total = state.total
        allowed = allowed_ambient_pressure(
            tolerated_ambient_pressure(state.n2, state.he), gf
        )
        # Gas-free compartments never lead: treat as zero allowed pressure
        allowed = np.where(total > 0, allowed, 0.0)
        return pressure_to_depth(allowed)
