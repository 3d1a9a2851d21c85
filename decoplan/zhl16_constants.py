"""
Bühlmann ZH-L16C constants and gradient factor calculations.

Single source of truth for compartment parameters, gas-loading equations and
GF-adjusted tolerance math. All functions are pure (no side effects) so that
independent planning runs can share them from parallel threads.
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .exceptions import InvalidParameter

NUM_COMPARTMENTS = 16

# ZH-L16C half-times in minutes
ZH_L16_N2_HALFTIMES: Tuple[float, ...] = (
    4.0, 8.0, 12.5, 18.5, 27.0, 38.3, 54.3, 77.0,
    109.0, 146.0, 187.0, 239.0, 305.0, 390.0, 498.0, 635.0,
)

ZH_L16_HE_HALFTIMES: Tuple[float, ...] = (
    1.51, 3.02, 4.72, 6.99, 10.21, 14.48, 20.53, 29.11,
    41.2, 55.19, 70.69, 90.34, 115.29, 147.42, 188.24, 240.03,
)

# Workman a/b coefficients
ZH_L16_N2_A: Tuple[float, ...] = (
    1.2599, 1.1696, 1.0000, 0.8618, 0.7562, 0.6667, 0.5933, 0.5282,
    0.4701, 0.4187, 0.3798, 0.3497, 0.3223, 0.2971, 0.2737, 0.2523,
)

ZH_L16_N2_B: Tuple[float, ...] = (
    0.5050, 0.6514, 0.7222, 0.7825, 0.8126, 0.8434, 0.8693, 0.8910,
    0.9092, 0.9222, 0.9319, 0.9403, 0.9477, 0.9544, 0.9602, 0.9653,
)

ZH_L16_HE_A: Tuple[float, ...] = (
    1.7424, 1.6189, 1.3830, 1.1919, 1.0458, 0.9220, 0.8205, 0.7305,
    0.6502, 0.5950, 0.5545, 0.5333, 0.5189, 0.5181, 0.5176, 0.5172,
)

ZH_L16_HE_B: Tuple[float, ...] = (
    0.4245, 0.4770, 0.5747, 0.6527, 0.7223, 0.7582, 0.7957, 0.8279,
    0.8553, 0.8757, 0.8903, 0.8997, 0.9073, 0.9122, 0.9171, 0.9217,
)

TISSUE_LABELS: Tuple[str, ...] = (
    "Blood/Lung", "Brain", "Spinal Cord", "Muscle (fast)",
    "Muscle", "Muscle (med)", "Muscle (slow)", "Fat (fast)",
    "Fat", "Fat (med)", "Fat (slow)", "Cartilage (fast)",
    "Cartilage", "Bone Marrow", "Bone", "Bone (slow)",
)

P_SURFACE = 1.0  # bar
METERS_PER_BAR = 10.0  # seawater
WATER_VAPOR_PRESSURE = 0.0627  # bar, alveolar
SURFACE_N2_PRESSURE = 0.79  # bar, tissue equilibrium with air at the surface

STOP_INCREMENT = 3.0  # m
CEILING_TOLERANCE = 0.1  # m
MAX_STOP_MINUTES = 1000

# Decay constants k = ln(2) / halftime, shape (16,)
N2_K = np.log(2) / np.array(ZH_L16_N2_HALFTIMES)
HE_K = np.log(2) / np.array(ZH_L16_HE_HALFTIMES)

N2_A = np.array(ZH_L16_N2_A)
N2_B = np.array(ZH_L16_N2_B)
HE_A = np.array(ZH_L16_HE_A)
HE_B = np.array(ZH_L16_HE_B)


def ambient_pressure(depth: float) -> float:
    """Absolute pressure (bar) at a depth in metres of seawater."""
    return P_SURFACE + depth / METERS_PER_BAR


def pressure_to_depth(pressure: float) -> float:
    """Depth (m) for an absolute ambient pressure (bar)."""
    return (pressure - P_SURFACE) * METERS_PER_BAR


def inspired_pressure(depth: float, fraction: float) -> float:
    """Inspired inert gas pressure for a gas fraction at depth.

    P_insp = (P_amb - P_H2O) * f
    """
    return (ambient_pressure(depth) - WATER_VAPOR_PRESSURE) * fraction


def haldane_vec(
    pt0: np.ndarray, p_insp: float, t: float, k: np.ndarray
) -> np.ndarray:
    """Haldane equation (constant ambient pressure), vectorized.

    P(t) = P0 + (P_insp - P0) * (1 - exp(-k*t))
    """
    return pt0 + (p_insp - pt0) * (1.0 - np.exp(-k * t))


def schreiner_vec(
    pt0: np.ndarray, palv0: float, rate: float, t: float, k: np.ndarray
) -> np.ndarray:
    """Schreiner equation (linear change of inspired pressure), vectorized.

    P(t) = Palv0 + R*(t - 1/k) - (Palv0 - P0 - R/k) * exp(-k*t)

    Args:
        pt0: tissue pressures at the start of the segment
        palv0: inspired inert pressure at the start of the segment
        rate: change of inspired inert pressure (bar/min)
        t: segment duration (min)
        k: decay constants
    """
    return palv0 + rate * (t - 1.0 / k) - (palv0 - pt0 - rate / k) * np.exp(-k * t)


def gradient_factor(
    depth: float, first_stop_depth: float, gf_low: float, gf_high: float
) -> float:
    """Gradient factor at a depth, interpolated from the first stop to the surface.

    gf_low applies at or below the first stop, gf_high at the surface.
    """
    if depth >= first_stop_depth:
        return gf_low
    if depth <= 0:
        return gf_high
    return gf_low + (gf_high - gf_low) * (first_stop_depth - depth) / first_stop_depth


@dataclass(frozen=True)
class GradientFactors:
    """Gradient factor pair for Bühlmann decompression adjustments.

    gf_low:  applied at the deepest ceiling (first stop)
    gf_high: applied at the surface
    Values are fractions (0.0–1.0).
    """
    gf_low: float
    gf_high: float

    def __post_init__(self):
        if not (0.0 < self.gf_low <= 1.0):
            raise InvalidParameter(f"gf_low must be in (0, 1.0], got {self.gf_low}")
        if not (0.0 < self.gf_high <= 1.0):
            raise InvalidParameter(f"gf_high must be in (0, 1.0], got {self.gf_high}")
        if self.gf_low > self.gf_high:
            raise InvalidParameter(
                f"gf_low ({self.gf_low}) must be <= gf_high ({self.gf_high})"
            )

    def at(self, depth: float, first_stop_depth: float) -> float:
        return gradient_factor(depth, first_stop_depth, self.gf_low, self.gf_high)


def weighted_coefficients(
    n2: np.ndarray, he: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """a/b coefficients weighted by each gas's share of the tissue's inert load.

    Compartments with no inert gas fall back to the N2 coefficients.
    """
    total = n2 + he
    safe_total = np.where(total > 0, total, 1.0)
    a = np.where(total > 0, (N2_A * n2 + HE_A * he) / safe_total, N2_A)
    b = np.where(total > 0, (N2_B * n2 + HE_B * he) / safe_total, N2_B)
    return a, b


def tolerated_ambient_pressure(n2: np.ndarray, he: np.ndarray) -> np.ndarray:
    """Ambient pressure each compartment tolerates at full saturation.

    P_tol = (P_tissue - a) / b
    """
    a, b = weighted_coefficients(n2, he)
    return (n2 + he - a) / b


def allowed_ambient_pressure(p_tolerated: np.ndarray, gf: float) -> np.ndarray:
    """GF-adjusted ambient pressure: P_allowed = 1 + gf * (P_tol - 1)."""
    return P_SURFACE + gf * (p_tolerated - P_SURFACE)


def m_value_gf(
    n2: np.ndarray, he: np.ndarray, ambient: float, gf: float
) -> np.ndarray:
    """Largest tissue pressure tolerated at an ambient pressure under a GF.

    Inverts the ceiling rule: a compartment is within limits at P_amb while
    1 + gf * ((P_tissue - a) / b - 1) <= P_amb, so
        M_gf(P_amb) = a + b * (1 + (P_amb - 1) / gf)
    """
    a, b = weighted_coefficients(n2, he)
    return a + b * (P_SURFACE + (ambient - P_SURFACE) / gf)


def round_up_to_stop(depth: float, increment: float = STOP_INCREMENT) -> float:
    """Round a ceiling depth up to the next stop increment (never below 0)."""
    return max(0.0, math.ceil(depth / increment) * increment)
