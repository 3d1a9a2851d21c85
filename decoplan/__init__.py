"""
Bühlmann ZH-L16C decompression planning with gradient factors.

Modules:
    - zhl16_constants: ZH-L16C constants, gas-loading equations and GF math
    - tissue: 16-compartment tissue state and its Haldane/Schreiner updates
    - gas: bottom gas presets and deco gas policies
    - ceiling: GF-adjusted ceilings and compartment readings
    - parameters: dive parameters and ascent-rate policy
    - planner: staged decompression schedule for a square profile
    - timeline: saturation-over-time samples for charts
    - strategy: alternative stop-time allocations for comparison
    - config: YAML configuration loading and output naming
"""

from .exceptions import (
    DecoPlanError,
    InvalidConfiguration,
    InvalidParameter,
    ExcessiveDecompressionTime,
)
from .zhl16_constants import GradientFactors
from .gas import GasMix, GasMixResolver, DecoGasPolicy
from .parameters import AscentMode, AscentRatePolicy, DiveParameters
from .planner import DecoPlan, DecompressionPlanner, plan_dive
from .strategy import Strategy, redistribute, compare_strategies
from .config import load_effective_config, build_plan_dirname

__version__ = "0.1.0"

__all__ = [
    "DecoPlanError",
    "InvalidConfiguration",
    "InvalidParameter",
    "ExcessiveDecompressionTime",
    "GradientFactors",
    "GasMix",
    "GasMixResolver",
    "DecoGasPolicy",
    "AscentMode",
    "AscentRatePolicy",
    "DiveParameters",
    "DecoPlan",
    "DecompressionPlanner",
    "plan_dive",
    "Strategy",
    "redistribute",
    "compare_strategies",
    "load_effective_config",
    "build_plan_dirname",
]
