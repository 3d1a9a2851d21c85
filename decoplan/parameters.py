"""
Dive parameters and ascent-rate policy.

Parameters are immutable for a planning run and are validated eagerly, before
any tissue simulation starts.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .exceptions import InvalidConfiguration, InvalidParameter
from .gas import DecoGasPolicy, GasMix, GasMixResolver, resolve_bottom_gas
from .zhl16_constants import MAX_STOP_MINUTES, GradientFactors


class AscentMode(str, Enum):
    FLAT = "flat"
    BANDED = "banded"

    @classmethod
    def parse(cls, value) -> "AscentMode":
        if isinstance(value, cls):
            return value
        # 'single' / 'multi' are the planner form's names for the two modes
        aliases = {"single": cls.FLAT, "multi": cls.BANDED}
        key = str(value).lower()
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            raise InvalidConfiguration(
                f"Unknown ascent mode: {value!r}. Use 'flat' or 'banded'."
            ) from None


def _require_positive(name: str, value: float) -> None:
    if value is None or not math.isfinite(value) or value <= 0:
        raise InvalidParameter(f"{name} must be a positive number, got {value}")


@dataclass(frozen=True)
class AscentRatePolicy:
    """Flat ascent rate, or deep/shallow rates split at a threshold depth (m/min)."""

    mode: AscentMode = AscentMode.FLAT
    rate: float = 10.0
    deep_rate: float = 6.0
    shallow_rate: float = 9.0
    shallow_threshold: float = 21.0

    def rate_from(self, depth: float) -> float:
        """Ascent rate for a segment starting at `depth`."""
        if AscentMode.parse(self.mode) is AscentMode.FLAT:
            return self.rate
        return self.deep_rate if depth > self.shallow_threshold else self.shallow_rate

    def validate(self) -> None:
        mode = AscentMode.parse(self.mode)
        if mode is AscentMode.FLAT:
            _require_positive("Ascent rate", self.rate)
        else:
            _require_positive("Deep ascent rate", self.deep_rate)
            _require_positive("Shallow ascent rate", self.shallow_rate)
            if not math.isfinite(self.shallow_threshold) or self.shallow_threshold < 0:
                raise InvalidParameter(
                    f"Shallow threshold must be >= 0, got {self.shallow_threshold}"
                )


@dataclass(frozen=True)
class DiveParameters:
    """Inputs for one square-profile planning run.

    Depths in metres, times in minutes, rates in m/min, GF as fractions.
    """

    depth: float
    bottom_time: float
    gas: str = "air"
    gf_low: float = 0.3
    gf_high: float = 0.85
    custom_type: Optional[str] = None
    custom_o2: Optional[float] = None
    custom_he: Optional[float] = None
    deco_gas: DecoGasPolicy = DecoGasPolicy.NONE
    deco_o2: float = 50.0
    ascent: AscentRatePolicy = field(default_factory=AscentRatePolicy)
    last_stop_depth: float = 6.0
    descent_rate: float = 20.0
    max_stop_minutes: int = MAX_STOP_MINUTES
    integrate_descent: bool = False

    @property
    def gradient_factors(self) -> GradientFactors:
        return GradientFactors(gf_low=self.gf_low, gf_high=self.gf_high)

    @property
    def bottom_gas(self) -> GasMix:
        return resolve_bottom_gas(
            self.gas, self.custom_type, self.custom_o2, self.custom_he
        )

    def gas_resolver(self) -> GasMixResolver:
        return GasMixResolver(self.bottom_gas, self.deco_gas, self.deco_o2)

    def validate(self) -> None:
        """Raise InvalidParameter / InvalidConfiguration for unusable inputs."""
        _require_positive("Depth", self.depth)
        _require_positive("Bottom time", self.bottom_time)
        _require_positive("Descent rate", self.descent_rate)
        if not math.isfinite(self.last_stop_depth) or self.last_stop_depth < 0:
            raise InvalidParameter(
                f"Last stop depth must be >= 0, got {self.last_stop_depth}"
            )
        if self.max_stop_minutes < 1:
            raise InvalidParameter(
                f"Max stop minutes must be >= 1, got {self.max_stop_minutes}"
            )
        # Constructors raise on bad GF bounds and unknown gas selectors
        GradientFactors(gf_low=self.gf_low, gf_high=self.gf_high)
        self.ascent.validate()
        self.gas_resolver()
