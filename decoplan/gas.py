"""
Breathing gas resolution.

Maps bottom-gas selectors and deco-gas policies to inert gas fractions for
each phase of the dive.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .exceptions import InvalidConfiguration, InvalidParameter

logger = logging.getLogger(__name__)

O2_SHALLOW_DEPTH = 6.0  # m, switch depth for the nitrox-then-O2 policy


@dataclass(frozen=True)
class GasMix:
    """Breathing gas as O2 and He fractions; N2 makes up the rest."""

    o2: float
    he: float = 0.0

    def __post_init__(self):
        if not (0.0 <= self.o2 <= 1.0):
            raise InvalidParameter(f"O2 fraction must be in [0, 1], got {self.o2}")
        if not (0.0 <= self.he <= 1.0):
            raise InvalidParameter(f"He fraction must be in [0, 1], got {self.he}")
        if self.o2 + self.he > 1.0 + 1e-9:
            raise InvalidParameter(
                f"O2 + He fractions must not exceed 1, got {self.o2 + self.he:.3f}"
            )

    @property
    def n2(self) -> float:
        return max(0.0, 1.0 - self.o2 - self.he)

    @property
    def label(self) -> str:
        if self.he > 0:
            return f"Trimix {round(self.o2 * 100)}/{round(self.he * 100)}"
        if self.o2 == 0.21:
            return "Air"
        if self.o2 == 1.0:
            return "O2"
        return f"EAN {round(self.o2 * 100)}"

    @classmethod
    def from_percent(cls, o2_pct: float, he_pct: float = 0.0) -> "GasMix":
        return cls(o2=o2_pct / 100.0, he=he_pct / 100.0)


AIR = GasMix(o2=0.21)
OXYGEN = GasMix(o2=1.0)

# Preset bottom gases; short labels match the planner form values
BOTTOM_GAS_PRESETS = {
    "air": AIR,
    "ean28": GasMix(o2=0.28),
    "28": GasMix(o2=0.28),
    "ean32": GasMix(o2=0.32),
    "32": GasMix(o2=0.32),
    "tx21/35": GasMix(o2=0.21, he=0.35),
    "21/35": GasMix(o2=0.21, he=0.35),
    "tx18/45": GasMix(o2=0.18, he=0.45),
    "18/45": GasMix(o2=0.18, he=0.45),
}

CUSTOM_GAS_TYPES = ("nitrox", "trimix")


class DecoGasPolicy(str, Enum):
    """Gas breathed during stops."""

    NONE = "none"  # no gas switch, bottom gas for the whole dive
    O2 = "o2"
    NITROX = "ean"
    NITROX_O2 = "ean+o2"  # nitrox, then pure O2 at 6m and shallower

    @classmethod
    def parse(cls, value) -> "DecoGasPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidConfiguration(
                f"Unknown deco gas policy: {value!r}. "
                f"Use one of {[p.value for p in cls]}."
            ) from None


def resolve_bottom_gas(
    selector: str,
    custom_type: Optional[str] = None,
    custom_o2: Optional[float] = None,
    custom_he: Optional[float] = None,
) -> GasMix:
    """Resolve a bottom-gas selector to a GasMix.

    Args:
        selector: preset label or 'custom'
        custom_type: 'nitrox' or 'trimix' when selector is 'custom'
        custom_o2: O2 percentage for a custom gas
        custom_he: He percentage for a custom trimix
    """
    key = str(selector).lower()
    if key in BOTTOM_GAS_PRESETS:
        return BOTTOM_GAS_PRESETS[key]
    if key != "custom":
        raise InvalidConfiguration(
            f"Unknown bottom gas: {selector!r}. "
            f"Use one of {sorted(set(BOTTOM_GAS_PRESETS))} or 'custom'."
        )

    if custom_type not in CUSTOM_GAS_TYPES:
        raise InvalidConfiguration(
            f"Unknown custom gas type: {custom_type!r}. Use 'nitrox' or 'trimix'."
        )
    if custom_o2 is None:
        raise InvalidParameter("Custom gas requires an O2 percentage")
    if custom_type == "trimix":
        if custom_he is None:
            raise InvalidParameter("Custom trimix requires a He percentage")
        return GasMix.from_percent(custom_o2, custom_he)
    return GasMix.from_percent(custom_o2)


class GasMixResolver:
    """Bottom gas plus the deco gas breathed at each stop depth."""

    def __init__(
        self,
        bottom_gas: GasMix,
        policy: DecoGasPolicy = DecoGasPolicy.NONE,
        deco_o2: float = 50.0,
    ):
        """
        Args:
            bottom_gas: gas breathed on descent and at the bottom
            policy: deco gas policy
            deco_o2: nitrox O2 percentage for the 'ean' and 'ean+o2' policies
        """
        self.bottom_gas = bottom_gas
        self.policy = DecoGasPolicy.parse(policy)
        self.deco_o2 = deco_o2

        if self.policy in (DecoGasPolicy.NITROX, DecoGasPolicy.NITROX_O2):
            if not (0.0 < deco_o2 <= 100.0):
                raise InvalidParameter(
                    f"Deco O2 percentage must be in (0, 100], got {deco_o2}"
                )
            self._nitrox = GasMix.from_percent(deco_o2)
        else:
            self._nitrox = None

        logger.debug(
            f"Gas plan: bottom {bottom_gas.label}, deco policy {self.policy.value}"
        )

    def deco_gas(self, depth: float) -> GasMix:
        """Gas breathed at a stop depth."""
        if self.policy is DecoGasPolicy.NONE:
            return self.bottom_gas
        if self.policy is DecoGasPolicy.O2:
            return OXYGEN
        if self.policy is DecoGasPolicy.NITROX_O2 and depth <= O2_SHALLOW_DEPTH:
            return OXYGEN
        return self._nitrox

    def gas_label(self, depth: float) -> str:
        """Schedule label for the gas breathed at a stop depth."""
        gas = self.deco_gas(depth)
        if self.policy is DecoGasPolicy.NONE:
            return gas.label
        if gas.n2 == 0 and gas.he == 0:
            return "O2"
        return f"EAN {self.deco_o2:g}"
