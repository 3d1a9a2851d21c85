"""Exceptions for decoplan."""


class DecoPlanError(Exception):
    """Base exception for decompression planning errors."""
    pass


class InvalidConfiguration(DecoPlanError, ValueError):
    """Raised for an unrecognized gas, deco-gas, ascent or strategy selector."""
    pass


class InvalidParameter(DecoPlanError, ValueError):
    """Raised for out-of-range dive parameters (depth, time, rates, GF)."""
    pass


class ExcessiveDecompressionTime(DecoPlanError, RuntimeError):
    """Raised when a single stop does not clear within the per-stop cap."""

    def __init__(self, depth: float, minutes: int):
        self.depth = depth
        self.minutes = minutes
        super().__init__(
            f"Ceiling did not clear after {minutes} min at {depth:g}m"
        )
