"""
Configuration loading and output naming.

Reads dive settings from config.yaml, applies command-line overrides and
generates deterministic names so exports of different plans coexist without
overwriting each other.
"""

import logging
import os
import shutil
from dataclasses import replace

import yaml

from .gas import DecoGasPolicy
from .parameters import AscentMode, AscentRatePolicy, DiveParameters
from .zhl16_constants import MAX_STOP_MINUTES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config.yaml"
)


def load_effective_config(
    config_path: str = None,
    gf_override: tuple = None,
) -> dict:
    """Load configuration from config.yaml with an optional CLI GF override.

    Args:
        config_path: YAML file to read (default: config.yaml at the repo root)
        gf_override: (gf_low, gf_high) in percent, e.g. (30, 85)

    Returns a dict with resolved settings:
        params:       DiveParameters instance (not yet validated)
        config_path:  str (resolved path)
        gf_source:    'cli' | 'config' | 'default'
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    config = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

    params, gf_source = build_dive_parameters(config)

    if gf_override:
        params = replace(
            params,
            gf_low=gf_override[0] / 100.0,
            gf_high=gf_override[1] / 100.0,
        )
        gf_source = "cli"

    logger.info(
        f"GF {params.gf_low:.2f}/{params.gf_high:.2f} from {gf_source} "
        f"({config_path})"
    )

    return {
        "params": params,
        "config_path": config_path,
        "gf_source": gf_source,
    }


def build_dive_parameters(config: dict) -> tuple:
    """Build DiveParameters from a parsed config dict.

    Missing sections or keys fall back to the DiveParameters defaults.

    Returns:
        (DiveParameters, gf_source) where gf_source is 'config' or 'default'
    """
    defaults = DiveParameters(depth=30.0, bottom_time=20.0)
    default_rates = AscentRatePolicy()

    dive_cfg = config.get("dive", {}) or {}
    buhlmann_cfg = config.get("buhlmann", {}) or {}
    deco_cfg = config.get("deco", {}) or {}
    rates_cfg = config.get("rates", {}) or {}

    custom_cfg = dive_cfg.get("custom", {}) or {}

    ascent = AscentRatePolicy(
        mode=AscentMode.parse(rates_cfg.get("ascent_mode", default_rates.mode)),
        rate=float(rates_cfg.get("ascent_rate", default_rates.rate)),
        deep_rate=float(rates_cfg.get("deep_ascent_rate", default_rates.deep_rate)),
        shallow_rate=float(
            rates_cfg.get("shallow_ascent_rate", default_rates.shallow_rate)
        ),
        shallow_threshold=float(
            rates_cfg.get("shallow_threshold", default_rates.shallow_threshold)
        ),
    )

    params = DiveParameters(
        depth=float(dive_cfg.get("depth_m", defaults.depth)),
        bottom_time=float(dive_cfg.get("bottom_time_min", defaults.bottom_time)),
        gas=str(dive_cfg.get("gas", defaults.gas)),
        gf_low=float(buhlmann_cfg.get("gf_low", defaults.gf_low)),
        gf_high=float(buhlmann_cfg.get("gf_high", defaults.gf_high)),
        custom_type=custom_cfg.get("type"),
        custom_o2=_optional_float(custom_cfg.get("o2")),
        custom_he=_optional_float(custom_cfg.get("he")),
        deco_gas=DecoGasPolicy.parse(deco_cfg.get("gas", defaults.deco_gas)),
        deco_o2=float(deco_cfg.get("o2", defaults.deco_o2)),
        ascent=ascent,
        last_stop_depth=float(deco_cfg.get("last_stop_depth", defaults.last_stop_depth)),
        descent_rate=float(rates_cfg.get("descent_rate", defaults.descent_rate)),
        max_stop_minutes=int(deco_cfg.get("max_stop_minutes", MAX_STOP_MINUTES)),
        integrate_descent=bool(deco_cfg.get("integrate_descent", False)),
    )
    gf_source = "config" if buhlmann_cfg else "default"
    return params, gf_source


def _optional_float(value):
    return None if value is None else float(value)


def build_plan_dirname(params: DiveParameters) -> str:
    """Build a deterministic directory name encoding the plan settings.

    Format: gf{low}-{high}_{gas}_{depth}m_{time}min_last{last_stop}

    Examples:
        GF 30/85, air, 40m, 20min, last stop 3m  -> gf30-85_air_40m_20min_last3
        GF 50/80, 18/45, 60m, 25min, last stop 6m -> gf50-80_18-45_60m_25min_last6
    """
    gf_low_pct = int(round(params.gf_low * 100))
    gf_high_pct = int(round(params.gf_high * 100))
    if params.gas == "custom":
        gas = params.bottom_gas.label.lower().replace(" ", "")
    else:
        gas = params.gas.lower()
    gas = gas.replace("/", "-")

    return (
        f"gf{gf_low_pct}-{gf_high_pct}"
        f"_{gas}"
        f"_{params.depth:g}m"
        f"_{params.bottom_time:g}min"
        f"_last{params.last_stop_depth:g}"
    )


def save_config_snapshot(config_path: str, output_dir: str) -> None:
    """Copy config.yaml into the output directory for reproducibility."""
    if os.path.exists(config_path):
        os.makedirs(output_dir, exist_ok=True)
        shutil.copy2(config_path, os.path.join(output_dir, "config.yaml"))
