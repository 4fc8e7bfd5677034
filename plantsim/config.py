"""Configuration system for PlantSim.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → programmatic overrides

Design decisions:
  - Time is integer seconds everywhere; no wall clock is ever read
  - liveness_check selects whether water/harvest gate on the persisted
    alive flag ("persisted") or on a freshly computed level ("recomputed")
  - reward ≤ entry_price is allowed but warned about
"""

from __future__ import annotations

import dataclasses
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


LIVENESS_CHECKS = {"persisted", "recomputed"}


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class LifecycleSection:
    """Prices, timing and decay schedule of a plant's life."""
    entry_price: int = 10           # Minimum payment to seed
    reward: int = 15                # Fixed payout for a harvested bloom
    stage_duration: int = 60        # Seconds per growth stage
    depletion_interval: int = 30    # Seconds per water depletion step
    depletion_rate: int = 2         # Water units lost per step
    initial_resource: int = 100     # Water level after seeding / watering
    liveness_check: str = "persisted"   # "persisted" | "recomputed"


@dataclass
class LedgerSection:
    """Shared balance and its administrator."""
    admin: str = "admin"
    initial_balance: int = 0


@dataclass
class RegistrySection:
    """Entity arena sizing."""
    initial_capacity: int = 64      # Rows allocated up front; doubles on demand


@dataclass
class RecordingSection:
    """Optional history recording of the entity table."""
    enabled: bool = False
    interval: int = 60              # Capture every N seconds of simulated time
    start: int = 0
    end: Optional[int] = None
    output: str = "results/history.npz"


@dataclass
class GardenConfig:
    """Complete garden configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    lifecycle: LifecycleSection = field(default_factory=LifecycleSection)
    ledger: LedgerSection = field(default_factory=LedgerSection)
    registry: RegistrySection = field(default_factory=RegistrySection)
    recording: RecordingSection = field(default_factory=RecordingSection)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Args:
        base: Base dictionary (modified in place).
        override: Override dictionary.

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def config_from_dict(data: Dict) -> GardenConfig:
    """Convert a merged YAML dict to a GardenConfig (not validated)."""
    sections = {}
    section_map = {
        'lifecycle': LifecycleSection,
        'ledger': LedgerSection,
        'registry': RegistrySection,
        'recording': RecordingSection,
    }
    for key, cls in section_map.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return GardenConfig(**sections)


def config_to_dict(config: GardenConfig) -> Dict:
    """Plain-dict form of a config, suitable for yaml.safe_dump."""
    return dataclasses.asdict(config)


def validate_config(config: GardenConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure.

    Checks:
      - Durations and intervals are positive
      - Prices and balances are non-negative
      - Initial water level lies in [1, 100]
      - liveness_check is a known policy
    """
    lc = config.lifecycle
    if lc.stage_duration <= 0:
        raise ValueError(
            f"lifecycle.stage_duration must be positive, got {lc.stage_duration}"
        )
    if lc.depletion_interval <= 0:
        raise ValueError(
            f"lifecycle.depletion_interval must be positive, "
            f"got {lc.depletion_interval}"
        )
    if lc.depletion_rate < 0:
        raise ValueError(
            f"lifecycle.depletion_rate must be >= 0, got {lc.depletion_rate}"
        )
    if not (1 <= lc.initial_resource <= 100):
        raise ValueError(
            f"lifecycle.initial_resource must be in [1, 100], "
            f"got {lc.initial_resource}"
        )
    if lc.entry_price < 0:
        raise ValueError("lifecycle.entry_price must be non-negative")
    if lc.reward < 0:
        raise ValueError("lifecycle.reward must be non-negative")
    if lc.liveness_check not in LIVENESS_CHECKS:
        raise ValueError(
            f"lifecycle.liveness_check must be one of {LIVENESS_CHECKS}, "
            f"got '{lc.liveness_check}'"
        )
    if lc.reward <= lc.entry_price:
        warnings.warn(
            f"lifecycle.reward ({lc.reward}) does not exceed "
            f"lifecycle.entry_price ({lc.entry_price}); harvesting is unprofitable.",
            UserWarning,
            stacklevel=2,
        )

    if not config.ledger.admin:
        raise ValueError("ledger.admin must be a non-empty identity")
    if config.ledger.initial_balance < 0:
        raise ValueError(
            f"ledger.initial_balance must be >= 0, "
            f"got {config.ledger.initial_balance}"
        )

    if config.registry.initial_capacity < 1:
        raise ValueError(
            f"registry.initial_capacity must be >= 1, "
            f"got {config.registry.initial_capacity}"
        )

    rec = config.recording
    if rec.interval <= 0:
        raise ValueError(f"recording.interval must be positive, got {rec.interval}")
    if rec.end is not None and rec.end < rec.start:
        raise ValueError(
            f"recording.end ({rec.end}) must be >= recording.start ({rec.start})"
        )


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> GardenConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML.
        overrides: Optional dict of programmatic overrides.

    Returns:
        Validated GardenConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = config_from_dict(config_dict)
    validate_config(config)
    return config


def default_config() -> GardenConfig:
    """Return a GardenConfig with all default values."""
    config = GardenConfig()
    validate_config(config)
    return config
