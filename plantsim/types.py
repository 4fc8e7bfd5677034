"""Core data types for PlantSim.

This module is the SINGLE SOURCE OF TRUTH for:
  - ENTITY_DTYPE: NumPy structured array dtype for plant entities
  - Stage enumeration
  - Resource constants (initial / maximum water level)
  - Read-only views handed out of the registry (EntitySnapshot, GardenSnapshot)

All modules import these types from here. No other module defines entity fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Stage(IntEnum):
    """Growth stages of a plant.

    Transition criteria (elapsed time since planting, D = stage_duration):
      SEED     →  SPROUT:    elapsed ≥ 1·D
      SPROUT   →  GROWING:   elapsed ≥ 2·D
      GROWING  →  BLOOMING:  elapsed ≥ 3·D
    """
    SEED     = 0
    SPROUT   = 1
    GROWING  = 2
    BLOOMING = 3   # Terminal; harvestable


# ═══════════════════════════════════════════════════════════════════════
# RESOURCE CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

MAX_RESOURCE = 100       # Upper bound of the water level
MIN_RESOURCE = 0         # Saturation floor; reaching it kills the plant

# Stage reached after n whole stage durations; one-directional only
STAGE_DURATION_MULTIPLES = {
    Stage.SPROUT:   1,
    Stage.GROWING:  2,
    Stage.BLOOMING: 3,
}


# ═══════════════════════════════════════════════════════════════════════
# ENTITY_DTYPE: canonical structured array for plant entities
# ═══════════════════════════════════════════════════════════════════════

ENTITY_DTYPE = np.dtype([
    # --- Identity (REGISTRY writes, immutable afterwards) ---
    ('id',                 np.int64),   # 1-based; row index is id - 1
    ('owner',              np.int32),   # index into Registry owner table
    ('planted_at',         np.int64),   # creation timestamp (s)

    # --- Lifecycle (LIFECYCLE writes) ---
    ('stage',              np.int8),    # Stage enum (0=SEED..3=BLOOMING)
    ('last_refreshed_at',  np.int64),   # timestamp of last water reset (s)
    ('resource_level',     np.int16),   # water level as of last persisted refresh
    ('resource_base',      np.int16),   # water level at last_refreshed_at
                                        #   decay is computed from this value

    # --- Administrative ---
    ('alive',              np.bool_),   # False once death is persisted
    ('active',             np.bool_),   # False once harvested
])


def allocate_entities(max_n: int) -> np.ndarray:
    """Allocate a zeroed entity array.

    Args:
        max_n: Maximum number of entities (array capacity).

    Returns:
        Zeroed structured array of shape (max_n,) with ENTITY_DTYPE.
    """
    return np.zeros(max_n, dtype=ENTITY_DTYPE)


# ═══════════════════════════════════════════════════════════════════════
# READ-ONLY VIEWS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EntitySnapshot:
    """Python-typed copy of one entity row, detached from the arena."""
    id: int
    owner: str
    stage: Stage
    planted_at: int
    last_refreshed_at: int
    resource_level: int
    alive: bool
    active: bool


@dataclass
class GardenSnapshot:
    """Aggregate summary of the whole garden at time `now`."""
    now: int
    n_entities: int
    n_active: int
    n_alive: int             # active and alive
    stage_counts: Dict[Stage, int] = field(default_factory=dict)
    mean_resource: float = 0.0
    balance: int = 0
