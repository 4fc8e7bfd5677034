"""Water model — deterministic resource decay.

Implements:
  - Stepwise depletion: the level drops by `depletion_rate` once per full
    `depletion_interval` elapsed since the last reset
  - Saturating subtraction: the level never goes below MIN_RESOURCE
  - Clock guard: a `now` at or before the last reset leaves the level unchanged
  - Vectorised form over entity arrays for garden-wide refreshes

    W(t) = max(0, W₀ − ⌊(t − t₀) / Δ⌋ × r)     for t > t₀
    W(t) = W₀                                   for t ≤ t₀

All functions are pure: no wall clock, no state, same inputs → same output.
"""

from __future__ import annotations

import numpy as np

from plantsim.types import MIN_RESOURCE


def _check_schedule(depletion_interval: int, depletion_rate: int) -> None:
    if depletion_interval <= 0:
        raise ValueError(
            f"depletion_interval must be positive, got {depletion_interval}"
        )
    if depletion_rate < 0:
        raise ValueError(
            f"depletion_rate must be non-negative, got {depletion_rate}"
        )


# ═══════════════════════════════════════════════════════════════════════
# SCALAR
# ═══════════════════════════════════════════════════════════════════════

def compute_resource(
    resource_level: int,
    last_refreshed_at: int,
    now: int,
    depletion_interval: int,
    depletion_rate: int,
) -> int:
    """Water level at `now` given the level at the last reset.

    Args:
        resource_level: Level at `last_refreshed_at` (0..100).
        last_refreshed_at: Timestamp of the last reset (s).
        now: Current timestamp (s).
        depletion_interval: Seconds per depletion step (> 0).
        depletion_rate: Units lost per step (≥ 0).

    Returns:
        Level at `now`, in [0, resource_level].

    Raises:
        ValueError: If the depletion schedule is invalid.
    """
    _check_schedule(depletion_interval, depletion_rate)
    if now <= last_refreshed_at:
        return int(resource_level)
    intervals = (now - last_refreshed_at) // depletion_interval
    lost = intervals * depletion_rate
    return int(max(MIN_RESOURCE, resource_level - lost))


def time_until_empty(
    resource_level: int,
    depletion_interval: int,
    depletion_rate: int,
) -> int:
    """Seconds after a reset at which the level first reaches 0.

    ⌈W₀ / r⌉ × Δ. An already-empty level returns 0; a zero depletion rate
    never empties and raises.
    """
    _check_schedule(depletion_interval, depletion_rate)
    if resource_level <= MIN_RESOURCE:
        return 0
    if depletion_rate == 0:
        raise ValueError("depletion_rate of 0 never empties the resource")
    steps = -(-int(resource_level) // depletion_rate)
    return steps * depletion_interval


# ═══════════════════════════════════════════════════════════════════════
# VECTORISED
# ═══════════════════════════════════════════════════════════════════════

def compute_resource_vec(
    resource_level: np.ndarray,
    last_refreshed_at: np.ndarray,
    now: int,
    depletion_interval: int,
    depletion_rate: int,
) -> np.ndarray:
    """Vectorized compute_resource over arrays of entities.

    Returns an int64 array with the same shape as `resource_level`.
    """
    _check_schedule(depletion_interval, depletion_rate)
    levels = np.asarray(resource_level, dtype=np.int64)
    last = np.asarray(last_refreshed_at, dtype=np.int64)
    elapsed = np.int64(now) - last
    intervals = np.where(elapsed > 0, elapsed // depletion_interval, 0)
    decayed = np.maximum(MIN_RESOURCE, levels - intervals * depletion_rate)
    return np.where(elapsed > 0, decayed, levels)
