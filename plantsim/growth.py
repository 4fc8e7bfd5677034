"""Growth model — stage as a step function of plant age.

    elapsed = now − planted_at
    elapsed <  1·D          → SEED
    1·D ≤ elapsed < 2·D     → SPROUT
    2·D ≤ elapsed < 3·D     → GROWING
    elapsed ≥ 3·D           → BLOOMING

Stage depends on (planted_at, now) only. Watering and water level never
move it; the lifecycle layer decides when a computed stage is persisted.
"""

from __future__ import annotations

import numpy as np

from plantsim.types import STAGE_DURATION_MULTIPLES, Stage

_TERMINAL = max(Stage)


def _check_duration(stage_duration: int) -> None:
    if stage_duration <= 0:
        raise ValueError(f"stage_duration must be positive, got {stage_duration}")


def compute_stage(planted_at: int, now: int, stage_duration: int) -> Stage:
    """Stage reached at `now` by a plant planted at `planted_at`.

    A clock reading before `planted_at` maps to SEED.
    """
    _check_duration(stage_duration)
    elapsed = now - planted_at
    if elapsed <= 0:
        return Stage.SEED
    return Stage(min(int(elapsed // stage_duration), int(_TERMINAL)))


def compute_stage_vec(
    planted_at: np.ndarray,
    now: int,
    stage_duration: int,
) -> np.ndarray:
    """Vectorized compute_stage. Returns int8 Stage codes."""
    _check_duration(stage_duration)
    elapsed = np.int64(now) - np.asarray(planted_at, dtype=np.int64)
    steps = np.clip(elapsed, 0, None) // stage_duration
    return np.minimum(steps, int(_TERMINAL)).astype(np.int8)


def time_until_stage(
    planted_at: int,
    now: int,
    stage: Stage,
    stage_duration: int,
) -> int:
    """Seconds from `now` until `stage` is reached (0 if already reached)."""
    _check_duration(stage_duration)
    if stage == Stage.SEED:
        return 0
    reached_at = planted_at + STAGE_DURATION_MULTIPLES[Stage(stage)] * stage_duration
    return max(0, reached_at - now)
