"""Optional history recording of the entity table.

Records (id, stage, live water level, alive, active) for every entity at
configurable intervals of simulated time, so a garden run can be replayed
or plotted afterwards.

Usage:
    recorder = HistoryRecorder(enabled=True, interval=60)

    # In the driving loop:
    recorder.capture(now, manager.registry, manager.config.lifecycle)

    # Afterwards:
    recorder.save("history.npz")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from plantsim.config import LifecycleSection, RecordingSection
from plantsim.registry import Registry
from plantsim.water import compute_resource_vec


@dataclass
class TableSnapshot:
    """One capture of the whole entity table at time `now`."""
    now: int
    # Parallel arrays, one element per entity created so far
    ids: np.ndarray             # int64
    stage: np.ndarray           # int8
    resource_level: np.ndarray  # int16, computed live at `now`
    alive: np.ndarray           # bool
    active: np.ndarray          # bool

    @property
    def n_entities(self) -> int:
        return len(self.ids)


class HistoryRecorder:
    """Records periodic snapshots of the entity table.

    When enabled=False, capture() is a no-op.
    """

    def __init__(
        self,
        enabled: bool = False,
        interval: int = 60,
        start: int = 0,
        end: Optional[int] = None,
    ):
        """
        Args:
            enabled: Master switch. False = no-ops everywhere.
            interval: Capture when `now` is a multiple of this many seconds.
            start: First simulated time to record.
            end: Last simulated time to record (None = unbounded).
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.enabled = enabled
        self.interval = interval
        self.start = start
        self.end = end
        self.snapshots: Dict[int, TableSnapshot] = {}

    @classmethod
    def from_config(cls, section: RecordingSection) -> 'HistoryRecorder':
        return cls(
            enabled=section.enabled,
            interval=section.interval,
            start=section.start,
            end=section.end,
        )

    def should_capture(self, now: int) -> bool:
        if not self.enabled:
            return False
        if now < self.start or (self.end is not None and now > self.end):
            return False
        return (now - self.start) % self.interval == 0

    def capture(
        self,
        now: int,
        registry: Registry,
        lifecycle: LifecycleSection,
    ) -> None:
        """Store a snapshot of `registry` at `now` (overwrites any earlier one)."""
        if not self.enabled:
            return
        table = registry.view()
        level = compute_resource_vec(
            table['resource_base'],
            table['last_refreshed_at'],
            now,
            lifecycle.depletion_interval,
            lifecycle.depletion_rate,
        )
        self.snapshots[now] = TableSnapshot(
            now=now,
            ids=table['id'].copy(),
            stage=table['stage'].copy(),
            resource_level=level.astype(np.int16),
            alive=table['alive'].copy(),
            active=table['active'].copy(),
        )

    def times(self) -> List[int]:
        """Sorted list of captured times."""
        return sorted(self.snapshots)

    def stage_trajectory(self, entity_id: int) -> Tuple[np.ndarray, np.ndarray]:
        """(times, stages) for one entity across captures where it existed."""
        times, stages = [], []
        for t in self.times():
            snap = self.snapshots[t]
            if entity_id <= snap.n_entities:
                times.append(t)
                stages.append(snap.stage[entity_id - 1])
        return np.array(times, dtype=np.int64), np.array(stages, dtype=np.int8)

    def save(self, path: Union[str, Path]) -> None:
        """Save all snapshots to a compressed npz file.

        Format: arrays named t{now}_{field}, plus meta_times.
        """
        if not self.snapshots:
            return
        arrays = {}
        for t, snap in sorted(self.snapshots.items()):
            prefix = f"t{t}"
            arrays[f"{prefix}_id"] = snap.ids
            arrays[f"{prefix}_stage"] = snap.stage
            arrays[f"{prefix}_level"] = snap.resource_level
            arrays[f"{prefix}_alive"] = snap.alive
            arrays[f"{prefix}_active"] = snap.active
        arrays['meta_times'] = np.array(self.times(), dtype=np.int64)

        Path(path).parent.mkdir(parents=True, exist_ok=True)
        np.savez_compressed(path, **arrays)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'HistoryRecorder':
        """Load snapshots from an npz file written by save()."""
        recorder = cls(enabled=False)  # Don't capture, just hold data
        with np.load(path) as data:
            for t in data['meta_times']:
                t = int(t)
                prefix = f"t{t}"
                recorder.snapshots[t] = TableSnapshot(
                    now=t,
                    ids=data[f"{prefix}_id"],
                    stage=data[f"{prefix}_stage"],
                    resource_level=data[f"{prefix}_level"],
                    alive=data[f"{prefix}_alive"],
                    active=data[f"{prefix}_active"],
                )
        return recorder
