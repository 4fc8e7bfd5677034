"""Scripted garden scenarios.

A scenario is a YAML document with optional config overrides and a list of
timestamped actions:

    config:
      lifecycle: {stage_duration: 60}
    actions:
      - {t: 0,   op: seed,    owner: alice, payment: 10}
      - {t: 60,  op: refresh, id: 1}
      - {t: 180, op: harvest, id: 1, caller: alice}

Actions run in order against a fresh LifecycleManager. Rejected actions
are recorded with the error's class name and the run continues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from plantsim.config import (
    GardenConfig,
    config_from_dict,
    config_to_dict,
    deep_merge,
    default_config,
    validate_config,
)
from plantsim.errors import LifecycleError
from plantsim.events import Event
from plantsim.lifecycle import LifecycleManager
from plantsim.snapshots import HistoryRecorder
from plantsim.types import GardenSnapshot

logger = logging.getLogger(__name__)

# op → required argument names
OPERATIONS: Dict[str, tuple] = {
    'seed':        ('owner', 'payment'),
    'water':       ('id', 'caller'),
    'refresh':     ('id',),
    'refresh_all': (),
    'harvest':     ('id', 'caller'),
    'sweep':       ('caller',),
    'snapshot':    ('id',),
}


@dataclass
class Action:
    t: int
    op: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Scenario:
    actions: List[Action]
    config_overrides: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ActionOutcome:
    t: int
    op: str
    ok: bool
    result: Any = None
    error: Optional[str] = None


@dataclass
class ScenarioResult:
    outcomes: List[ActionOutcome]
    summary: GardenSnapshot
    events: List[Event]
    manager: LifecycleManager
    recorder: Optional[HistoryRecorder] = None

    @property
    def n_failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)


def parse_scenario(data: Dict[str, Any]) -> Scenario:
    """Build a Scenario from a parsed YAML mapping.

    Raises:
        ValueError: Unknown op, missing argument, or decreasing time.
    """
    raw_actions = data.get('actions') or []
    if not isinstance(raw_actions, list):
        raise ValueError("scenario 'actions' must be a list")

    actions = []
    last_t = None
    for i, raw in enumerate(raw_actions):
        if not isinstance(raw, dict) or 't' not in raw or 'op' not in raw:
            raise ValueError(f"actions[{i}] must be a mapping with 't' and 'op'")
        op = raw['op']
        if op not in OPERATIONS:
            raise ValueError(
                f"actions[{i}].op must be one of {sorted(OPERATIONS)}, got '{op}'"
            )
        missing = [a for a in OPERATIONS[op] if a not in raw]
        if missing:
            raise ValueError(f"actions[{i}] ({op}) missing {missing}")
        t = int(raw['t'])
        if last_t is not None and t < last_t:
            raise ValueError(
                f"actions[{i}].t ({t}) is earlier than the previous action ({last_t})"
            )
        last_t = t
        args = {k: v for k, v in raw.items() if k not in ('t', 'op')}
        actions.append(Action(t=t, op=op, args=args))

    overrides = data.get('config') or {}
    if not isinstance(overrides, dict):
        raise ValueError("scenario 'config' must be a mapping")
    return Scenario(actions=actions, config_overrides=overrides)


def load_scenario(path: Union[str, Path]) -> Scenario:
    """Load and validate a scenario YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {path}")
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    return parse_scenario(data)


def _apply(mgr: LifecycleManager, action: Action) -> Any:
    a, t = action.args, action.t
    if action.op == 'seed':
        return mgr.seed(a['owner'], int(a['payment']), t)
    if action.op == 'water':
        return mgr.water(int(a['id']), a['caller'], t)
    if action.op == 'refresh':
        return mgr.refresh(int(a['id']), t)
    if action.op == 'refresh_all':
        return mgr.refresh_all(t)
    if action.op == 'harvest':
        return mgr.harvest(int(a['id']), a['caller'], t)
    if action.op == 'sweep':
        return mgr.sweep(a['caller'])
    return mgr.get_entity(int(a['id']), t)


def run_scenario(
    scenario: Scenario,
    config: Optional[GardenConfig] = None,
    recorder: Optional[HistoryRecorder] = None,
) -> ScenarioResult:
    """Execute a scenario against a fresh manager.

    Args:
        scenario: Parsed scenario.
        config: Base configuration (defaults if None); the scenario's own
            overrides are merged on top.
        recorder: History recorder offered every action time. When None,
            one is built from the merged `recording` config section
            (a no-op unless `recording.enabled`).

    Returns:
        ScenarioResult with one outcome per action.
    """
    base = config if config is not None else default_config()
    if scenario.config_overrides:
        merged = deep_merge(config_to_dict(base), scenario.config_overrides)
        base = config_from_dict(merged)
        validate_config(base)

    if recorder is None:
        recorder = HistoryRecorder.from_config(base.recording)

    mgr = LifecycleManager(base)
    outcomes = []
    for action in scenario.actions:
        try:
            result = _apply(mgr, action)
            outcomes.append(ActionOutcome(action.t, action.op, True, result=result))
        except LifecycleError as exc:
            logger.debug("t=%d %s rejected: %s", action.t, action.op, type(exc).__name__)
            outcomes.append(ActionOutcome(
                action.t, action.op, False, error=type(exc).__name__,
            ))
        if recorder.should_capture(action.t):
            recorder.capture(action.t, mgr.registry, mgr.config.lifecycle)

    end = scenario.actions[-1].t if scenario.actions else 0
    return ScenarioResult(
        outcomes=outcomes,
        summary=mgr.summary(end),
        events=list(mgr.events),
        manager=mgr,
        recorder=recorder,
    )
