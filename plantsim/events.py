"""Lifecycle notifications.

Notifications are buffered while a transaction runs and published only
when it commits; a rolled-back transaction emits nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Type, TypeVar, Union

from plantsim.types import Stage


@dataclass(frozen=True)
class Created:
    owner: str
    id: int
    t: int


@dataclass(frozen=True)
class Watered:
    id: int
    level: int
    t: int


@dataclass(frozen=True)
class StageAdvanced:
    id: int
    old: Stage
    new: Stage
    t: int


@dataclass(frozen=True)
class Died:
    id: int
    t: int


@dataclass(frozen=True)
class Harvested:
    id: int
    owner: str
    reward: int
    t: int


Event = Union[Created, Watered, StageAdvanced, Died, Harvested]
E = TypeVar('E')


class EventLog:
    """Append-only history of committed notifications."""

    def __init__(self) -> None:
        self._events: List[Event] = []

    def extend(self, events: List[Event]) -> None:
        self._events.extend(events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __getitem__(self, i):
        return self._events[i]

    def of_type(self, cls: Type[E]) -> List[E]:
        return [e for e in self._events if isinstance(e, cls)]

    def for_entity(self, entity_id: int) -> List[Event]:
        return [e for e in self._events if e.id == entity_id]
