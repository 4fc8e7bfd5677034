"""Entity registry — arena + owner index.

The registry exclusively owns entity records:
  - A structured array (ENTITY_DTYPE) indexed by id − 1, grown by doubling
  - An owner table mapping identities to compact int32 indices
  - An append-only owner → [id, ...] index (never pruned)

Records are never physically removed; harvesting only clears `active`.

Transactions: between begin() and commit()/rollback() every first write
to a row saves the row's prior contents, and every append to the owner
index is noted, so rollback() restores the table exactly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np

from plantsim.errors import EntityNotFound
from plantsim.types import (
    ENTITY_DTYPE,
    EntitySnapshot,
    Stage,
    allocate_entities,
)

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = {'id', 'owner', 'planted_at'}


@dataclass
class _Journal:
    """Undo information for one open transaction."""
    count: int
    n_owners: int
    saved_rows: Dict[int, np.void] = field(default_factory=dict)
    owner_appends: List[str] = field(default_factory=list)


class Registry:
    """Authoritative entity table plus per-owner index.

    Example:
        registry = Registry()
        pid = registry.create("alice", now=0, resource=100)
        registry.update(pid, stage=Stage.SPROUT)
        registry.owner_entities("alice")   # [1]
    """

    def __init__(self, initial_capacity: int = 64):
        if initial_capacity < 1:
            raise ValueError(
                f"initial_capacity must be >= 1, got {initial_capacity}"
            )
        self._table = allocate_entities(initial_capacity)
        self._count = 0
        self._owners: List[str] = []
        self._owner_codes: Dict[str, int] = {}
        self._owner_index: Dict[str, List[int]] = {}
        self._journal: Optional[_Journal] = None

    # ────────────────────────────────────────────────────────────────
    # Size / lookup
    # ────────────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return len(self._table)

    @property
    def next_id(self) -> int:
        """Id the next create() will assign."""
        return self._count + 1

    def exists(self, entity_id: int) -> bool:
        return 1 <= entity_id <= self._count

    def _row(self, entity_id: int) -> int:
        if not self.exists(entity_id):
            raise EntityNotFound(f"No entity with id {entity_id}")
        return entity_id - 1

    def record(self, entity_id: int) -> np.void:
        """Copy of the entity's row."""
        return self._table[self._row(entity_id)].copy()

    def owner_of(self, entity_id: int) -> str:
        return self._owners[int(self._table['owner'][self._row(entity_id)])]

    def owner_entities(self, owner: str) -> List[int]:
        """Every id ever created by `owner`, in creation order."""
        return list(self._owner_index.get(owner, ()))

    def owners(self) -> List[str]:
        return list(self._owners)

    def view(self) -> np.ndarray:
        """Read-only view of the populated part of the table."""
        v = self._table[:self._count].view()
        v.flags.writeable = False
        return v

    def snapshot(
        self,
        entity_id: int,
        resource_level: Optional[int] = None,
    ) -> EntitySnapshot:
        """Python-typed copy of one entity.

        Args:
            entity_id: Entity to copy.
            resource_level: Optional level to report instead of the
                persisted one (e.g. a live-computed value).
        """
        rec = self.record(entity_id)
        level = int(rec['resource_level']) if resource_level is None else int(resource_level)
        return EntitySnapshot(
            id=int(rec['id']),
            owner=self._owners[int(rec['owner'])],
            stage=Stage(int(rec['stage'])),
            planted_at=int(rec['planted_at']),
            last_refreshed_at=int(rec['last_refreshed_at']),
            resource_level=level,
            alive=bool(rec['alive']),
            active=bool(rec['active']),
        )

    # ────────────────────────────────────────────────────────────────
    # Mutation
    # ────────────────────────────────────────────────────────────────

    def _grow(self) -> None:
        bigger = allocate_entities(2 * len(self._table))
        bigger[:self._count] = self._table[:self._count]
        self._table = bigger
        logger.debug("Registry grown to capacity %d", len(bigger))

    def _owner_code(self, owner: str) -> int:
        code = self._owner_codes.get(owner)
        if code is None:
            code = len(self._owners)
            self._owners.append(owner)
            self._owner_codes[owner] = code
            self._owner_index[owner] = []
        return code

    def create(self, owner: str, now: int, resource: int) -> int:
        """Allocate a new SEED entity and index it under `owner`.

        Returns:
            The new entity id (1-based, never reused).
        """
        if self._count == len(self._table):
            self._grow()
        entity_id = self._count + 1
        row = self._count
        t = self._table
        t['id'][row] = entity_id
        t['owner'][row] = self._owner_code(owner)
        t['planted_at'][row] = now
        t['stage'][row] = Stage.SEED
        t['last_refreshed_at'][row] = now
        t['resource_level'][row] = resource
        t['resource_base'][row] = resource
        t['alive'][row] = True
        t['active'][row] = True
        self._count += 1

        self._owner_index[owner].append(entity_id)
        if self._journal is not None:
            self._journal.owner_appends.append(owner)
        return entity_id

    def _save_row(self, row: int) -> None:
        j = self._journal
        if j is not None and row < j.count and row not in j.saved_rows:
            j.saved_rows[row] = self._table[row].copy()

    def update(self, entity_id: int, **fields) -> None:
        """Write one or more mutable fields of an entity."""
        row = self._row(entity_id)
        bad = set(fields) & _IMMUTABLE_FIELDS
        if bad:
            raise ValueError(f"Fields {sorted(bad)} are immutable")
        self._save_row(row)
        for name, value in fields.items():
            self._table[name][row] = value

    def update_column(
        self,
        entity_ids: Iterable[int],
        name: str,
        values: np.ndarray,
    ) -> None:
        """Write one field for many entities at once."""
        if name in _IMMUTABLE_FIELDS:
            raise ValueError(f"Field '{name}' is immutable")
        rows = np.asarray(list(entity_ids), dtype=np.int64) - 1
        if rows.size == 0:
            return
        if rows.min() < 0 or rows.max() >= self._count:
            raise EntityNotFound("update_column received an unknown id")
        for row in rows:
            self._save_row(int(row))
        self._table[name][rows] = values

    # ────────────────────────────────────────────────────────────────
    # Transactions
    # ────────────────────────────────────────────────────────────────

    @property
    def in_transaction(self) -> bool:
        return self._journal is not None

    def begin(self) -> None:
        if self._journal is not None:
            raise RuntimeError("Registry transaction already open")
        self._journal = _Journal(count=self._count, n_owners=len(self._owners))

    def commit(self) -> None:
        if self._journal is None:
            raise RuntimeError("No registry transaction open")
        self._journal = None

    def rollback(self) -> None:
        """Restore the table, owner table and index as of begin()."""
        j = self._journal
        if j is None:
            raise RuntimeError("No registry transaction open")
        for row, saved in j.saved_rows.items():
            self._table[row] = saved
        self._table[j.count:self._count] = np.zeros(
            self._count - j.count, dtype=ENTITY_DTYPE
        )
        self._count = j.count
        for owner in reversed(j.owner_appends):
            self._owner_index[owner].pop()
        for owner in self._owners[j.n_owners:]:
            del self._owner_codes[owner]
            del self._owner_index[owner]
        del self._owners[j.n_owners:]
        self._journal = None
