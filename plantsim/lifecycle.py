"""Lifecycle manager — transactional orchestration of a garden.

Every public mutation runs as one serialized, all-or-nothing transaction:
  1. read the entity
  2. recompute water level (water.py) and stage (growth.py) at `now`
  3. persist the refreshed state
  4. apply the operation's own effect
  5. move value through the Ledger, if the operation pays or charges

A failing precondition anywhere rolls back the registry journal, restores
the ledger checkpoint and discards buffered notifications, then re-raises.
This includes interrupts such as KeyboardInterrupt. Committed notifications
are delivered to listeners in commit order while the lock is held; a
listener that raises is logged and skipped.

Liveness gate (water / harvest):
  "persisted"   — trust the stored alive flag. Death is only stored when a
                  refresh runs, so an entity whose computed level already
                  hit 0 can still be watered back, or harvested in the same
                  call that records its death.
  "recomputed"  — recompute the level at `now` first; 0 means NotAlive.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

import numpy as np

from plantsim.config import GardenConfig, default_config
from plantsim.errors import (
    EntityNotFound,
    InsufficientContractBalance,
    InsufficientPayment,
    NotAlive,
    NotOwner,
    StageNotReady,
    TransferRejected,
)
from plantsim.events import (
    Created,
    Died,
    Event,
    EventLog,
    Harvested,
    StageAdvanced,
    Watered,
)
from plantsim.growth import compute_stage, compute_stage_vec
from plantsim.ledger import Ledger, TransferResult
from plantsim.registry import Registry
from plantsim.types import EntitySnapshot, GardenSnapshot, Stage
from plantsim.water import compute_resource, compute_resource_vec

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


class LifecycleManager:
    """Seeds, waters, refreshes and harvests plants against one ledger.

    Example:
        mgr = LifecycleManager()
        pid = mgr.seed("alice", payment=10, now=0)
        mgr.water(pid, "alice", now=100)
        mgr.harvest(pid, "alice", now=200)    # → reward
    """

    def __init__(
        self,
        config: Optional[GardenConfig] = None,
        registry: Optional[Registry] = None,
        ledger: Optional[Ledger] = None,
    ):
        self.config = config if config is not None else default_config()
        self.registry = registry if registry is not None else Registry(
            self.config.registry.initial_capacity
        )
        self.ledger = ledger if ledger is not None else Ledger(
            self.config.ledger.admin, self.config.ledger.initial_balance
        )
        self.events = EventLog()
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()
        self._pending: Optional[List[Event]] = None

    # ────────────────────────────────────────────────────────────────
    # Transaction plumbing
    # ────────────────────────────────────────────────────────────────

    @contextmanager
    def _transaction(self, op: str) -> Iterator[None]:
        with self._lock:
            if self._pending is not None:
                raise RuntimeError(f"{op} called inside an open transaction")
            self.registry.begin()
            checkpoint = self.ledger.checkpoint()
            self._pending = []
            try:
                yield
            except BaseException as exc:
                self.registry.rollback()
                self.ledger.restore(checkpoint)
                self._pending = None
                logger.debug("%s rolled back: %s: %s", op, type(exc).__name__, exc)
                raise
            committed = self._pending
            self._pending = None
            self.registry.commit()
            self.events.extend(committed)
            # Delivered under the lock so listeners see commit order
            for event in committed:
                logger.info("%s", event)
                self._notify(event)

    def _notify(self, event: Event) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # The transaction is already committed; never surface this
                logger.exception("listener %r failed on %s", listener, event)

    def _emit(self, event: Event) -> None:
        self._pending.append(event)

    def subscribe(self, listener: Listener) -> None:
        """Deliver every committed notification to `listener`, in commit order.

        Listeners run after the commit, while the manager lock is still held.
        An exception from a listener is logged and does not reach the caller.
        """
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    # ────────────────────────────────────────────────────────────────
    # Helpers
    # ────────────────────────────────────────────────────────────────

    def _live_level(self, rec: np.void, now: int) -> int:
        lc = self.config.lifecycle
        return compute_resource(
            int(rec['resource_base']),
            int(rec['last_refreshed_at']),
            now,
            lc.depletion_interval,
            lc.depletion_rate,
        )

    def _active_record(self, entity_id: int) -> np.void:
        rec = self.registry.record(entity_id)
        if not rec['active']:
            raise EntityNotFound(f"Entity {entity_id} has been harvested")
        return rec

    def _check_owner(self, entity_id: int, caller: str) -> str:
        owner = self.registry.owner_of(entity_id)
        if caller != owner:
            raise NotOwner(f"{caller!r} does not own entity {entity_id}")
        return owner

    def _check_alive(self, entity_id: int, rec: np.void, now: int) -> None:
        if not rec['alive']:
            raise NotAlive(f"Entity {entity_id} is dead")
        if (self.config.lifecycle.liveness_check == "recomputed"
                and self._live_level(rec, now) == 0):
            raise NotAlive(f"Entity {entity_id} has run out of water")

    def _refresh(self, entity_id: int, now: int) -> bool:
        """Recompute and persist water level and stage. True if anything changed."""
        rec = self.registry.record(entity_id)
        level = self._live_level(rec, now)

        if rec['alive'] and level == 0:
            self.registry.update(
                entity_id, alive=False, resource_level=0, resource_base=0,
            )
            self._emit(Died(entity_id, now))
            return True

        changed = level != int(rec['resource_level'])
        updates = {'resource_level': level}
        if rec['alive']:
            old = Stage(int(rec['stage']))
            new = max(old, compute_stage(
                int(rec['planted_at']), now, self.config.lifecycle.stage_duration,
            ))
            if new != old:
                updates['stage'] = new
                self._emit(StageAdvanced(entity_id, old, new, now))
                changed = True
        self.registry.update(entity_id, **updates)
        return changed

    # ────────────────────────────────────────────────────────────────
    # Public operations
    # ────────────────────────────────────────────────────────────────

    def seed(self, owner: str, payment: int, now: int) -> int:
        """Plant a new seed for `owner`.

        Raises:
            InsufficientPayment: If `payment` is below the entry price.
        """
        lc = self.config.lifecycle
        with self._transaction("seed"):
            if payment < lc.entry_price:
                raise InsufficientPayment(
                    f"payment {payment} below entry price {lc.entry_price}"
                )
            entity_id = self.registry.create(owner, now, lc.initial_resource)
            self.ledger.credit(lc.entry_price)
            self._emit(Created(owner, entity_id, now))
        return entity_id

    def refresh(self, entity_id: int, now: int) -> bool:
        """Bring one entity's stored water level and stage up to `now`.

        Idempotent for a fixed `now`. Returns True if the stored state changed.

        Raises:
            EntityNotFound: Unknown or harvested id.
        """
        with self._transaction("refresh"):
            self._active_record(entity_id)
            changed = self._refresh(entity_id, now)
        return changed

    def water(self, entity_id: int, caller: str, now: int) -> None:
        """Refill the entity's water and restart its depletion clock.

        Raises:
            EntityNotFound: Unknown or harvested id.
            NotOwner: `caller` does not own the entity.
            NotAlive: The entity fails the liveness gate.
        """
        level = self.config.lifecycle.initial_resource
        with self._transaction("water"):
            rec = self._active_record(entity_id)
            self._check_owner(entity_id, caller)
            self._check_alive(entity_id, rec, now)
            self.registry.update(
                entity_id,
                resource_level=level,
                resource_base=level,
                last_refreshed_at=now,
            )
            self._emit(Watered(entity_id, level, now))
            self._refresh(entity_id, now)

    def harvest(self, entity_id: int, caller: str, now: int) -> int:
        """Harvest a blooming plant and pay the reward to `caller`.

        The liveness gate runs before the refresh; a refresh that records
        death does not by itself abort the harvest.

        Returns:
            The reward paid.

        Raises:
            EntityNotFound: Unknown or already harvested id.
            NotOwner: `caller` does not own the entity.
            NotAlive: The entity fails the liveness gate.
            StageNotReady: Not BLOOMING after the refresh.
            InsufficientContractBalance: Ledger cannot cover the reward.
            TransferRejected: The recipient refused the payout.
        """
        reward = self.config.lifecycle.reward
        with self._transaction("harvest"):
            rec = self._active_record(entity_id)
            owner = self._check_owner(entity_id, caller)
            self._check_alive(entity_id, rec, now)
            self._refresh(entity_id, now)

            stage = Stage(int(self.registry.record(entity_id)['stage']))
            if stage != Stage.BLOOMING:
                raise StageNotReady(
                    f"Entity {entity_id} is {stage.name}, not BLOOMING"
                )
            self.registry.update(entity_id, active=False)
            self._emit(Harvested(entity_id, owner, reward, now))

            result = self.ledger.debit(caller, reward)
            if result == TransferResult.INSUFFICIENT_FUNDS:
                raise InsufficientContractBalance(
                    f"balance {self.ledger.balance} cannot cover reward {reward}"
                )
            if result == TransferResult.REJECTED:
                raise TransferRejected(f"{caller!r} rejected reward transfer")
        return reward

    def sweep(self, caller: str) -> int:
        """Drain the ledger balance to the administrator.

        Raises:
            NotAdmin: `caller` is not the administrator.
        """
        with self._transaction("sweep"):
            amount = self.ledger.sweep(caller)
        return amount

    def refresh_all(self, now: int) -> int:
        """Refresh every active entity in one transaction.

        Same outcome and notifications (in id order) as calling refresh()
        on each active id at `now`.

        Returns:
            Number of entities whose stored state changed.
        """
        lc = self.config.lifecycle
        with self._transaction("refresh_all"):
            table = self.registry.view()
            active = table['active']
            ids = table['id'][active]
            if ids.size == 0:
                return 0
            alive = table['alive'][active]
            old_level = table['resource_level'][active].astype(np.int64)
            old_stage = table['stage'][active]

            level = compute_resource_vec(
                table['resource_base'][active],
                table['last_refreshed_at'][active],
                now, lc.depletion_interval, lc.depletion_rate,
            )
            dying = alive & (level == 0)
            growing = alive & ~dying
            computed = compute_stage_vec(table['planted_at'][active], now, lc.stage_duration)
            stage = np.where(growing, np.maximum(old_stage, computed), old_stage).astype(np.int8)
            advanced = stage != old_stage
            changed = dying | advanced | (level != old_level)

            for i in np.flatnonzero(dying | advanced):
                if dying[i]:
                    self._emit(Died(int(ids[i]), now))
                else:
                    self._emit(StageAdvanced(
                        int(ids[i]), Stage(int(old_stage[i])), Stage(int(stage[i])), now,
                    ))

            touched = ids[changed]
            self.registry.update_column(touched, 'resource_level', level[changed])
            self.registry.update_column(touched, 'stage', stage[changed])
            self.registry.update_column(touched, 'alive', alive[changed] & ~dying[changed])
            base = table['resource_base'][active]
            self.registry.update_column(
                touched, 'resource_base', np.where(dying, 0, base)[changed],
            )
        return int(changed.sum())

    # ────────────────────────────────────────────────────────────────
    # Queries
    # ────────────────────────────────────────────────────────────────

    @property
    def balance(self) -> int:
        return self.ledger.balance

    def get_entity(self, entity_id: int, now: int) -> EntitySnapshot:
        """Read-only snapshot with the water level computed live at `now`.

        Harvested entities are still returned. Nothing is persisted.

        Raises:
            EntityNotFound: Unknown id.
        """
        with self._lock:
            rec = self.registry.record(entity_id)
            return self.registry.snapshot(
                entity_id, resource_level=self._live_level(rec, now),
            )

    def get_owner_entities(self, owner: str) -> List[int]:
        """All ids ever created by `owner`, oldest first."""
        with self._lock:
            return self.registry.owner_entities(owner)

    def summary(self, now: int) -> GardenSnapshot:
        """Aggregate view of the garden with live water levels."""
        lc = self.config.lifecycle
        with self._lock:
            table = self.registry.view()
            living = table['active'] & table['alive']
            level = compute_resource_vec(
                table['resource_base'][living],
                table['last_refreshed_at'][living],
                now, lc.depletion_interval, lc.depletion_rate,
            )
            counts = np.bincount(table['stage'][living], minlength=len(Stage))
            return GardenSnapshot(
                now=now,
                n_entities=len(table),
                n_active=int(table['active'].sum()),
                n_alive=int(living.sum()),
                stage_counts={s: int(counts[s]) for s in Stage},
                mean_resource=float(level.mean()) if level.size else 0.0,
                balance=self.ledger.balance,
            )
