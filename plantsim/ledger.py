"""Ledger — the shared balance behind seeds and harvests.

Stands in for the external value-transfer primitive. The lifecycle layer
only ever talks to it through:
  - credit(amount):             always succeeds, grows the balance
  - debit(recipient, amount):   atomic; full amount moves or nothing does
  - sweep(caller):              administrator drains the whole balance

Debits report failure through TransferResult instead of raising, so the
caller decides how a failed payout aborts its own transaction.

Thread Safety:
    Not thread-safe on its own. LifecycleManager serialises access.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, FrozenSet, Set

from plantsim.errors import NotAdmin

logger = logging.getLogger(__name__)


class TransferResult(IntEnum):
    """Outcome of a debit."""
    OK                 = 0
    INSUFFICIENT_FUNDS = 1
    REJECTED           = 2


@dataclass(frozen=True)
class LedgerState:
    """Checkpoint of everything a transaction may change."""
    balance: int
    payouts: Dict[str, int]
    swept: int


class Ledger:
    """In-memory shared balance with an administrator.

    Example:
        ledger = Ledger(admin="admin")
        ledger.credit(10)
        ledger.debit("alice", 15)    # TransferResult.INSUFFICIENT_FUNDS
        ledger.sweep("admin")        # 10
    """

    def __init__(self, admin: str, initial_balance: int = 0):
        if initial_balance < 0:
            raise ValueError(f"initial_balance must be >= 0, got {initial_balance}")
        self._admin = admin
        self._balance = int(initial_balance)
        self._payouts: Dict[str, int] = defaultdict(int)
        self._blocked: Set[str] = set()
        self._swept = 0

    # ────────────────────────────────────────────────────────────────
    # Read-only
    # ────────────────────────────────────────────────────────────────

    @property
    def admin(self) -> str:
        return self._admin

    @property
    def balance(self) -> int:
        return self._balance

    @property
    def payouts(self) -> Dict[str, int]:
        """Cumulative amount paid out per recipient (sweeps included)."""
        return dict(self._payouts)

    @property
    def total_swept(self) -> int:
        return self._swept

    @property
    def blocked_recipients(self) -> FrozenSet[str]:
        return frozenset(self._blocked)

    # ────────────────────────────────────────────────────────────────
    # Transfers
    # ────────────────────────────────────────────────────────────────

    def credit(self, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"credit amount must be >= 0, got {amount}")
        self._balance += amount
        logger.debug("Ledger credit %d (balance %d)", amount, self._balance)

    def debit(self, recipient: str, amount: int) -> TransferResult:
        """Move `amount` from the shared balance to `recipient`."""
        if amount < 0:
            raise ValueError(f"debit amount must be >= 0, got {amount}")
        if amount > self._balance:
            logger.debug(
                "Ledger debit %d to %s refused: balance %d",
                amount, recipient, self._balance,
            )
            return TransferResult.INSUFFICIENT_FUNDS
        if recipient in self._blocked:
            logger.debug("Ledger debit %d to %s rejected by recipient", amount, recipient)
            return TransferResult.REJECTED
        self._balance -= amount
        self._payouts[recipient] += amount
        logger.debug("Ledger debit %d to %s (balance %d)", amount, recipient, self._balance)
        return TransferResult.OK

    def sweep(self, caller: str) -> int:
        """Drain the whole balance to the administrator.

        Raises:
            NotAdmin: If `caller` is not the administrator.
        """
        if caller != self._admin:
            raise NotAdmin(f"{caller!r} is not the ledger administrator")
        amount = self._balance
        self._balance = 0
        self._payouts[self._admin] += amount
        self._swept += amount
        logger.debug("Ledger swept %d to %s", amount, self._admin)
        return amount

    def block_recipient(self, identity: str) -> None:
        """Make every future debit to `identity` report REJECTED."""
        self._blocked.add(identity)

    def unblock_recipient(self, identity: str) -> None:
        self._blocked.discard(identity)

    # ────────────────────────────────────────────────────────────────
    # Rollback support
    # ────────────────────────────────────────────────────────────────

    def checkpoint(self) -> LedgerState:
        return LedgerState(
            balance=self._balance,
            payouts=dict(self._payouts),
            swept=self._swept,
        )

    def restore(self, state: LedgerState) -> None:
        self._balance = state.balance
        self._payouts = defaultdict(int, state.payouts)
        self._swept = state.swept
