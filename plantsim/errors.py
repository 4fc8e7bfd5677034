"""Error taxonomy for lifecycle transactions.

Every precondition failure raises one of these; the manager rolls the whole
transaction back before the exception reaches the caller.
"""


class LifecycleError(Exception):
    """Base class for all rejected lifecycle operations."""


class InsufficientPayment(LifecycleError):
    """Seed payment below the entry price."""


class EntityNotFound(LifecycleError):
    """Unknown id, or an entity that has been harvested."""


class NotOwner(LifecycleError):
    """Caller is not the entity's owner."""


class NotAlive(LifecycleError):
    """Entity failed the liveness gate."""


class StageNotReady(LifecycleError):
    """Harvest attempted before BLOOMING."""


class InsufficientContractBalance(LifecycleError):
    """Ledger balance cannot cover the reward."""


class TransferRejected(LifecycleError):
    """Recipient refused the reward transfer."""


class NotAdmin(LifecycleError):
    """Caller is not the configured administrator."""
