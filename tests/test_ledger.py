"""Tests for plantsim.ledger — shared balance, debits and sweeps."""

import pytest

from plantsim.errors import NotAdmin
from plantsim.ledger import Ledger, TransferResult


@pytest.fixture
def ledger() -> Ledger:
    return Ledger(admin="admin")


class TestCredit:
    def test_increases_balance(self, ledger):
        ledger.credit(10)
        ledger.credit(5)
        assert ledger.balance == 15

    def test_negative_amount(self, ledger):
        with pytest.raises(ValueError):
            ledger.credit(-1)

    def test_initial_balance(self):
        assert Ledger("admin", initial_balance=40).balance == 40
        with pytest.raises(ValueError):
            Ledger("admin", initial_balance=-1)


class TestDebit:
    def test_success(self, ledger):
        ledger.credit(20)
        assert ledger.debit("alice", 15) == TransferResult.OK
        assert ledger.balance == 5
        assert ledger.payouts == {"alice": 15}

    def test_insufficient_funds_moves_nothing(self, ledger):
        ledger.credit(10)
        assert ledger.debit("alice", 15) == TransferResult.INSUFFICIENT_FUNDS
        assert ledger.balance == 10
        assert ledger.payouts == {}

    def test_exact_balance(self, ledger):
        ledger.credit(15)
        assert ledger.debit("alice", 15) == TransferResult.OK
        assert ledger.balance == 0

    def test_rejected_moves_nothing(self, ledger):
        ledger.credit(50)
        ledger.block_recipient("mallory")
        assert ledger.debit("mallory", 15) == TransferResult.REJECTED
        assert ledger.balance == 50
        ledger.unblock_recipient("mallory")
        assert ledger.debit("mallory", 15) == TransferResult.OK

    def test_never_negative(self, ledger):
        ledger.credit(7)
        for _ in range(5):
            ledger.debit("alice", 3)
            assert ledger.balance >= 0
        assert ledger.balance == 1


class TestSweep:
    def test_admin_drains(self, ledger):
        ledger.credit(30)
        assert ledger.sweep("admin") == 30
        assert ledger.balance == 0
        assert ledger.total_swept == 30
        assert ledger.payouts["admin"] == 30

    def test_empty_sweep(self, ledger):
        assert ledger.sweep("admin") == 0

    def test_not_admin(self, ledger):
        ledger.credit(30)
        with pytest.raises(NotAdmin):
            ledger.sweep("alice")
        assert ledger.balance == 30


class TestCheckpoint:
    def test_restore(self, ledger):
        ledger.credit(30)
        state = ledger.checkpoint()
        ledger.debit("alice", 10)
        ledger.sweep("admin")
        ledger.restore(state)
        assert ledger.balance == 30
        assert ledger.payouts == {}
        assert ledger.total_swept == 0
