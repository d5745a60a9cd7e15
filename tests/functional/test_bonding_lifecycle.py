"""
test_bonding_lifecycle.py - End-to-end bonding scenarios

Scenarios:
- Reference scenario: list, deposit, half redemption, full redemption
- Top-up mid-vesting resets the window for the combined balance
- Several depositors share one entry's inventory
- Inventory exhaustion and re-listing
- Zero vesting term positions never vest
"""

import pytest

from depository import BondingEngine, NotBondable, SYSTEM_WALLET

from tests.conftest import (
    DEPOSITORY, REWARD, TREASURY, CUSTODY, BENEFICIARY, ADMIN,
    create_bonding_ledger,
)


def _engine(term=1000, prices=(100,), supplies=(10,), entries=("ITEM_1",)):
    ledger = create_bonding_ledger()
    engine = BondingEngine(ledger, DEPOSITORY)
    engine.initialize(ADMIN, term)
    engine.set_terms(ADMIN, list(entries), list(prices), list(supplies))
    return ledger, engine


class TestReferenceScenario:
    """price 100, supply 10, term 1000, deposit 5 at block 0."""

    def test_full_lifecycle(self):
        ledger, engine = _engine()

        receipt = engine.deposit("ITEM_1", 5, "alice")
        assert (receipt.payout, receipt.fee, receipt.unlock_block) == (484, 16, 1000)
        assert engine.query("ITEM_1") == (True, 5)
        assert ledger.get_balance(BENEFICIARY, REWARD) == 16
        assert ledger.get_balance(CUSTODY, "ITEM_1") == 5
        assert ledger.get_balance(TREASURY, REWARD) == 1_000_000 - 500

        ledger.advance_block(500)
        half = engine.redeem("alice")
        assert (half.released, half.remaining) == (242, 242)
        position = engine.position("alice")
        assert (position.vesting_window, position.last_settled_at) == (500, 500)

        ledger.advance_block(1000)
        rest = engine.redeem("alice")
        assert (rest.released, rest.remaining) == (242, 0)
        assert engine.position("alice") is None

        assert ledger.get_balance("alice", REWARD) == 484
        assert ledger.get_balance(CUSTODY, REWARD) == 0
        assert engine.totals() == {'total_principal_bonded': 5, 'total_payout_given': 484}
        assert [e.action for e in engine.events] == [
            "entry_listed", "bond_created", "bond_redeemed", "bond_redeemed",
        ]

    def test_late_redeem_pays_everything_once(self):
        ledger, engine = _engine()
        engine.deposit("ITEM_1", 5, "alice")
        ledger.advance_block(10_000)
        assert engine.redeem("alice").released == 484
        assert engine.redeem("alice").released == 0
        assert ledger.get_balance("alice", REWARD) == 484


class TestTopUp:
    """A second deposit restarts the term for the combined outstanding payout."""

    def test_top_up_mid_vesting(self):
        ledger, engine = _engine()
        engine.deposit("ITEM_1", 5, "alice")
        ledger.advance_block(500)
        engine.redeem("alice")                      # 242 out, 242 left

        ledger.advance_block(600)
        receipt = engine.deposit("ITEM_1", 1, "alice")
        assert receipt.payout == 97
        assert receipt.unlock_block == 1600
        position = engine.position("alice")
        assert position.outstanding_payout == 242 + 97
        assert position.vesting_window == 1000

        ledger.advance_block(1100)
        assert engine.redeem("alice").released == (242 + 97) * 5000 // 10_000

        ledger.advance_block(1600)
        engine.redeem("alice")
        assert ledger.get_balance("alice", REWARD) == 484 + 97


class TestSharedInventory:
    """Depositors draw from one entry's remaining supply."""

    def test_exhaustion(self):
        ledger, engine = _engine(supplies=(10,))
        engine.deposit("ITEM_1", 4, "alice")
        engine.deposit("ITEM_1", 6, "bob")
        assert engine.query("ITEM_1") == (False, 0)
        assert engine.list_bondable() == ([], [])
        with pytest.raises(NotBondable):
            engine.deposit("ITEM_1", 1, "carol")

        engine.set_terms(ADMIN, ["ITEM_1"], [100], [3])
        assert engine.query("ITEM_1") == (True, 3)
        engine.deposit("ITEM_1", 3, "carol")
        assert engine.totals()['total_principal_bonded'] == 13

    def test_positions_are_independent(self):
        ledger, engine = _engine(entries=("ITEM_1", "ITEM_2"), prices=(100, 40), supplies=(10, 10))
        engine.deposit("ITEM_1", 2, "alice")
        ledger.advance_block(250)
        engine.deposit("ITEM_2", 5, "bob")
        ledger.advance_block(1000)
        alice = engine.redeem("alice")
        bob = engine.redeem("bob")
        assert alice.remaining == 0
        assert bob.remaining > 0
        assert ledger.get_balance("alice", REWARD) == 200 - 200 * 33_300 // 1_000_000


class TestZeroTerm:
    """A zero vesting term creates positions that never vest."""

    def test_never_vests(self):
        ledger, engine = _engine(term=0)
        receipt = engine.deposit("ITEM_1", 5, "alice")
        assert receipt.unlock_block == 0
        ledger.advance_block(1_000_000)
        assert engine.pending_payout("alice") == 0
        assert engine.redeem("alice").released == 0
        assert engine.position("alice").outstanding_payout == 484

    def test_recovered_by_sweep(self):
        """Rewards stuck in custody can be swept out by the policy wallet."""
        ledger, engine = _engine(term=0)
        engine.deposit("ITEM_1", 5, "alice")
        engine.sweep(ADMIN, REWARD, ADMIN)
        assert ledger.get_balance(ADMIN, REWARD) == 484
        assert ledger.get_balance(SYSTEM_WALLET, REWARD) == -1_000_000
