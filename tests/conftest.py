"""
conftest.py - Shared pytest fixtures for depository tests

Provides common fixtures used across unit, functional and conformance tests:
- Basic ledgers (empty, funded)
- A complete bonding setup: reward token gated by a disbursement gateway,
  collectible catalog entries, a bond depository and its operators
- Comparison utilities
"""

import pytest
from typing import Dict, Iterable

from depository import (
    Ledger, Move, build_transaction, SYSTEM_WALLET,
    reward_token, collectible,
    create_gateway_unit, gated_release_rule,
    create_bond_depository_unit,
    DisbursementGateway, BondingEngine,
    FeeSchedule,
)

from tests.fake_view import FakeView


# =============================================================================
# CONSTANTS
# =============================================================================

GATEWAY = "GATEWAY"
REWARD = "RWD"
DEPOSITORY = "BOND"
ITEMS = ("ITEM_1", "ITEM_2", "ITEM_3")

TREASURY = "treasury"          # gateway custody
CUSTODY = "depository"         # depository custody
BENEFICIARY = "dao"            # fee beneficiary
ADMIN = "admin"                # policy wallet for both gateway and depository
HOLDERS = ("alice", "bob", "carol")

TREASURY_FUNDING = 1_000_000
HOLDER_ITEMS = 50


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def issue(ledger: Ledger, wallet: str, unit_symbol: str, quantity: int) -> None:
    """Issue units from the system wallet (replayable funding)."""
    ledger.execute(build_transaction(ledger, [
        Move(quantity, unit_symbol, SYSTEM_WALLET, wallet, f"issue_{unit_symbol}_{wallet}_{len(ledger.transaction_log)}")
    ]))


def create_bonding_ledger(
    treasury_funding: int = TREASURY_FUNDING,
    holder_items: int = HOLDER_ITEMS,
    fee_schedule: FeeSchedule = FeeSchedule(),
    authorize_custody: bool = True,
    verbose: bool = False,
) -> Ledger:
    """
    Build a ledger with a gateway, reward token, collectibles and a depository.

    The depository is registered but not initialized and has no catalog terms.
    """
    ledger = Ledger("bonding", verbose=verbose, test_mode=True)
    ledger.register_unit(create_gateway_unit(
        GATEWAY, REWARD, TREASURY, ADMIN,
        authorized=[CUSTODY] if authorize_custody else [],
    ))
    ledger.register_unit(reward_token(REWARD, "Reward Token", gated_release_rule(GATEWAY)))
    for i, item in enumerate(ITEMS, start=1):
        ledger.register_unit(collectible(item, f"Item #{i}", "items", i))
    ledger.register_unit(create_bond_depository_unit(
        DEPOSITORY, REWARD, GATEWAY, CUSTODY, BENEFICIARY, ADMIN, fee_schedule,
    ))

    for wallet in (TREASURY, CUSTODY, BENEFICIARY, ADMIN) + HOLDERS:
        ledger.register_wallet(wallet)

    if treasury_funding:
        issue(ledger, TREASURY, REWARD, treasury_funding)
    if holder_items:
        for holder in HOLDERS:
            for item in ITEMS:
                issue(ledger, holder, item, holder_items)
    return ledger


def snapshot(ledger: Ledger, wallets: Iterable[str], units: Iterable[str]) -> Dict[tuple, int]:
    """Balances of the given wallets and units, keyed by (wallet, unit)."""
    return {(w, u): ledger.get_balance(w, u) for w in wallets for u in units}


def compare_ledger_states(ledger1: Ledger, ledger2: Ledger) -> dict:
    """Compare two ledger states and return differences."""
    balance_diffs = []
    state_diffs = []

    all_wallets = ledger1.registered_wallets | ledger2.registered_wallets
    all_units = set(ledger1.units.keys()) | set(ledger2.units.keys())

    for wallet in sorted(all_wallets):
        for unit in sorted(all_units):
            bal1 = ledger1.balances.get(wallet, {}).get(unit, 0)
            bal2 = ledger2.balances.get(wallet, {}).get(unit, 0)
            if bal1 != bal2:
                balance_diffs.append({"wallet": wallet, "unit": unit, "ledger1": bal1, "ledger2": bal2})

    for unit_sym in sorted(all_units):
        if unit_sym in ledger1.units and unit_sym in ledger2.units:
            state1 = ledger1.get_unit_state(unit_sym)
            state2 = ledger2.get_unit_state(unit_sym)
            if state1 != state2:
                state_diffs.append({"unit": unit_sym, "ledger1": state1, "ledger2": state2})

    return {
        "equal": not balance_diffs and not state_diffs,
        "balance_diffs": balance_diffs,
        "state_diffs": state_diffs,
    }


def ledger_state_equals(ledger1: Ledger, ledger2: Ledger) -> bool:
    return compare_ledger_states(ledger1, ledger2)["equal"]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def ledger():
    """Empty ledger, quiet, with set_balance() enabled."""
    return Ledger("test", verbose=False, test_mode=True)


@pytest.fixture
def bonding_ledger():
    """Funded bonding ledger; depository not yet initialized."""
    return create_bonding_ledger()


@pytest.fixture
def gateway(bonding_ledger):
    return DisbursementGateway(bonding_ledger, GATEWAY)


@pytest.fixture
def engine(bonding_ledger):
    """Uninitialized BondingEngine on the funded bonding ledger."""
    return BondingEngine(bonding_ledger, DEPOSITORY)


@pytest.fixture
def live_engine(engine):
    """
    BondingEngine ready to bond: vesting term 1000 blocks,
    ITEM_1 listed at 100 with supply 10.
    """
    engine.initialize(ADMIN, vesting_term=1000)
    engine.set_terms(ADMIN, ["ITEM_1"], [100], [10])
    return engine


@pytest.fixture
def fake_view():
    """FakeView factory."""
    def make(balances=None, states=None, block=0, **kwargs):
        return FakeView(balances or {}, states, block, **kwargs)
    return make
