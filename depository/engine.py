"""
engine.py - Operators for the Disbursement Gateway and Bond Depository

The pure compute_* functions in depository.units build transactions; the
operators here run them against a Ledger:

    1. take ledger.lock (re-entrant, also held by Ledger.execute)
    2. compute the PendingTransaction from the ledger as a view
    3. execute it; a REJECTED result raises the ledger's typed rejection and
       an ALREADY_APPLIED result raises LedgerError

Holding the lock across compute and execute makes each operation one
serialized step in the transaction log. No operation retries.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .core import ExecuteResult, LedgerError, PendingTransaction
from .ledger import Ledger
from .events import (
    DepositoryEvent,
    entry_listed_event, bond_created_event, bond_redeemed_event,
)
from .units import gateway as gw
from .units import bond_depository as bd
from .units.vesting import VestingPosition


def _execute_or_raise(ledger: Ledger, pending: PendingTransaction) -> ExecuteResult:
    result = ledger.execute(pending)
    if result == ExecuteResult.REJECTED:
        raise ledger.last_rejection or LedgerError("transaction rejected")
    if result == ExecuteResult.ALREADY_APPLIED:
        raise LedgerError(f"intent {pending.intent_id} was already applied; nothing changed")
    return result


@dataclass(frozen=True, slots=True)
class BondReceipt:
    """What a depositor got for a deposit."""
    entry_id: str
    amount: int
    depositor: str
    payout: int
    fee: int
    unlock_block: int
    block: int


@dataclass(frozen=True, slots=True)
class Redemption:
    """What a redemption released and what is still vesting."""
    depositor: str
    released: int
    remaining: int
    block: int


class DisbursementGateway:
    """
    Operator for a gateway unit: authorization changes and direct releases.

    Example:
        gateway = DisbursementGateway(ledger, "GATEWAY")
        gateway.authorize("treasury", "depository")
        gateway.disburse("depository", 500)
    """

    def __init__(self, ledger: Ledger, gateway_symbol: str):
        self.ledger = ledger
        self.symbol = gateway_symbol
        self.verbose = ledger.verbose

    def authorize(self, caller: str, issuer: str) -> ExecuteResult:
        with self.ledger.lock:
            pending = gw.compute_authorize(self.ledger, self.symbol, caller, issuer)
            result = _execute_or_raise(self.ledger, pending)
        if self.verbose:
            print(f"{self.symbol}: authorized {issuer}")
        return result

    def revoke(self, caller: str, issuer: str) -> ExecuteResult:
        with self.ledger.lock:
            pending = gw.compute_revoke(self.ledger, self.symbol, caller, issuer)
            result = _execute_or_raise(self.ledger, pending)
        if self.verbose:
            print(f"{self.symbol}: revoked {issuer}")
        return result

    def disburse(self, issuer: str, amount: int) -> ExecuteResult:
        """Release `amount` to an authorized issuer; InsufficientBalance if custody is short."""
        with self.ledger.lock:
            pending = gw.compute_disbursement(self.ledger, self.symbol, issuer, amount)
            return _execute_or_raise(self.ledger, pending)

    def is_authorized(self, issuer: str) -> bool:
        return gw.is_authorized(self.ledger, self.symbol, issuer)

    def balance(self) -> int:
        return gw.custody_balance(self.ledger, self.symbol)


class BondingEngine:
    """
    Operator for a bond depository unit.

    Deposits and redemptions are each a single atomic ledger transaction.
    Events for applied operations accumulate in self.events.

    Example:
        engine = BondingEngine(ledger, "BOND")
        engine.initialize("admin", vesting_term=1000)
        engine.set_terms("admin", ["ITEM_1"], [100], [10])
        receipt = engine.deposit("ITEM_1", 5, "alice")
        ledger.advance_block(ledger.current_block + 500)
        engine.redeem("alice")
    """

    def __init__(self, ledger: Ledger, depository_symbol: str):
        self.ledger = ledger
        self.symbol = depository_symbol
        self.verbose = ledger.verbose
        self.events: List[DepositoryEvent] = []

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def initialize(self, caller: str, vesting_term: int) -> ExecuteResult:
        with self.ledger.lock:
            pending = bd.compute_initialize(self.ledger, self.symbol, caller, vesting_term)
            return _execute_or_raise(self.ledger, pending)

    def set_vesting_term(self, caller: str, vesting_term: int) -> ExecuteResult:
        with self.ledger.lock:
            pending = bd.compute_set_vesting_term(self.ledger, self.symbol, caller, vesting_term)
            return _execute_or_raise(self.ledger, pending)

    def set_terms(
        self,
        caller: str,
        entry_ids: Sequence[str],
        prices: Sequence[int],
        supplies: Sequence[int],
    ) -> List[str]:
        """
        List or re-price entries and add inventory.

        Returns the entry ids listed for the first time, in listing order.
        """
        with self.ledger.lock:
            _, before = bd.load_depository(self.ledger, self.symbol)
            pending = bd.compute_set_terms(self.ledger, self.symbol, caller, entry_ids, prices, supplies)
            _execute_or_raise(self.ledger, pending)
            _, after = bd.load_depository(self.ledger, self.symbol)
            block = self.ledger.current_block

        newly_listed = list(after.listing_index[len(before.listing_index):])
        for entry_id in newly_listed:
            self.events.append(entry_listed_event(
                self.symbol, block, entry_id, after.catalog[entry_id].unit_price,
            ))
        if self.verbose:
            for entry_id in newly_listed:
                print(f"{self.symbol}: listed {entry_id} at {after.catalog[entry_id].unit_price}")
        return newly_listed

    def set_fee_beneficiary(self, caller: str, beneficiary: str) -> ExecuteResult:
        with self.ledger.lock:
            pending = bd.compute_set_fee_beneficiary(self.ledger, self.symbol, caller, beneficiary)
            return _execute_or_raise(self.ledger, pending)

    def sweep(
        self,
        caller: str,
        unit_symbol: str,
        destination: str,
        quantity: Optional[int] = None,
    ) -> ExecuteResult:
        with self.ledger.lock:
            pending = bd.compute_sweep(self.ledger, self.symbol, caller, unit_symbol, destination, quantity)
            result = _execute_or_raise(self.ledger, pending)
        if self.verbose:
            print(f"{self.symbol}: swept {unit_symbol} to {destination}")
        return result

    # ------------------------------------------------------------------
    # Bonding
    # ------------------------------------------------------------------

    def deposit(self, entry_id: str, amount: int, depositor: str) -> BondReceipt:
        """
        Bond `amount` units of `entry_id` for `depositor`.

        Raises:
            InvalidAmount, InvalidAddress, NotInitialized, NotBondable:
                before anything is built
            InsufficientBalance, Unauthorized, StaleState:
                ledger rejection; nothing is applied
        """
        with self.ledger.lock:
            block = self.ledger.current_block
            terms, state = bd.load_depository(self.ledger, self.symbol)
            result = bd.calculate_deposit(terms, state, entry_id, amount, depositor, block)
            pending = bd.build_deposit_transaction(self.ledger, self.symbol, terms, result)
            _execute_or_raise(self.ledger, pending)

        receipt = BondReceipt(
            entry_id=entry_id,
            amount=amount,
            depositor=depositor,
            payout=result.split.payout,
            fee=result.split.fee,
            unlock_block=result.unlock_block,
            block=block,
        )
        self.events.append(bond_created_event(
            self.symbol, block, entry_id, receipt.payout, receipt.unlock_block, depositor,
        ))
        if self.verbose:
            print(f"{self.symbol}: {depositor} bonded {amount} {entry_id} -> "
                  f"payout {receipt.payout}, fee {receipt.fee}, unlock at {receipt.unlock_block}")
        return receipt

    def redeem(self, depositor: str) -> Redemption:
        """
        Release whatever has vested for `depositor`. Anyone may call this;
        the payout always goes to the depositor.
        """
        with self.ledger.lock:
            block = self.ledger.current_block
            terms, state = bd.load_depository(self.ledger, self.symbol)
            result = bd.calculate_redemption(state, depositor, block)
            pending = bd.build_redemption_transaction(self.ledger, self.symbol, terms, result)
            _execute_or_raise(self.ledger, pending)

        redemption = Redemption(
            depositor=depositor,
            released=result.released,
            remaining=result.remaining,
            block=block,
        )
        self.events.append(bond_redeemed_event(
            self.symbol, block, depositor, redemption.released, redemption.remaining,
        ))
        if self.verbose:
            print(f"{self.symbol}: {depositor} redeemed {redemption.released}, "
                  f"{redemption.remaining} still vesting")
        return redemption

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(self, entry_id: str) -> Tuple[bool, int]:
        return bd.query_entry(self.ledger, self.symbol, entry_id)

    def list_bondable(self) -> Tuple[List[str], List[int]]:
        return bd.list_bondable(self.ledger, self.symbol)

    def position(self, depositor: str) -> Optional[VestingPosition]:
        return bd.get_position(self.ledger, self.symbol, depositor)

    def pending_payout(self, depositor: str) -> int:
        return bd.pending_payout(self.ledger, self.symbol, depositor)

    def totals(self) -> dict:
        return bd.get_totals(self.ledger, self.symbol)
