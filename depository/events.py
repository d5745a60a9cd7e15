"""
events.py - Depository Event Records

Events are just data: immutable records of what an operation did, appended by
BondingEngine after the operation's transaction was applied. The transaction
log remains the authoritative audit trail; events are its readable summary.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict


ENTRY_LISTED = "entry_listed"
BOND_CREATED = "bond_created"
BOND_REDEEMED = "bond_redeemed"


@dataclass(frozen=True, slots=True)
class DepositoryEvent:
    """
    Immutable record of a depository operation.

    Attributes:
        block: Block at which the operation was applied
        action: ENTRY_LISTED, BOND_CREATED or BOND_REDEEMED
        symbol: Depository unit symbol
        params: Event parameters as a frozen tuple of (key, value) pairs
    """
    block: int
    action: str
    symbol: str
    params: tuple = ()

    @property
    def params_dict(self) -> Dict[str, Any]:
        return dict(self.params)


def entry_listed_event(symbol: str, block: int, entry_id: str, unit_price: int) -> DepositoryEvent:
    return DepositoryEvent(
        block=block,
        action=ENTRY_LISTED,
        symbol=symbol,
        params=(('entry_id', entry_id), ('unit_price', unit_price)),
    )


def bond_created_event(
    symbol: str,
    block: int,
    entry_id: str,
    payout: int,
    unlock_block: int,
    depositor: str,
) -> DepositoryEvent:
    return DepositoryEvent(
        block=block,
        action=BOND_CREATED,
        symbol=symbol,
        params=(
            ('entry_id', entry_id),
            ('payout', payout),
            ('unlock_block', unlock_block),
            ('depositor', depositor),
        ),
    )


def bond_redeemed_event(symbol: str, block: int, depositor: str, released: int, remaining: int) -> DepositoryEvent:
    return DepositoryEvent(
        block=block,
        action=BOND_REDEEMED,
        symbol=symbol,
        params=(('depositor', depositor), ('released', released), ('remaining', remaining)),
    )
