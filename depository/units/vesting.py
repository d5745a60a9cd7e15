"""
vesting.py - Per-Depositor Linear Vesting Positions

A vesting position is a claim on reward tokens that unlocks linearly over a
window of blocks. Each depositor has at most one position with two states:

    Empty   - no position (outstanding_payout == 0, removed from storage)
    Active  - outstanding_payout > 0

Transitions:
    accrue:  Empty -> Active, Active -> Active
             payout is added, the window is RESET to the global vesting term
             for the combined balance, and the clock restarts at `now`.
    settle:  Active -> Empty   when the vested fraction reaches 10000 bps
             Active -> Active  otherwise (partial release, window shrinks
                               by the elapsed blocks)
             Empty  -> Empty   releasing 0

Fractions are integer basis points (1/10000), all divisions floor.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core import InvalidAmount, require_positive_amount


BASIS_POINTS = 10_000


@dataclass(frozen=True, slots=True)
class VestingPosition:
    """
    Immutable snapshot of one depositor's claim.

    Attributes:
        outstanding_payout: Reward tokens not yet released (> 0 while Active)
        vesting_window: Blocks remaining until full unlock, measured from last_settled_at
        last_settled_at: Block of the last accrual or settlement
    """
    outstanding_payout: int
    vesting_window: int
    last_settled_at: int

    def __post_init__(self):
        if self.outstanding_payout < 0:
            raise InvalidAmount(f"outstanding_payout cannot be negative, got {self.outstanding_payout}")
        if self.vesting_window < 0:
            raise InvalidAmount(f"vesting_window cannot be negative, got {self.vesting_window}")

    @property
    def unlock_block(self) -> int:
        """Block at which the whole outstanding payout is vested."""
        return self.last_settled_at + self.vesting_window


@dataclass(frozen=True, slots=True)
class Settlement:
    """
    Result of settling a position.

    position is None when the position is (or became) Empty.
    """
    released: int
    position: Optional[VestingPosition]

    @property
    def remaining(self) -> int:
        return self.position.outstanding_payout if self.position else 0


# ============================================================================
# ADAPTERS
# ============================================================================

def position_from_state(raw: Optional[Dict[str, Any]]) -> Optional[VestingPosition]:
    """Build a VestingPosition from its stored dict; None or zero payout is Empty."""
    if not raw or raw.get('outstanding_payout', 0) == 0:
        return None
    return VestingPosition(
        outstanding_payout=raw['outstanding_payout'],
        vesting_window=raw['vesting_window'],
        last_settled_at=raw['last_settled_at'],
    )


def position_to_state(position: VestingPosition) -> Dict[str, int]:
    """Inverse of position_from_state()."""
    return {
        'outstanding_payout': position.outstanding_payout,
        'vesting_window': position.vesting_window,
        'last_settled_at': position.last_settled_at,
    }


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_accrual(
    position: Optional[VestingPosition],
    payout: int,
    now: int,
    vesting_term: int,
) -> VestingPosition:
    """
    Add a new payout to a depositor's position.

    The window restarts at vesting_term for the whole balance: an earlier,
    partly vested balance does not keep its own schedule.

    Raises:
        InvalidAmount: if payout is not positive or vesting_term is negative.
    """
    require_positive_amount(payout, "payout")
    if vesting_term < 0:
        raise InvalidAmount(f"vesting_term cannot be negative, got {vesting_term}")
    previous = position.outstanding_payout if position else 0
    return VestingPosition(
        outstanding_payout=previous + payout,
        vesting_window=vesting_term,
        last_settled_at=now,
    )


def calculate_vested_fraction(position: Optional[VestingPosition], now: int) -> int:
    """
    Fraction of the outstanding payout vested at `now`, in basis points.

    A zero window yields 0: such a position never vests.

    Raises:
        ValueError: if now precedes the position's last settlement.
    """
    if position is None or position.vesting_window == 0:
        return 0
    elapsed = now - position.last_settled_at
    if elapsed < 0:
        raise ValueError(
            f"block {now} precedes last settlement at {position.last_settled_at}"
        )
    return min(BASIS_POINTS, elapsed * BASIS_POINTS // position.vesting_window)


def calculate_settlement(position: Optional[VestingPosition], now: int) -> Settlement:
    """
    Release whatever has vested since the last settlement.

    Full: fraction >= 10000 releases everything and empties the position.
    Partial: releases floor(outstanding * fraction / 10000), shrinks the window
    by the elapsed blocks and restarts the clock at `now`.
    """
    if position is None:
        return Settlement(released=0, position=None)

    fraction = calculate_vested_fraction(position, now)
    if fraction >= BASIS_POINTS:
        return Settlement(released=position.outstanding_payout, position=None)

    elapsed = now - position.last_settled_at
    released = position.outstanding_payout * fraction // BASIS_POINTS
    remaining = VestingPosition(
        outstanding_payout=position.outstanding_payout - released,
        vesting_window=max(0, position.vesting_window - elapsed),
        last_settled_at=now,
    )
    return Settlement(released=released, position=remaining)


def calculate_pending_payout(position: Optional[VestingPosition], now: int) -> int:
    """Amount calculate_settlement() would release at `now`, without changing anything."""
    return calculate_settlement(position, now).released
