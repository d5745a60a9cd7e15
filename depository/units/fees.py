"""
fees.py - Protocol Fee Split for Bond Claims

Every bond claim is worth unit_price * amount reward tokens. A fixed share of
that gross value is skimmed as a protocol fee for the fee beneficiary; the
rest becomes the depositor's vesting payout.

Key Formulas:
    gross  = unit_price * amount
    fee    = floor(gross * numerator / denominator)
    payout = gross - fee

The fee always rounds down, so payout + fee == gross exactly and the fee
never exceeds gross * numerator / denominator.
"""

from __future__ import annotations
from dataclasses import dataclass

from ..core import InvalidAmount, require_positive_amount


# Reference fee rate: 33,300 / 1,000,000 = 3.33%
DEFAULT_FEE_NUMERATOR = 33_300
DEFAULT_FEE_DENOMINATOR = 1_000_000


@dataclass(frozen=True, slots=True)
class FeeSchedule:
    """
    Immutable fee rate, fixed when a depository is created.

    Attributes:
        numerator: Fee share numerator (0 <= numerator < denominator)
        denominator: Fee share denominator (> 0)
    """
    numerator: int = DEFAULT_FEE_NUMERATOR
    denominator: int = DEFAULT_FEE_DENOMINATOR

    def __post_init__(self):
        for name in ('numerator', 'denominator'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidAmount(f"fee {name} must be an integer, got {value!r}")
        if self.denominator <= 0:
            raise InvalidAmount(f"fee denominator must be positive, got {self.denominator}")
        if not 0 <= self.numerator < self.denominator:
            raise InvalidAmount(
                f"fee numerator must be within [0, {self.denominator}), got {self.numerator}"
            )


@dataclass(frozen=True, slots=True)
class FeeSplit:
    """Result of splitting a bond claim: depositor payout and beneficiary fee."""
    payout: int
    fee: int

    @property
    def total(self) -> int:
        """Full obligation drawn from the gateway (payout + fee)."""
        return self.payout + self.fee


def calculate_fee_split(unit_price: int, amount: int, schedule: FeeSchedule = FeeSchedule()) -> FeeSplit:
    """
    Split the claim for `amount` units at `unit_price` into (payout, fee).

    PURE FUNCTION - no side effects.

    Raises:
        InvalidAmount: if unit_price or amount is not a positive integer.

    Example:
        >>> calculate_fee_split(100, 5)
        FeeSplit(payout=484, fee=16)
    """
    require_positive_amount(unit_price, "unit_price")
    require_positive_amount(amount, "amount")
    gross = unit_price * amount
    fee = gross * schedule.numerator // schedule.denominator
    return FeeSplit(payout=gross - fee, fee=fee)
