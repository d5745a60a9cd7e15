"""
Tests for fees.py - Protocol Fee Split

Tests:
- FeeSchedule validation
- calculate_fee_split exactness and rounding direction
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from depository import (
    FeeSchedule, FeeSplit, calculate_fee_split, InvalidAmount,
    DEFAULT_FEE_NUMERATOR, DEFAULT_FEE_DENOMINATOR,
)


class TestFeeSchedule:
    """Tests for FeeSchedule construction."""

    def test_default_rate(self):
        schedule = FeeSchedule()
        assert (schedule.numerator, schedule.denominator) == (33_300, 1_000_000)
        assert (DEFAULT_FEE_NUMERATOR, DEFAULT_FEE_DENOMINATOR) == (33_300, 1_000_000)

    def test_zero_denominator(self):
        with pytest.raises(InvalidAmount):
            FeeSchedule(0, 0)

    def test_numerator_above_denominator(self):
        with pytest.raises(InvalidAmount):
            FeeSchedule(11, 10)

    @pytest.mark.parametrize("numerator, denominator", [(1, 1), (10, 10), (1_000_000, 1_000_000)])
    def test_full_rate_rejected(self, numerator, denominator):
        """A rate of 100% would leave every deposit with nothing to vest."""
        with pytest.raises(InvalidAmount, match="numerator"):
            FeeSchedule(numerator, denominator)

    def test_negative_numerator(self):
        with pytest.raises(InvalidAmount):
            FeeSchedule(-1, 10)

    def test_non_integer(self):
        with pytest.raises(InvalidAmount):
            FeeSchedule(0.5, 10)


class TestFeeSplit:
    """Tests for calculate_fee_split."""

    def test_reference_scenario(self):
        """100 per unit x 5 units at 3.33% -> fee 16, payout 484."""
        split = calculate_fee_split(100, 5)
        assert split == FeeSplit(payout=484, fee=16)
        assert split.total == 500

    def test_fee_floors_to_zero_on_small_claims(self):
        split = calculate_fee_split(1, 1)
        assert split == FeeSplit(payout=1, fee=0)

    def test_zero_rate(self):
        assert calculate_fee_split(100, 5, FeeSchedule(0, 1)) == FeeSplit(500, 0)

    def test_highest_rate_leaves_a_payout(self):
        """999_999 / 1_000_000 on a gross of 1 floors the fee to 0."""
        schedule = FeeSchedule(999_999, 1_000_000)
        assert calculate_fee_split(1, 1, schedule) == FeeSplit(1, 0)
        assert calculate_fee_split(100, 5, schedule) == FeeSplit(1, 499)

    @pytest.mark.parametrize("price, amount", [(0, 5), (100, 0), (-1, 5), (100, -5)])
    def test_non_positive_inputs(self, price, amount):
        with pytest.raises(InvalidAmount):
            calculate_fee_split(price, amount)

    @given(
        price=st.integers(min_value=1, max_value=10 ** 24),
        amount=st.integers(min_value=1, max_value=10 ** 6),
        numerator=st.integers(min_value=0, max_value=999_999),
    )
    @settings(max_examples=200)
    def test_split_is_exact_and_fee_rounds_down(self, price, amount, numerator):
        """PROPERTY: payout + fee == price * amount and fee <= gross * rate."""
        schedule = FeeSchedule(numerator, 1_000_000)
        split = calculate_fee_split(price, amount, schedule)
        gross = price * amount
        assert split.payout + split.fee == gross
        assert split.fee * 1_000_000 <= gross * numerator
        assert (split.fee + 1) * 1_000_000 > gross * numerator
        assert split.payout > 0
