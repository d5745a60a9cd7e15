"""
Tests for vesting.py - Linear Vesting Positions

Tests:
- calculate_accrual (Empty -> Active, top-ups reset the window)
- calculate_vested_fraction (basis points, zero window, clock errors)
- calculate_settlement (full, partial, empty)
- monotone release property
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from depository import VestingPosition, Settlement, BASIS_POINTS, InvalidAmount
from depository.units.vesting import (
    calculate_accrual, calculate_vested_fraction, calculate_settlement,
    calculate_pending_payout, position_from_state, position_to_state,
)


class TestVestingPosition:

    def test_unlock_block(self):
        assert VestingPosition(484, 1000, 10).unlock_block == 1010

    def test_negative_payout_rejected(self):
        with pytest.raises(InvalidAmount):
            VestingPosition(-1, 10, 0)

    def test_negative_window_rejected(self):
        with pytest.raises(InvalidAmount):
            VestingPosition(1, -10, 0)


class TestAccrual:
    """Tests for calculate_accrual."""

    def test_from_empty(self):
        position = calculate_accrual(None, 484, now=5, vesting_term=1000)
        assert position == VestingPosition(484, 1000, 5)

    def test_top_up_resets_window(self):
        """A top-up restarts the full term for the combined balance."""
        position = VestingPosition(242, 500, 500)
        topped = calculate_accrual(position, 100, now=900, vesting_term=1000)
        assert topped == VestingPosition(342, 1000, 900)

    def test_zero_payout_rejected(self):
        with pytest.raises(InvalidAmount):
            calculate_accrual(None, 0, now=0, vesting_term=10)

    def test_negative_term_rejected(self):
        with pytest.raises(InvalidAmount):
            calculate_accrual(None, 1, now=0, vesting_term=-1)


class TestVestedFraction:
    """Tests for calculate_vested_fraction."""

    def test_empty(self):
        assert calculate_vested_fraction(None, 100) == 0

    def test_halfway(self):
        assert calculate_vested_fraction(VestingPosition(484, 1000, 0), 500) == 5000

    def test_caps_at_full(self):
        assert calculate_vested_fraction(VestingPosition(484, 1000, 0), 5000) == BASIS_POINTS

    def test_floors(self):
        assert calculate_vested_fraction(VestingPosition(1, 3, 0), 1) == 3333

    def test_zero_window_never_vests(self):
        assert calculate_vested_fraction(VestingPosition(10, 0, 0), 10 ** 9) == 0

    def test_clock_before_last_settlement(self):
        with pytest.raises(ValueError):
            calculate_vested_fraction(VestingPosition(10, 100, 50), 49)


class TestSettlement:
    """Tests for calculate_settlement."""

    def test_empty_releases_nothing(self):
        assert calculate_settlement(None, 100) == Settlement(0, None)

    def test_partial(self):
        settlement = calculate_settlement(VestingPosition(484, 1000, 0), 500)
        assert settlement.released == 242
        assert settlement.position == VestingPosition(242, 500, 500)
        assert settlement.remaining == 242

    def test_full_after_partial(self):
        settlement = calculate_settlement(VestingPosition(242, 500, 500), 1000)
        assert settlement == Settlement(242, None)
        assert settlement.remaining == 0

    def test_same_block_releases_nothing(self):
        position = VestingPosition(484, 1000, 7)
        settlement = calculate_settlement(position, 7)
        assert settlement.released == 0
        assert settlement.position == position

    def test_zero_window_position_stays(self):
        position = VestingPosition(10, 0, 0)
        settlement = calculate_settlement(position, 50)
        assert settlement.released == 0
        assert settlement.position == VestingPosition(10, 0, 50)

    def test_pending_payout_is_read_only(self):
        position = VestingPosition(484, 1000, 0)
        assert calculate_pending_payout(position, 250) == 121
        assert calculate_pending_payout(None, 250) == 0
        assert position == VestingPosition(484, 1000, 0)

    @given(
        payout=st.integers(min_value=1, max_value=10 ** 20),
        term=st.integers(min_value=1, max_value=10_000),
        steps=st.lists(st.integers(min_value=0, max_value=3_000), max_size=15),
    )
    @settings(max_examples=200)
    def test_release_is_monotone_and_bounded(self, payout, term, steps):
        """
        PROPERTY: cumulative release never decreases, never exceeds the
        payout, and reaches it once the term has elapsed.
        """
        position = calculate_accrual(None, payout, now=0, vesting_term=term)
        now = 0
        released = 0
        for step in steps:
            now += step
            settlement = calculate_settlement(position, now)
            assert settlement.released >= 0
            released += settlement.released
            assert released + settlement.remaining == payout
            position = settlement.position
        final = calculate_settlement(position, max(now, term))
        assert released + final.released == payout
        assert final.position is None


class TestAdapters:

    def test_round_trip(self):
        position = VestingPosition(484, 1000, 5)
        assert position_from_state(position_to_state(position)) == position

    def test_empty_state(self):
        assert position_from_state(None) is None
        assert position_from_state({'outstanding_payout': 0, 'vesting_window': 0, 'last_settled_at': 0}) is None
