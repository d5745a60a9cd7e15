"""
Conformance Test Suite

This suite defines the normative behavior of the bond depository.

The tests are organized by invariant:
1. test_atomicity.py - Deposits and redemptions are all-or-nothing
2. test_solvency_properties.py - Inventory, fees, vesting and payouts never
   create or lose value across random operation sequences
3. test_determinism.py - Clone and replay reproduce identical state

These tests use hypothesis for property-based testing.
"""
