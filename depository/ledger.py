"""
ledger.py - Stateful Double-Entry Ledger

The Ledger class is the central state manager for the bond depository.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Executes transactions atomically (all moves and state changes, or none)
    - Maintains wallet balances and unit (asset and contract) definitions
    - Tracks the block counter and serializes every mutation
    - Always validates and always logs
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from typing import Dict, List, Set, Optional, Tuple, Any
import copy
import threading

from .core import (
    # Types
    Move, Transaction, Unit,
    PendingTransaction,
    ExecuteResult,
    Positions, UnitState, BalanceMap,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    LedgerError, InsufficientBalance, BalanceConstraintViolation,
    UnitNotRegistered, WalletNotRegistered, StaleState,
    # Helper functions
    _freeze_state,
)


class Ledger:
    """
    Double-entry ledger with full validation and an ordered audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to pure
    functions that access only read-only methods.

    Design Principles:
        - Always validates: every transaction is checked against registration,
          transfer rules, balance limits and the current unit state.
        - Always logs: every applied transaction is appended to the
          transaction log with a monotonic sequence number.

    Thread Safety:
        execute() holds self.lock. Callers that compute a transaction from a
        view and then execute it hold the same (re-entrant) lock across both
        steps; a transaction computed against outdated state is rejected with
        StaleState.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(reward_token("RWD", "Reward"))
        ledger.register_wallet("alice")
        ledger.register_wallet("bob")

        tx = build_transaction(ledger, [
            Move(100, "RWD", SYSTEM_WALLET, "alice", "mint_001")
        ])
        result = ledger.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_block: int = 0,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_block: Starting block for the ledger (default: 0)
            verbose: Enable debug output (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
        """
        if initial_block < 0:
            raise ValueError(f"initial_block must be non-negative, got {initial_block}")
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self.last_rejection: Optional[LedgerError] = None
        self.lock = threading.RLock()
        self._current_block: int = initial_block
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0
        # Inverted index unit -> {wallet -> quantity}
        self._positions_by_unit: Dict[str, Dict[str, int]] = defaultdict(dict)

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_block(self) -> int:
        """Current block of the ledger."""
        return self._current_block

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a specific unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, 0)

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """
        Get a deep copy of a unit's internal state.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.units[unit_symbol].state

    def get_positions(self, unit_symbol: str) -> Positions:
        """Get all non-zero positions for a unit across all wallets."""
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        """List all registered unit symbols."""
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, unit_symbol: str) -> int:
        """
        Total supply of a unit across all wallets, system wallet included.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(self.balances[w].get(unit_symbol, 0) for w in sorted(self.registered_wallets))

    def verify_double_entry(self, expected_supplies: Dict[str, int] = None) -> Dict[str, Any]:
        """
        Verify that conservation laws hold for all units.

        For every unit the sum of all balances across all wallets equals a
        constant. With expected_supplies, current totals are checked against it.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, int] - Current total supply for each unit
            - 'discrepancies': List[Dict] - unit, expected, actual, difference
        """
        supplies = {}
        discrepancies = []

        for unit_symbol in self.units:
            current_supply = self.total_supply(unit_symbol)
            supplies[unit_symbol] = current_supply
            if expected_supplies and unit_symbol in expected_supplies:
                expected = expected_supplies[unit_symbol]
                if current_supply != expected:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': current_supply,
                        'difference': current_supply - expected,
                    })

        if expected_supplies:
            for unit_symbol, expected in expected_supplies.items():
                if unit_symbol not in supplies:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': 0,
                        'difference': -expected,
                        'error': 'unit not registered',
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_block(self, new_block: int) -> None:
        """
        Advance the ledger's block counter.

        Blocks never move backwards; staying on the same block is allowed.

        Raises:
            ValueError: If new_block is before the current block
        """
        with self.lock:
            if new_block < self._current_block:
                raise ValueError(
                    f"Cannot move blocks backwards: {new_block} < {self._current_block}"
                )
            self._current_block = new_block

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Raises:
            ValueError: If wallet is already registered
        """
        with self.lock:
            if wallet_id in self.registered_wallets:
                raise ValueError(f"Wallet {wallet_id} already registered")
            self.registered_wallets.add(wallet_id)
            self.balances[wallet_id] = defaultdict(int)
            return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit in the ledger.

        Raises:
            ValueError: If unit symbol is already registered
        """
        with self.lock:
            if unit.symbol in self.units:
                raise ValueError(f"Unit {unit.symbol} already registered")
            self.units[unit.symbol] = unit
        if self.verbose:
            rule_str = f", rule={unit.transfer_rule.__name__}" if unit.transfer_rule else ""
            print(f"Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]{rule_str}")

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """
        Set a wallet's balance for a unit directly.

        WARNING: This bypasses double-entry accounting and is only available
        in test mode. Use build_transaction() and execute() otherwise.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use build_transaction() and execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValueError(f"quantity must be int, got {type(quantity).__name__}")
        with self.lock:
            self.balances[wallet_id][unit_symbol] = quantity
            self._update_position_index(wallet_id, unit_symbol, quantity)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{ledger_name}:{sequence:012d}:{block}"""
        return f"exec:{self.name}:{sequence:012d}:{self._current_block}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves and state changes are applied together or not at all.
        Execution is idempotent: a pending transaction with the same intent_id
        will not be applied twice.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if the intent was already executed
            ExecuteResult.REJECTED if validation failed (see last_rejection)
        """
        with self.lock:
            self.last_rejection = None

            if pending.is_empty():
                return ExecuteResult.APPLIED

            if pending.intent_id in self.seen_intent_ids:
                if self.verbose:
                    print(f"ALREADY_APPLIED: intent_id={pending.intent_id}")
                return ExecuteResult.ALREADY_APPLIED

            error = self._validate_pending(pending)
            if error is not None:
                self.last_rejection = error
                if self.verbose:
                    print(f"✗ REJECTED: {type(error).__name__}: {error}")
                return ExecuteResult.REJECTED

            sequence = self._next_sequence
            self._next_sequence += 1

            tx = Transaction(
                moves=pending.moves,
                state_changes=pending.state_changes,
                origin=pending.origin,
                block=pending.block,
                intent_id=pending.intent_id,
                exec_id=self._generate_exec_id(sequence),
                ledger_name=self.name,
                execution_block=self._current_block,
                sequence_number=sequence,
            )

            self._execute_moves(tx.moves)

            # Unit is frozen: install a new Unit carrying the new state
            for sc in tx.state_changes:
                new_state = copy.deepcopy(sc.new_state if isinstance(sc.new_state, dict) else {})
                self.units[sc.unit] = replace(self.units[sc.unit], _frozen_state=_freeze_state(new_state))

            self.transaction_log.append(tx)
            self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            print(f"{tx!r}\n   ✓ APPLIED")
        return ExecuteResult.APPLIED

    def _validate_pending(self, pending: PendingTransaction) -> Optional[LedgerError]:
        """
        Validate a pending transaction against all constraints.

        Checks performed:
        1. Block check (transaction must not be from a future block)
        2. Unit and wallet registration
        3. Transfer rule enforcement
        4. Balance limits on net changes (min -> InsufficientBalance, max ->
           BalanceConstraintViolation)
        5. State changes target registered units and match current state

        Returns:
            None if valid, otherwise the LedgerError describing the failure.
        """
        if pending.block > self._current_block:
            return LedgerError(f"future block {pending.block} > {self._current_block}")

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return UnitNotRegistered(f"unit not registered: {move.unit_symbol}")
            if not self.is_registered(move.source):
                return WalletNotRegistered(f"wallet not registered: {move.source}")
            if not self.is_registered(move.dest):
                return WalletNotRegistered(f"wallet not registered: {move.dest}")

            unit = self.units[move.unit_symbol]
            if unit.transfer_rule:
                try:
                    unit.transfer_rule(self, move)
                except LedgerError as e:
                    return e

        net: Dict[Tuple[str, str], int] = {}
        for move in pending.moves:
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        # SYSTEM_WALLET is exempt from balance limits
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            unit = self.units[unit_sym]
            current = self.balances[wallet][unit_sym]
            proposed = current + delta
            if proposed < unit.min_balance:
                return InsufficientBalance(
                    f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance} "
                    f"(balance {current}, change {delta})"
                )
            if proposed > unit.max_balance:
                return BalanceConstraintViolation(
                    f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"
                )

        for sc in pending.state_changes:
            if sc.unit not in self.units:
                return UnitNotRegistered(f"unit not registered: {sc.unit}")
            if sc.old_state is None:
                continue
            current_state = self.units[sc.unit].state
            old_state = sc.old_state if isinstance(sc.old_state, dict) else {}
            for key in set(old_state.keys()) | set(current_state.keys()):
                if old_state.get(key) != current_state.get(key):
                    return StaleState(
                        f"{sc.unit}.{key}: expected {old_state.get(key)!r}, "
                        f"found {current_state.get(key)!r}"
                    )

        return None

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """Keep the unit -> {wallet -> quantity} index in sync; zero balances are dropped."""
        if quantity != 0:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _execute_moves(self, moves) -> None:
        """Apply moves to wallet balances and the position index."""
        for move in moves:
            new_src_balance = self.balances[move.source][move.unit_symbol] - move.quantity
            self.balances[move.source][move.unit_symbol] = new_src_balance
            self._update_position_index(move.source, move.unit_symbol, new_src_balance)

            new_dst_balance = self.balances[move.dest][move.unit_symbol] + move.quantity
            self.balances[move.dest][move.unit_symbol] = new_dst_balance
            self._update_position_index(move.dest, move.unit_symbol, new_dst_balance)

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Create a fully independent deep copy of this ledger.

        Cloned state includes units and their state, wallet registrations and
        balances, the transaction log and the current block.
        """
        with self.lock:
            cloned = Ledger.__new__(Ledger)
            cloned.name = self.name
            cloned._current_block = self._current_block
            cloned.verbose = self.verbose
            cloned._test_mode = self._test_mode
            cloned.lock = threading.RLock()
            cloned.last_rejection = None

            cloned.units = {
                symbol: replace(unit, _frozen_state=_freeze_state(unit.state))
                for symbol, unit in self.units.items()
            }

            cloned.registered_wallets = self.registered_wallets.copy()
            cloned.seen_intent_ids = self.seen_intent_ids.copy()
            cloned.transaction_log = list(self.transaction_log)
            cloned._next_sequence = self._next_sequence

            cloned.balances = {}
            for wallet, bals in self.balances.items():
                cloned.balances[wallet] = defaultdict(int, bals)

            cloned._positions_by_unit = defaultdict(dict)
            for unit_symbol, positions in self._positions_by_unit.items():
                cloned._positions_by_unit[unit_symbol] = dict(positions)

            return cloned

    def replay(self, initial_states: Optional[Dict[str, UnitState]] = None) -> Ledger:
        """
        Create a new ledger by replaying the transaction log.

        Units are copied with the state they were registered with, taken from
        the first logged state change that touches them (or initial_states),
        and every logged transaction is re-executed in sequence order.

        Balances set via set_balance() are not part of the log and are not
        replayed; fund wallets through SYSTEM_WALLET moves for replayable
        histories.

        Raises:
            LedgerError: If a logged transaction is rejected during replay
        """
        first_states: Dict[str, UnitState] = dict(initial_states or {})
        for tx in self.transaction_log:
            for sc in tx.state_changes:
                if sc.unit not in first_states and isinstance(sc.old_state, dict):
                    first_states[sc.unit] = copy.deepcopy(sc.old_state)

        new_ledger = Ledger(
            name=f"{self.name}_replayed",
            initial_block=0,
            verbose=self.verbose,
            test_mode=self._test_mode,
        )
        for symbol, unit in self.units.items():
            initial = first_states.get(symbol, unit.state)
            new_ledger.units[symbol] = replace(unit, _frozen_state=_freeze_state(initial))

        for wallet in self.registered_wallets:
            if wallet != SYSTEM_WALLET:
                new_ledger.register_wallet(wallet)

        for tx in self.transaction_log:
            if tx.execution_block > new_ledger.current_block:
                new_ledger.advance_block(tx.execution_block)
            pending = PendingTransaction(
                moves=tx.moves,
                state_changes=tx.state_changes,
                origin=tx.origin,
                block=tx.block,
            )
            if new_ledger.execute(pending) == ExecuteResult.REJECTED:
                raise LedgerError(
                    f"Replay failed at tx {tx.exec_id}: {new_ledger.last_rejection}"
                )

        return new_ledger
