"""
Core types and pure functions for the bond depository.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Move, PendingTransaction, Transaction, Unit
3. Exceptions: LedgerError and domain-specific error types
4. Type aliases: Positions, BalanceMap, UnitState
5. Unit factories: reward tokens and collectible catalog units

All quantities are integers in the smallest unit of their asset.
All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import copy
import hashlib
from typing import (
    Dict, List, Set, Optional, Callable, Any, Protocol,
    Tuple, FrozenSet, runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance and redemption.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# Unit type constants (strings, not enum).
UNIT_TYPE_REWARD_TOKEN = "REWARD_TOKEN"
UNIT_TYPE_COLLECTIBLE = "COLLECTIBLE"
UNIT_TYPE_BOND_DEPOSITORY = "BOND_DEPOSITORY"
UNIT_TYPE_DISBURSEMENT_GATEWAY = "DISBURSEMENT_GATEWAY"

# Upper bound for wallet balances when a unit does not set one.
UNBOUNDED_BALANCE = 2 ** 256 - 1


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from wallet ID to quantity held by that wallet for a specific unit.
Positions = Dict[str, int]

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]

# Internal state for a unit: configuration, ledgers, lifecycle information.
UnitState = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Contracts, transfer rules and query functions use this protocol to read
    ledger state without the ability to modify it. The Ledger class implements
    it and also provides mutation methods; for testing, FakeView provides a
    truly immutable implementation.
    """

    @property
    def current_block(self) -> int:
        """Return the current block (discrete time step) of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Return the balance of a specific unit in a wallet.

        Returns 0 if the wallet holds none of the unit.
        """
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Return a copy of the unit's internal state."""
        ...

    def get_positions(self, unit_symbol: str) -> Positions:
        """Return all non-zero positions for a unit across all wallets."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    ALREADY_APPLIED: Intent ID was previously processed (idempotent behavior).
    REJECTED: Transaction failed validation. The reason is kept on
              Ledger.last_rejection.
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Deposit, redeem
    CONTRACT = "contract"                 # Contract-generated moves
    ADMINISTRATIVE = "administrative"     # Policy-gated configuration


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger and depository errors."""
    pass


class InsufficientBalance(LedgerError):
    """Raised when a move would take a wallet balance below the unit's minimum."""
    pass


class BalanceConstraintViolation(LedgerError):
    """Raised when a move would take a wallet balance above the unit's maximum."""
    pass


class TransferRuleViolation(LedgerError):
    """Raised when a move violates the unit's transfer rule."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when operating on a unit that has not been registered."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when operating on a wallet that has not been registered."""
    pass


class StaleState(LedgerError):
    """Raised when a state change was computed against an outdated unit state."""
    pass


class NotBondable(LedgerError):
    """Raised when a catalog entry is unpriced or lacks the requested inventory."""
    pass


class InvalidAmount(LedgerError, ValueError):
    """Raised for zero, negative or non-integer amounts."""
    pass


class InvalidAddress(LedgerError, ValueError):
    """Raised for a blank or reserved depositor, issuer or destination."""
    pass


class NotInitialized(LedgerError):
    """Raised when the global vesting term has not been set."""
    pass


class AlreadyInitialized(LedgerError):
    """Raised when initializing a depository twice."""
    pass


class Unauthorized(LedgerError):
    """Raised when an identity lacks disbursement or administrative permission."""
    pass


class UnauthorizedRelease(TransferRuleViolation, Unauthorized):
    """Raised by a gateway's transfer rule for a release to an unauthorized identity."""
    pass


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Identifier of the specific source (caller, depositor, ...)
        unit_symbol: Symbol of the unit that triggered this (if applicable)
        event_type: Specific event within the source (e.g., "DEPOSIT", "REDEEM")
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.unit_symbol:
            parts.append(f"unit={self.unit_symbol}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# UNIT STATE CHANGE
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Record of a unit state change for transaction logging.

    Stores complete before/after state snapshots. The ledger rejects the
    change if old_state no longer matches the unit's current state.

    Attributes:
        unit: Symbol of the unit whose state changed
        old_state: Complete state before the change (dict or None)
        new_state: Complete state after the change (dict)
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Return {field: (old, new)} for fields that differ."""
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        changes = {}
        for key in set(old.keys()) | set(new.keys()):
            old_val = old.get(key)
            new_val = new.get(key)
            if old_val != new_val:
                changes[key] = (old_val, new_val)
        return changes


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: Positive integer amount in the unit's smallest denomination.
        unit_symbol: The symbol of the unit being transferred.
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the contract generating this move.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise InvalidAddress("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise InvalidAddress("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidAmount(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise InvalidAmount(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise InvalidAddress("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Independent of dict insertion order and set iteration order.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    if isinstance(value, (set, frozenset)):
        serialized = ",".join(_canonicalize(item) for item in sorted(value, key=str))
        return f"<{serialized}>"
    return f"R:{repr(value)}"


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[UnitStateChange, ...],
    origin: TransactionOrigin,
) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    Based solely on the semantic content of the transaction, never on the
    block it was built at. Same inputs always produce the same intent_id.
    """
    sorted_moves = sorted(
        moves,
        key=lambda m: (m.quantity, m.unit_symbol, m.source, m.dest, m.contract_id)
    )

    content_parts = [f"origin:{origin.origin_type.value}:{origin.source_id}"]
    if origin.unit_symbol:
        content_parts.append(f"unit:{origin.unit_symbol}")
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")

    for m in sorted_moves:
        content_parts.append(f"move:{m.quantity}|{m.unit_symbol}|{m.source}|{m.dest}|{m.contract_id}")

    for sc in sorted(state_changes, key=lambda s: s.unit):
        content_parts.append(
            f"state_change:{sc.unit}|{_canonicalize(sc.old_state)}|{_canonicalize(sc.new_state)}"
        )

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction specification before execution - represents INTENT.

    Created by compute_* functions and submitted to Ledger.execute().

    Attributes:
        moves: Tuple of value transfers between wallets
        state_changes: Tuple of unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        block: Block at which this pending transaction was built
        intent_id: Content-addressable hash of the transaction intent (auto-computed)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    block: int
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(self.moves, self.state_changes, self.origin)
            object.__setattr__(self, 'intent_id', computed_id)

    def is_empty(self) -> bool:
        """Return True if this pending transaction has no moves and no state changes."""
        return not self.moves and not self.state_changes

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {len(self.state_changes)} deltas, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves and state changes.

    Args:
        view: Read-only ledger view (provides current_block)
        moves: List of moves to include in the transaction
        state_changes: Optional list of UnitStateChange objects
        origin: Transaction origin (defaults to CONTRACT origin)

    Returns:
        A PendingTransaction ready for execution

    Example:
        def compute_payment(view, payer, payee, amount):
            moves = [Move(amount, "RWD", payer, payee, "payment")]
            return build_transaction(view, moves)
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.CONTRACT,
            source_id="contract",
        )

    copied_changes: Tuple[UnitStateChange, ...] = ()
    if state_changes:
        copied_changes = tuple(
            UnitStateChange(
                unit=sc.unit,
                old_state=copy.deepcopy(sc.old_state),
                new_state=copy.deepcopy(sc.new_state),
            )
            for sc in state_changes
        )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        block=view.current_block,
    )


def empty_pending_transaction(view: LedgerView) -> PendingTransaction:
    """Create an empty PendingTransaction for compute functions with nothing to do."""
    return PendingTransaction(
        moves=(),
        state_changes=(),
        origin=TransactionOrigin(OriginType.CONTRACT, "noop"),
        block=view.current_block,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Tuple of value transfers between wallets
        state_changes: Tuple of unit state changes
        origin: Who/what created this transaction and why
        block: Block at which the PendingTransaction was built
        intent_id: Content hash from PendingTransaction (for idempotency)
        exec_id: Unique execution identifier (ledger + sequence + block)
        ledger_name: Name of the ledger that executed this
        execution_block: Block at which it was executed and logged
        sequence_number: Monotonic sequence within the ledger
        contract_ids: Set of contract IDs from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    block: int
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_block: int
    sequence_number: int
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves and not self.state_changes:
            raise ValueError("Transaction must have moves or state_changes")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        lines = [
            f"Transaction {self.exec_id}",
            f"   intent_id : {self.intent_id}",
            f"   block     : {self.block} (executed {self.execution_block})",
            f"   sequence  : {self.sequence_number}",
            f"   origin    : {self.origin}",
            f"   moves ({len(self.moves)}):",
        ]
        for i, move in enumerate(self.moves):
            lines.append(f"      [{i}] {move.quantity} {move.unit_symbol}: {move.source} → {move.dest}")
        for sc in self.state_changes:
            lines.append(f"   state [{sc.unit}]:")
            for field_name, (old_val, new_val) in sc.changed_fields().items():
                lines.append(f"      {field_name}: {old_val!r} → {new_val!r}")
        return "\n".join(lines)


# Transfer rules validate moves and raise a LedgerError if invalid.
TransferRule = Callable[[LedgerView, Move], None]


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a mutable state dict to a tuple of (key, value) pairs sorted by key."""
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    """Convert a frozen state representation back to a deep-copied dict."""
    return copy.deepcopy(dict(frozen_state))


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a unit (asset type or stateful contract) in the ledger.

    Attributes:
        symbol: Short identifier for the unit (e.g., "RWD", "ITEM_7").
        name: Human-readable name for the unit.
        unit_type: Category of the unit (REWARD_TOKEN, COLLECTIBLE, ...).
        min_balance: Minimum allowed balance in any non-system wallet.
        max_balance: Maximum allowed balance in any non-system wallet.
        transfer_rule: Optional function to validate moves involving this unit.
        _frozen_state: Internal frozen state representation.
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: int = 0
    max_balance: int = UNBOUNDED_BALANCE
    transfer_rule: Optional[TransferRule] = None
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """Return the unit's state as a new dict each time."""
        return _thaw_state(self._frozen_state)


def require_wallet_id(wallet_id: Any, role: str) -> str:
    """Return wallet_id if it is a non-blank string, else raise InvalidAddress."""
    if not isinstance(wallet_id, str) or not wallet_id.strip():
        raise InvalidAddress(f"{role} cannot be empty")
    return wallet_id


def require_positive_amount(amount: Any, name: str = "amount") -> int:
    """Return amount if it is a positive int, else raise InvalidAmount."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"{name} must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"{name} must be positive, got {amount}")
    return amount


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def reward_token(symbol: str, name: str, transfer_rule: Optional[TransferRule] = None) -> Unit:
    """
    Create a fungible reward token unit.

    Balances may not go negative outside the system wallet, so any transfer
    that overdraws a wallet is rejected with InsufficientBalance.

    Args:
        symbol: Token symbol (e.g., "RWD").
        name: Full name of the token.
        transfer_rule: Optional rule, e.g. gated_release_rule() for a
                       disbursement gateway's custody wallet.
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_REWARD_TOKEN,
        min_balance=0,
        transfer_rule=transfer_rule,
    )


def collectible(symbol: str, name: str, collection: str, token_id: int) -> Unit:
    """
    Create a semi-fungible collectible unit: one token id of a collection.

    The unit symbol doubles as the catalog entry id when the collectible is
    listed on a bond depository.
    """
    if not collection or not collection.strip():
        raise ValueError("collection cannot be empty")
    if isinstance(token_id, bool) or not isinstance(token_id, int) or token_id < 0:
        raise ValueError(f"token_id must be a non-negative integer, got {token_id!r}")
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_COLLECTIBLE,
        min_balance=0,
        _frozen_state=_freeze_state({'collection': collection, 'token_id': token_id}),
    )
