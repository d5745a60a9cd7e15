"""
bond_depository.py - Bond Depository: Collectibles In, Vesting Reward Claims Out

A bond depository accepts units of listed collectibles and pays for them with
reward tokens that vest linearly over a number of blocks. It ties together:

    catalog.py   - price and remaining inventory per entry
    fees.py      - split of each claim into depositor payout and protocol fee
    vesting.py   - one vesting position per depositor
    gateway.py   - gated release of the reward tokens backing each claim

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - DepositoryTerms: configuration fixed at creation
   - DepositoryState: everything that changes (catalog, positions, totals, ...)

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take terms/state explicitly, return new immutable values
   - No LedgerView, no hidden state

3. ADAPTER FUNCTIONS (load_depository / to_state_dict):
   - The only bridge between the unit state dict and the dataclasses

4. CONVENIENCE FUNCTIONS (compute_*):
   - load + calculate + build ONE PendingTransaction
   - Raise before building anything if a precondition fails

Deposit Pattern (one atomic transaction):
    Move(payout + fee, reward, gateway_custody -> custody)   gated disbursement
    Move(fee,          reward, custody -> fee_beneficiary)   forwarded at once
    Move(amount,       entry,  depositor -> custody)         collectibles in
    UnitStateChange(depository: inventory, position, totals)

    If the gateway is short, the depositor lacks the units, or the depository
    state moved underneath, the ledger rejects the whole transaction and the
    inventory reservation never happens.

Redeem Pattern:
    Move(released, reward, custody -> depositor)
    UnitStateChange(depository: position reduced or removed)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange,
    TransactionOrigin, OriginType,
    SYSTEM_WALLET, UNIT_TYPE_BOND_DEPOSITORY,
    InvalidAddress, InvalidAmount, NotInitialized, AlreadyInitialized, Unauthorized,
    build_transaction, empty_pending_transaction,
    require_positive_amount, require_wallet_id,
    _freeze_state,
)
from .catalog import (
    CatalogEntry,
    catalog_from_state, catalog_to_state,
    calculate_set_terms, calculate_query, calculate_bondable, calculate_reservation,
)
from .fees import FeeSchedule, FeeSplit, calculate_fee_split
from .vesting import (
    VestingPosition, Settlement,
    position_from_state, position_to_state,
    calculate_accrual, calculate_settlement, calculate_pending_payout,
)
from .gateway import disbursement_moves


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class DepositoryTerms:
    """
    Configuration fixed when the depository is created.

    Attributes:
        reward_token: Symbol of the token claims are paid in
        gateway: Symbol of the disbursement gateway backing the claims
        custody_wallet: Wallet holding deposited collectibles and drawn rewards;
                        also the issuer identity the gateway must authorize
        policy_wallet: Identity allowed to run administrative operations
        fee_schedule: Protocol fee rate
    """
    reward_token: str
    gateway: str
    custody_wallet: str
    policy_wallet: str
    fee_schedule: FeeSchedule


@dataclass(frozen=True, slots=True)
class DepositoryState:
    """
    Immutable snapshot of everything that changes over the depository's life.

    vesting_term is None until the depository is initialized. nonce counts the
    transactions built against this depository.
    """
    fee_beneficiary: str
    vesting_term: Optional[int]
    catalog: Mapping[str, CatalogEntry]
    listing_index: Tuple[str, ...]
    positions: Mapping[str, VestingPosition]
    total_principal_bonded: int = 0
    total_payout_given: int = 0
    nonce: int = 0


@dataclass(frozen=True, slots=True)
class DepositResult:
    """Outcome of calculate_deposit(): the new state plus what was created."""
    state: DepositoryState
    entry_id: str
    amount: int
    depositor: str
    split: FeeSplit
    position: VestingPosition

    @property
    def unlock_block(self) -> int:
        return self.position.unlock_block


@dataclass(frozen=True, slots=True)
class RedemptionResult:
    """Outcome of calculate_redemption()."""
    state: DepositoryState
    depositor: str
    settlement: Settlement

    @property
    def released(self) -> int:
        return self.settlement.released

    @property
    def remaining(self) -> int:
        return self.settlement.remaining


# ============================================================================
# UNIT FACTORY AND ADAPTERS
# ============================================================================

def create_bond_depository_unit(
    symbol: str,
    reward_token: str,
    gateway: str,
    custody_wallet: str,
    fee_beneficiary: str,
    policy_wallet: str,
    fee_schedule: FeeSchedule = FeeSchedule(),
) -> Unit:
    """
    Create an uninitialized bond depository unit.

    The depository cannot accept deposits until compute_initialize() sets the
    global vesting term. Its custody_wallet must be authorized on the gateway.

    Example:
        unit = create_bond_depository_unit(
            symbol="BOND",
            reward_token="RWD",
            gateway="GATEWAY",
            custody_wallet="depository",
            fee_beneficiary="dao",
            policy_wallet="admin",
        )
        ledger.register_unit(unit)
    """
    require_wallet_id(custody_wallet, "custody_wallet")
    require_wallet_id(policy_wallet, "policy_wallet")
    _require_beneficiary(fee_beneficiary, custody_wallet)
    if custody_wallet == SYSTEM_WALLET:
        raise InvalidAddress("custody_wallet cannot be the system wallet")
    if not reward_token or not reward_token.strip():
        raise ValueError("reward_token cannot be empty")
    if not gateway or not gateway.strip():
        raise ValueError("gateway cannot be empty")

    terms = DepositoryTerms(
        reward_token=reward_token,
        gateway=gateway,
        custody_wallet=custody_wallet,
        policy_wallet=policy_wallet,
        fee_schedule=fee_schedule,
    )
    state = DepositoryState(
        fee_beneficiary=fee_beneficiary,
        vesting_term=None,
        catalog={},
        listing_index=(),
        positions={},
    )
    return Unit(
        symbol=symbol,
        name=f"Bond Depository paying {reward_token}",
        unit_type=UNIT_TYPE_BOND_DEPOSITORY,
        min_balance=0,
        max_balance=0,
        _frozen_state=_freeze_state(to_state_dict(terms, state)),
    )


def load_depository(view: LedgerView, symbol: str) -> Tuple[DepositoryTerms, DepositoryState]:
    """
    Load a depository from ledger state as typed frozen dataclasses.

    This is the only function that reads depository state from a LedgerView.
    """
    raw = view.get_unit_state(symbol)

    terms = DepositoryTerms(
        reward_token=raw['reward_token'],
        gateway=raw['gateway'],
        custody_wallet=raw['custody_wallet'],
        policy_wallet=raw['policy_wallet'],
        fee_schedule=FeeSchedule(raw['fee_numerator'], raw['fee_denominator']),
    )
    positions = {}
    for depositor, fields in raw.get('positions', {}).items():
        position = position_from_state(fields)
        if position is not None:
            positions[depositor] = position

    state = DepositoryState(
        fee_beneficiary=raw['fee_beneficiary'],
        vesting_term=raw.get('vesting_term'),
        catalog=catalog_from_state(raw.get('catalog', {})),
        listing_index=tuple(raw.get('listing_index', ())),
        positions=positions,
        total_principal_bonded=raw.get('total_principal_bonded', 0),
        total_payout_given=raw.get('total_payout_given', 0),
        nonce=raw.get('nonce', 0),
    )
    return terms, state


def to_state_dict(terms: DepositoryTerms, state: DepositoryState) -> Dict[str, Any]:
    """Inverse of load_depository(): the dict stored as unit state."""
    return {
        'reward_token': terms.reward_token,
        'gateway': terms.gateway,
        'custody_wallet': terms.custody_wallet,
        'policy_wallet': terms.policy_wallet,
        'fee_numerator': terms.fee_schedule.numerator,
        'fee_denominator': terms.fee_schedule.denominator,
        'fee_beneficiary': state.fee_beneficiary,
        'vesting_term': state.vesting_term,
        'catalog': catalog_to_state(state.catalog),
        'listing_index': list(state.listing_index),
        'positions': {
            depositor: position_to_state(position)
            for depositor, position in sorted(state.positions.items())
        },
        'total_principal_bonded': state.total_principal_bonded,
        'total_payout_given': state.total_payout_given,
        'nonce': state.nonce,
    }


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def _require_beneficiary(beneficiary: str, custody_wallet: str) -> str:
    require_wallet_id(beneficiary, "fee_beneficiary")
    if beneficiary in (custody_wallet, SYSTEM_WALLET):
        raise InvalidAddress(f"fee_beneficiary cannot be {beneficiary}")
    return beneficiary


def _require_vesting_term(vesting_term: Any) -> int:
    if isinstance(vesting_term, bool) or not isinstance(vesting_term, int):
        raise InvalidAmount(f"vesting_term must be an integer, got {vesting_term!r}")
    if vesting_term < 0:
        raise InvalidAmount(f"vesting_term cannot be negative, got {vesting_term}")
    return vesting_term


def calculate_deposit(
    terms: DepositoryTerms,
    state: DepositoryState,
    entry_id: str,
    amount: int,
    depositor: str,
    now: int,
) -> DepositResult:
    """
    Bond `amount` units of `entry_id` for `depositor` at block `now`.

    PURE FUNCTION - returns the new state; nothing is reserved until the
    resulting transaction executes.

    Raises:
        InvalidAmount: amount is not a positive integer
        InvalidAddress: depositor is blank, the system wallet or the custody wallet
        NotInitialized: the vesting term has not been set
        NotBondable: entry unpriced, unknown, or short of inventory
    """
    require_positive_amount(amount)
    require_wallet_id(depositor, "depositor")
    if depositor in (SYSTEM_WALLET, terms.custody_wallet):
        raise InvalidAddress(f"{depositor} cannot deposit into its own depository")
    if state.vesting_term is None:
        raise NotInitialized("vesting term has not been set")

    catalog = calculate_reservation(state.catalog, entry_id, amount)
    split = calculate_fee_split(state.catalog[entry_id].unit_price, amount, terms.fee_schedule)
    position = calculate_accrual(state.positions.get(depositor), split.payout, now, state.vesting_term)

    positions = dict(state.positions)
    positions[depositor] = position
    new_state = replace(
        state,
        catalog=catalog,
        positions=positions,
        total_principal_bonded=state.total_principal_bonded + amount,
        total_payout_given=state.total_payout_given + split.payout,
    )
    return DepositResult(
        state=new_state,
        entry_id=entry_id,
        amount=amount,
        depositor=depositor,
        split=split,
        position=position,
    )


def calculate_redemption(state: DepositoryState, depositor: str, now: int) -> RedemptionResult:
    """
    Settle a depositor's position at block `now`.

    An Empty position settles to zero without changing state.
    """
    require_wallet_id(depositor, "depositor")
    settlement = calculate_settlement(state.positions.get(depositor), now)
    if depositor not in state.positions:
        return RedemptionResult(state=state, depositor=depositor, settlement=settlement)

    positions = dict(state.positions)
    if settlement.position is None:
        del positions[depositor]
    else:
        positions[depositor] = settlement.position
    return RedemptionResult(
        state=replace(state, positions=positions),
        depositor=depositor,
        settlement=settlement,
    )


# ============================================================================
# TRANSACTION BUILDERS
# ============================================================================

def _depository_transaction(
    view: LedgerView,
    symbol: str,
    terms: DepositoryTerms,
    new_state: DepositoryState,
    moves: List[Move],
    origin: TransactionOrigin,
) -> PendingTransaction:
    old_raw = view.get_unit_state(symbol)
    new_raw = to_state_dict(terms, new_state)
    if not moves and new_raw == old_raw:
        return empty_pending_transaction(view)
    # Every transaction advances the nonce; repeated requests stay distinct intents
    new_raw['nonce'] = old_raw.get('nonce', 0) + 1
    state_changes = [UnitStateChange(unit=symbol, old_state=old_raw, new_state=new_raw)]
    return build_transaction(view, moves, state_changes, origin)


def _require_policy(terms: DepositoryTerms, symbol: str, caller: str) -> None:
    if caller != terms.policy_wallet:
        raise Unauthorized(f"{symbol}: {caller} is not the policy wallet")


def build_deposit_transaction(
    view: LedgerView,
    symbol: str,
    terms: DepositoryTerms,
    result: DepositResult,
) -> PendingTransaction:
    """Turn a DepositResult into the single atomic deposit transaction."""
    moves = disbursement_moves(view, terms.gateway, terms.custody_wallet, result.split.total)
    if result.split.fee > 0:
        moves.append(Move(
            quantity=result.split.fee,
            unit_symbol=terms.reward_token,
            source=terms.custody_wallet,
            dest=result.state.fee_beneficiary,
            contract_id=f'{symbol}_fee',
        ))
    moves.append(Move(
        quantity=result.amount,
        unit_symbol=result.entry_id,
        source=result.depositor,
        dest=terms.custody_wallet,
        contract_id=f'{symbol}_principal',
    ))
    origin = TransactionOrigin(OriginType.USER_ACTION, result.depositor, symbol, "DEPOSIT")
    return _depository_transaction(view, symbol, terms, result.state, moves, origin)


def build_redemption_transaction(
    view: LedgerView,
    symbol: str,
    terms: DepositoryTerms,
    result: RedemptionResult,
) -> PendingTransaction:
    """Turn a RedemptionResult into a transaction paying the stored depositor."""
    moves = []
    if result.released > 0:
        moves.append(Move(
            quantity=result.released,
            unit_symbol=terms.reward_token,
            source=terms.custody_wallet,
            dest=result.depositor,
            contract_id=f'{symbol}_redeem',
        ))
    origin = TransactionOrigin(OriginType.USER_ACTION, result.depositor, symbol, "REDEEM")
    return _depository_transaction(view, symbol, terms, result.state, moves, origin)


# ============================================================================
# CONVENIENCE FUNCTIONS - load + calculate + build
# ============================================================================

def compute_deposit(
    view: LedgerView,
    symbol: str,
    entry_id: str,
    amount: int,
    depositor: str,
) -> PendingTransaction:
    """
    Build the deposit transaction for `depositor` at the view's current block.

    Example:
        pending = compute_deposit(ledger, "BOND", "ITEM_1", 5, "alice")
        ledger.execute(pending)
    """
    terms, state = load_depository(view, symbol)
    result = calculate_deposit(terms, state, entry_id, amount, depositor, view.current_block)
    return build_deposit_transaction(view, symbol, terms, result)


def compute_redemption(view: LedgerView, symbol: str, depositor: str) -> PendingTransaction:
    """
    Build the redemption transaction for `depositor` at the view's current block.

    Anyone may submit it; the payout always goes to the depositor. Returns an
    empty transaction when nothing is owed or nothing has changed.
    """
    terms, state = load_depository(view, symbol)
    result = calculate_redemption(state, depositor, view.current_block)
    return build_redemption_transaction(view, symbol, terms, result)


def compute_initialize(view: LedgerView, symbol: str, caller: str, vesting_term: int) -> PendingTransaction:
    """
    Set the global vesting term for the first time.

    Raises:
        Unauthorized: caller is not the policy wallet
        AlreadyInitialized: the vesting term is already set
        InvalidAmount: vesting_term is negative or not an integer
    """
    terms, state = load_depository(view, symbol)
    _require_policy(terms, symbol, caller)
    if state.vesting_term is not None:
        raise AlreadyInitialized(f"{symbol} vesting term already set to {state.vesting_term}")
    new_state = replace(state, vesting_term=_require_vesting_term(vesting_term))
    origin = TransactionOrigin(OriginType.ADMINISTRATIVE, caller, symbol, "INITIALIZE")
    return _depository_transaction(view, symbol, terms, new_state, [], origin)


def compute_set_vesting_term(view: LedgerView, symbol: str, caller: str, vesting_term: int) -> PendingTransaction:
    """
    Change the global vesting term. Existing positions keep their windows.

    Raises:
        Unauthorized: caller is not the policy wallet
        NotInitialized: the depository was never initialized
    """
    terms, state = load_depository(view, symbol)
    _require_policy(terms, symbol, caller)
    if state.vesting_term is None:
        raise NotInitialized(f"{symbol} vesting term has not been set")
    new_state = replace(state, vesting_term=_require_vesting_term(vesting_term))
    origin = TransactionOrigin(OriginType.ADMINISTRATIVE, caller, symbol, "SET_VESTING_TERM")
    return _depository_transaction(view, symbol, terms, new_state, [], origin)


def compute_set_terms(
    view: LedgerView,
    symbol: str,
    caller: str,
    entry_ids: Sequence[str],
    prices: Sequence[int],
    supplies: Sequence[int],
) -> PendingTransaction:
    """
    List or re-price catalog entries, adding to their inventory.

    Every entry id must be a registered unit on the view.

    Raises:
        Unauthorized: caller is not the policy wallet
        UnitNotRegistered: an entry id is not a registered unit
        ValueError / InvalidAmount: see calculate_set_terms()
    """
    terms, state = load_depository(view, symbol)
    _require_policy(terms, symbol, caller)
    catalog, listing_index, _ = calculate_set_terms(
        state.catalog, state.listing_index, entry_ids, prices, supplies,
    )
    for entry_id in entry_ids:
        view.get_unit(entry_id)
    new_state = replace(state, catalog=catalog, listing_index=listing_index)
    origin = TransactionOrigin(OriginType.ADMINISTRATIVE, caller, symbol, "SET_TERMS")
    return _depository_transaction(view, symbol, terms, new_state, [], origin)


def compute_set_fee_beneficiary(view: LedgerView, symbol: str, caller: str, beneficiary: str) -> PendingTransaction:
    """
    Redirect future protocol fees.

    Raises:
        Unauthorized: caller is not the policy wallet
        InvalidAddress: beneficiary is blank, the system or the custody wallet
    """
    terms, state = load_depository(view, symbol)
    _require_policy(terms, symbol, caller)
    new_state = replace(state, fee_beneficiary=_require_beneficiary(beneficiary, terms.custody_wallet))
    origin = TransactionOrigin(OriginType.ADMINISTRATIVE, caller, symbol, "SET_FEE_BENEFICIARY")
    return _depository_transaction(view, symbol, terms, new_state, [], origin)


def compute_sweep(
    view: LedgerView,
    symbol: str,
    caller: str,
    unit_symbol: str,
    destination: str,
    quantity: Optional[int] = None,
) -> PendingTransaction:
    """
    Move assets held in the depository's custody wallet to `destination`.

    Sweeps the whole custody balance of `unit_symbol` unless quantity is given.
    Sweeping reward tokens reduces what is available for outstanding claims.

    Raises:
        Unauthorized: caller is not the policy wallet
        InvalidAddress: destination is blank or the custody wallet
        InvalidAmount: quantity is not a positive integer
    """
    terms, state = load_depository(view, symbol)
    _require_policy(terms, symbol, caller)
    require_wallet_id(destination, "destination")
    if destination == terms.custody_wallet:
        raise InvalidAddress("destination cannot be the custody wallet")
    if quantity is None:
        quantity = view.get_balance(terms.custody_wallet, unit_symbol)
        if quantity <= 0:
            return empty_pending_transaction(view)
    require_positive_amount(quantity, "quantity")

    moves = [Move(
        quantity=quantity,
        unit_symbol=unit_symbol,
        source=terms.custody_wallet,
        dest=destination,
        contract_id=f'{symbol}_sweep',
    )]
    origin = TransactionOrigin(OriginType.ADMINISTRATIVE, caller, symbol, "SWEEP")
    return _depository_transaction(view, symbol, terms, state, moves, origin)


# ============================================================================
# QUERIES
# ============================================================================

def query_entry(view: LedgerView, symbol: str, entry_id: str) -> Tuple[bool, int]:
    """(bondable, remaining_supply) for one catalog entry."""
    _, state = load_depository(view, symbol)
    return calculate_query(state.catalog, entry_id)


def list_bondable(view: LedgerView, symbol: str) -> Tuple[List[str], List[int]]:
    """Parallel lists of bondable entry ids and their remaining supply."""
    _, state = load_depository(view, symbol)
    return calculate_bondable(state.catalog, state.listing_index)


def get_position(view: LedgerView, symbol: str, depositor: str) -> Optional[VestingPosition]:
    _, state = load_depository(view, symbol)
    return state.positions.get(depositor)


def pending_payout(view: LedgerView, symbol: str, depositor: str, now: Optional[int] = None) -> int:
    """What a redemption would release at `now` (default: the view's current block)."""
    _, state = load_depository(view, symbol)
    block = view.current_block if now is None else now
    return calculate_pending_payout(state.positions.get(depositor), block)


def get_totals(view: LedgerView, symbol: str) -> Dict[str, int]:
    _, state = load_depository(view, symbol)
    return {
        'total_principal_bonded': state.total_principal_bonded,
        'total_payout_given': state.total_payout_given,
    }
