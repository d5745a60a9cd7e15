"""
depository - Bond Depository on an Atomic Double-Entry Ledger

Holders deposit units of listed collectibles and receive reward-token claims
that vest linearly over a number of blocks. A protocol fee is skimmed from
each claim, and the reward balance is released through a gated gateway.

Usage:
    from depository import (
        Ledger, Move, build_transaction, SYSTEM_WALLET,
        reward_token, collectible, gated_release_rule,
        create_gateway_unit, create_bond_depository_unit,
        DisbursementGateway, BondingEngine,
    )

    ledger = Ledger("main")
    ledger.register_unit(create_gateway_unit("GATEWAY", "RWD", "treasury", "admin"))
    ledger.register_unit(reward_token("RWD", "Reward", gated_release_rule("GATEWAY")))
    ledger.register_unit(collectible("ITEM_1", "Item #1", "items", 1))
    ledger.register_unit(create_bond_depository_unit(
        "BOND", "RWD", "GATEWAY", "depository", "dao", "admin",
    ))
    for wallet in ("treasury", "depository", "dao", "admin", "alice"):
        ledger.register_wallet(wallet)

    DisbursementGateway(ledger, "GATEWAY").authorize("admin", "depository")
    engine = BondingEngine(ledger, "BOND")
    engine.initialize("admin", vesting_term=1000)
    engine.set_terms("admin", ["ITEM_1"], [100], [10])
    engine.deposit("ITEM_1", 5, "alice")
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    empty_pending_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    LedgerError,
    InsufficientBalance,
    BalanceConstraintViolation,
    TransferRuleViolation,
    UnitNotRegistered,
    WalletNotRegistered,
    StaleState,
    NotBondable,
    InvalidAmount,
    InvalidAddress,
    NotInitialized,
    AlreadyInitialized,
    Unauthorized,
    UnauthorizedRelease,
    reward_token,
    collectible,
    SYSTEM_WALLET,
    UNIT_TYPE_REWARD_TOKEN,
    UNIT_TYPE_COLLECTIBLE,
    UNIT_TYPE_BOND_DEPOSITORY,
    UNIT_TYPE_DISBURSEMENT_GATEWAY,
)

# Ledger
from .ledger import Ledger

# Components
from .units import (
    CatalogEntry,
    FeeSchedule,
    FeeSplit,
    calculate_fee_split,
    DEFAULT_FEE_NUMERATOR,
    DEFAULT_FEE_DENOMINATOR,
    BASIS_POINTS,
    VestingPosition,
    Settlement,
    create_gateway_unit,
    gated_release_rule,
    compute_authorize,
    compute_revoke,
    compute_disbursement,
    create_bond_depository_unit,
    load_depository,
    compute_deposit,
    compute_redemption,
    compute_initialize,
    compute_set_vesting_term,
    compute_set_terms,
    compute_set_fee_beneficiary,
    compute_sweep,
)

# Events
from .events import (
    DepositoryEvent,
    ENTRY_LISTED,
    BOND_CREATED,
    BOND_REDEEMED,
    entry_listed_event,
    bond_created_event,
    bond_redeemed_event,
)

# Operators
from .engine import DisbursementGateway, BondingEngine, BondReceipt, Redemption

__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'build_transaction', 'empty_pending_transaction',
    'Unit', 'UnitStateChange', 'ExecuteResult',
    'reward_token', 'collectible', 'SYSTEM_WALLET',
    'UNIT_TYPE_REWARD_TOKEN', 'UNIT_TYPE_COLLECTIBLE',
    'UNIT_TYPE_BOND_DEPOSITORY', 'UNIT_TYPE_DISBURSEMENT_GATEWAY',
    # Errors
    'LedgerError', 'InsufficientBalance', 'BalanceConstraintViolation',
    'TransferRuleViolation', 'UnitNotRegistered', 'WalletNotRegistered',
    'StaleState', 'NotBondable', 'InvalidAmount', 'InvalidAddress',
    'NotInitialized', 'AlreadyInitialized', 'Unauthorized', 'UnauthorizedRelease',
    # Ledger
    'Ledger',
    # Components
    'CatalogEntry', 'FeeSchedule', 'FeeSplit', 'calculate_fee_split',
    'DEFAULT_FEE_NUMERATOR', 'DEFAULT_FEE_DENOMINATOR',
    'BASIS_POINTS', 'VestingPosition', 'Settlement',
    'create_gateway_unit', 'gated_release_rule',
    'compute_authorize', 'compute_revoke', 'compute_disbursement',
    'create_bond_depository_unit', 'load_depository',
    'compute_deposit', 'compute_redemption', 'compute_initialize',
    'compute_set_vesting_term', 'compute_set_terms',
    'compute_set_fee_beneficiary', 'compute_sweep',
    # Events
    'DepositoryEvent', 'ENTRY_LISTED', 'BOND_CREATED', 'BOND_REDEEMED',
    'entry_listed_event', 'bond_created_event', 'bond_redeemed_event',
    # Operators
    'DisbursementGateway', 'BondingEngine', 'BondReceipt', 'Redemption',
]

__version__ = '1.0.0'
