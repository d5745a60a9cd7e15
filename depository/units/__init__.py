"""
Units module - Components of a bond depository.

- catalog: prices and inventory per catalog entry
- fees: protocol fee split of each bond claim
- vesting: per-depositor linear vesting positions
- gateway: disbursement gateway unit and its release rule
- bond_depository: the depository unit tying the above together

All factories and compute functions are re-exported here for convenience.
"""

# Asset catalog
from .catalog import (
    CatalogEntry,
    catalog_from_state,
    catalog_to_state,
    calculate_set_terms,
    calculate_query,
    calculate_bondable,
    calculate_reservation,
)

# Fee split
from .fees import (
    DEFAULT_FEE_NUMERATOR,
    DEFAULT_FEE_DENOMINATOR,
    FeeSchedule,
    FeeSplit,
    calculate_fee_split,
)

# Vesting positions
from .vesting import (
    BASIS_POINTS,
    VestingPosition,
    Settlement,
    position_from_state,
    position_to_state,
    calculate_accrual,
    calculate_vested_fraction,
    calculate_settlement,
    calculate_pending_payout,
)

# Disbursement gateway
from .gateway import (
    create_gateway_unit,
    gated_release_rule,
    is_authorized,
    custody_balance,
    compute_authorize,
    compute_revoke,
    disbursement_moves,
    compute_disbursement,
)

# Bond depository
from .bond_depository import (
    DepositoryTerms,
    DepositoryState,
    DepositResult,
    RedemptionResult,
    create_bond_depository_unit,
    load_depository,
    to_state_dict,
    calculate_deposit,
    calculate_redemption,
    build_deposit_transaction,
    build_redemption_transaction,
    compute_deposit,
    compute_redemption,
    compute_initialize,
    compute_set_vesting_term,
    compute_set_terms,
    compute_set_fee_beneficiary,
    compute_sweep,
    query_entry,
    list_bondable,
    get_position,
    pending_payout,
    get_totals,
)
