"""
gateway.py - Disbursement Gateway: Custody of the Reward Balance

The gateway holds the reward-token balance in its custody wallet and releases
it only to issuers on its authorization list. The list lives in the gateway
unit's state and is changed only by the gateway's policy wallet.

Enforcement happens twice:
    - disbursement_moves() refuses to build a release for an unauthorized issuer
    - gated_release_rule() is installed as the reward token's transfer rule, so
      the ledger rejects ANY move out of the custody wallet whose destination
      is not authorized, however the move was built

The gateway does not pre-check its balance. A release larger than the custody
balance is rejected by the ledger with InsufficientBalance, aborting the whole
enclosing transaction.

Every transaction the gateway builds on its own increments the `nonce` in its
state, so two identical requests are two distinct intents, never a duplicate.

Pattern:
    Authorize:  state change only, authorized += {issuer}, nonce += 1
    Disburse:   Move(amount, reward_token, custody_wallet, issuer), nonce += 1
"""

from __future__ import annotations
from typing import Iterable, List

from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange,
    TransactionOrigin, OriginType, TransferRule,
    UNIT_TYPE_DISBURSEMENT_GATEWAY,
    Unauthorized, UnauthorizedRelease, InvalidAddress,
    build_transaction, empty_pending_transaction,
    require_positive_amount, require_wallet_id,
    _freeze_state,
)


def create_gateway_unit(
    symbol: str,
    reward_token: str,
    custody_wallet: str,
    policy_wallet: str,
    authorized: Iterable[str] = (),
) -> Unit:
    """
    Create a disbursement gateway unit.

    Args:
        symbol: Gateway unit symbol (e.g., "GATEWAY")
        reward_token: Symbol of the reward token it holds
        custody_wallet: Wallet holding the reward balance
        policy_wallet: Identity allowed to authorize and revoke issuers
        authorized: Initial authorization set

    Returns:
        Unit whose state stores the gateway configuration and authorization set.
        The gateway unit itself is never held by wallets (max_balance 0).
    """
    require_wallet_id(custody_wallet, "custody_wallet")
    require_wallet_id(policy_wallet, "policy_wallet")
    if not reward_token or not reward_token.strip():
        raise ValueError("reward_token cannot be empty")
    issuers = sorted({require_wallet_id(w, "issuer") for w in authorized})
    if custody_wallet in issuers:
        raise InvalidAddress("custody_wallet cannot authorize itself")

    return Unit(
        symbol=symbol,
        name=f"Disbursement Gateway for {reward_token}",
        unit_type=UNIT_TYPE_DISBURSEMENT_GATEWAY,
        min_balance=0,
        max_balance=0,
        _frozen_state=_freeze_state({
            'reward_token': reward_token,
            'custody_wallet': custody_wallet,
            'policy_wallet': policy_wallet,
            'authorized': issuers,
            'nonce': 0,
        }),
    )


def gated_release_rule(gateway_symbol: str) -> TransferRule:
    """
    Build a transfer rule for the reward token that gates the custody wallet.

    Moves out of the gateway's custody wallet must go to an authorized issuer;
    all other moves of the token are unrestricted.
    """
    def gated_release(view: LedgerView, move: Move) -> None:
        state = view.get_unit_state(gateway_symbol)
        if move.unit_symbol != state['reward_token']:
            return
        if move.source != state['custody_wallet']:
            return
        if move.dest not in state['authorized']:
            raise UnauthorizedRelease(
                f"{gateway_symbol}: {move.dest} is not authorized to receive disbursements"
            )

    return gated_release


def is_authorized(view: LedgerView, gateway_symbol: str, issuer: str) -> bool:
    return issuer in view.get_unit_state(gateway_symbol)['authorized']


def custody_balance(view: LedgerView, gateway_symbol: str) -> int:
    state = view.get_unit_state(gateway_symbol)
    return view.get_balance(state['custody_wallet'], state['reward_token'])


def _require_policy(state, gateway_symbol: str, caller: str) -> None:
    if caller != state['policy_wallet']:
        raise Unauthorized(f"{gateway_symbol}: {caller} is not the policy wallet")


def _next_nonce(state):
    return {**state, 'nonce': state.get('nonce', 0) + 1}


def _authorization_change(
    view: LedgerView,
    gateway_symbol: str,
    caller: str,
    issuer: str,
    grant: bool,
) -> PendingTransaction:
    state = view.get_unit_state(gateway_symbol)
    _require_policy(state, gateway_symbol, caller)
    require_wallet_id(issuer, "issuer")
    if grant and issuer == state['custody_wallet']:
        raise InvalidAddress("custody_wallet cannot authorize itself")

    current = set(state['authorized'])
    if (issuer in current) == grant:
        return empty_pending_transaction(view)

    updated = current | {issuer} if grant else current - {issuer}
    new_state = _next_nonce({**state, 'authorized': sorted(updated)})
    origin = TransactionOrigin(
        OriginType.ADMINISTRATIVE, caller, gateway_symbol,
        "AUTHORIZE" if grant else "REVOKE",
    )
    return build_transaction(
        view, [],
        [UnitStateChange(unit=gateway_symbol, old_state=state, new_state=new_state)],
        origin,
    )


def compute_authorize(view: LedgerView, gateway_symbol: str, caller: str, issuer: str) -> PendingTransaction:
    """
    Add an issuer to the authorization set. Idempotent.

    Raises:
        Unauthorized: if caller is not the gateway's policy wallet.
        InvalidAddress: if issuer is blank or the custody wallet itself.
    """
    return _authorization_change(view, gateway_symbol, caller, issuer, grant=True)


def compute_revoke(view: LedgerView, gateway_symbol: str, caller: str, issuer: str) -> PendingTransaction:
    """
    Remove an issuer from the authorization set. Idempotent.

    Raises:
        Unauthorized: if caller is not the gateway's policy wallet.
    """
    return _authorization_change(view, gateway_symbol, caller, issuer, grant=False)


def disbursement_moves(view: LedgerView, gateway_symbol: str, issuer: str, amount: int) -> List[Move]:
    """
    Moves releasing `amount` reward tokens from custody to `issuer`.

    Used on its own by compute_disbursement() and embedded by callers that
    need the release inside a larger atomic transaction.

    Raises:
        InvalidAmount: if amount is not a positive integer.
        Unauthorized: if issuer is not in the authorization set.
    """
    require_positive_amount(amount)
    state = view.get_unit_state(gateway_symbol)
    if issuer not in state['authorized']:
        raise Unauthorized(f"{gateway_symbol}: {issuer} is not an authorized issuer")
    return [
        Move(
            quantity=amount,
            unit_symbol=state['reward_token'],
            source=state['custody_wallet'],
            dest=issuer,
            contract_id=f'{gateway_symbol}_disburse',
        ),
    ]


def compute_disbursement(view: LedgerView, gateway_symbol: str, issuer: str, amount: int) -> PendingTransaction:
    """
    Release `amount` reward tokens to an authorized issuer.

    Repeating the same request builds a new transaction each time.
    """
    moves = disbursement_moves(view, gateway_symbol, issuer, amount)
    state = view.get_unit_state(gateway_symbol)
    origin = TransactionOrigin(OriginType.CONTRACT, issuer, gateway_symbol, "DISBURSE")
    return build_transaction(
        view, moves,
        [UnitStateChange(unit=gateway_symbol, old_state=state, new_state=_next_nonce(state))],
        origin,
    )
