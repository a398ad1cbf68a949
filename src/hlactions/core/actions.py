# src/hlactions/core/actions.py

"""
Action envelopes, one pure builder per exchange action type.

Builders take fields that are already resolved (asset indexes, wire orders,
integer micro-USD) and never sign or touch the network. Every ``ActionKind`` must
have an entry in ``ACTION_SPECS``; the module refuses to import otherwise, so a new
kind cannot reach the signer without a signing scheme.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from hlactions.core.constants import SIGNATURE_CHAIN_ID
from hlactions.core.errors import ValidationError
from hlactions.core.numeric import Number, float_to_wire, usd_to_integer_micros
from hlactions.core.types import Cloid


class ActionKind(str, Enum):
    ORDER = "order"
    CANCEL = "cancel"
    CANCEL_BY_CLOID = "cancelByCloid"
    BATCH_MODIFY = "batchModify"
    SCHEDULE_CANCEL = "scheduleCancel"
    UPDATE_LEVERAGE = "updateLeverage"
    UPDATE_ISOLATED_MARGIN = "updateIsolatedMargin"
    USD_CLASS_TRANSFER = "usdClassTransfer"
    USD_SEND = "usdSend"
    SPOT_SEND = "spotSend"
    WITHDRAW = "withdraw3"
    SUB_ACCOUNT_TRANSFER = "subAccountTransfer"
    SUB_ACCOUNT_SPOT_TRANSFER = "subAccountSpotTransfer"
    VAULT_TRANSFER = "vaultTransfer"
    APPROVE_AGENT = "approveAgent"
    APPROVE_BUILDER_FEE = "approveBuilderFee"
    CONVERT_TO_MULTI_SIG_USER = "convertToMultiSigUser"
    MULTI_SIG = "multiSig"
    SET_REFERRER = "setReferrer"
    CREATE_SUB_ACCOUNT = "createSubAccount"


class SigningScheme(Enum):
    L1 = "l1"
    USER_SIGNED = "user_signed"
    MULTI_SIG = "multi_sig"


@dataclass(frozen=True)
class ActionSpec:
    scheme: SigningScheme
    # Whether the identity's vault address scopes the signature and the envelope
    vault_scoped: bool


ACTION_SPECS: Dict[ActionKind, ActionSpec] = {
    ActionKind.ORDER: ActionSpec(SigningScheme.L1, True),
    ActionKind.CANCEL: ActionSpec(SigningScheme.L1, True),
    ActionKind.CANCEL_BY_CLOID: ActionSpec(SigningScheme.L1, True),
    ActionKind.BATCH_MODIFY: ActionSpec(SigningScheme.L1, True),
    ActionKind.SCHEDULE_CANCEL: ActionSpec(SigningScheme.L1, True),
    ActionKind.UPDATE_LEVERAGE: ActionSpec(SigningScheme.L1, True),
    ActionKind.UPDATE_ISOLATED_MARGIN: ActionSpec(SigningScheme.L1, True),
    ActionKind.SUB_ACCOUNT_TRANSFER: ActionSpec(SigningScheme.L1, True),
    ActionKind.SUB_ACCOUNT_SPOT_TRANSFER: ActionSpec(SigningScheme.L1, True),
    ActionKind.VAULT_TRANSFER: ActionSpec(SigningScheme.L1, True),
    ActionKind.SET_REFERRER: ActionSpec(SigningScheme.L1, False),
    ActionKind.CREATE_SUB_ACCOUNT: ActionSpec(SigningScheme.L1, False),
    ActionKind.USD_CLASS_TRANSFER: ActionSpec(SigningScheme.USER_SIGNED, False),
    ActionKind.USD_SEND: ActionSpec(SigningScheme.USER_SIGNED, False),
    ActionKind.SPOT_SEND: ActionSpec(SigningScheme.USER_SIGNED, False),
    ActionKind.WITHDRAW: ActionSpec(SigningScheme.USER_SIGNED, False),
    ActionKind.APPROVE_AGENT: ActionSpec(SigningScheme.USER_SIGNED, False),
    ActionKind.APPROVE_BUILDER_FEE: ActionSpec(SigningScheme.USER_SIGNED, False),
    ActionKind.CONVERT_TO_MULTI_SIG_USER: ActionSpec(SigningScheme.USER_SIGNED, False),
    ActionKind.MULTI_SIG: ActionSpec(SigningScheme.MULTI_SIG, True),
}

_unmapped = set(ActionKind) - set(ACTION_SPECS)
if _unmapped:
    raise RuntimeError(f"Action kinds without a signing scheme: {sorted(k.value for k in _unmapped)}")


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    fields: Mapping[str, Any] = field(default_factory=dict)

    @property
    def spec(self) -> ActionSpec:
        return ACTION_SPECS[self.kind]

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {"type": self.kind.value}
        wire.update(self.fields)
        return wire


def _non_empty(name: str, items: Sequence[Any]) -> None:
    if not items:
        raise ValidationError(f"{name} must not be empty")


# --- Orders / cancels / modifies ---

def cancel_action(cancels: Sequence[Tuple[int, int]]) -> Action:
    """``cancels``: (asset, oid) pairs."""
    _non_empty("cancels", cancels)
    return Action(ActionKind.CANCEL, {
        "cancels": [{"a": asset, "o": oid} for asset, oid in cancels],
    })


def cancel_by_cloid_action(cancels: Sequence[Tuple[int, Cloid]]) -> Action:
    """``cancels``: (asset, cloid) pairs. Note the long field names, unlike ``cancel``."""
    _non_empty("cancels", cancels)
    return Action(ActionKind.CANCEL_BY_CLOID, {
        "cancels": [{"asset": asset, "cloid": cloid.to_raw()} for asset, cloid in cancels],
    })


def batch_modify_action(modifies: Sequence[Tuple[Union[int, Cloid], Dict[str, Any]]]) -> Action:
    """``modifies``: (oid or cloid, replacement order wire) pairs."""
    _non_empty("modifies", modifies)
    return Action(ActionKind.BATCH_MODIFY, {
        "modifies": [
            {"oid": oid.to_raw() if isinstance(oid, Cloid) else oid, "order": order_wire}
            for oid, order_wire in modifies
        ],
    })


def schedule_cancel_action(time: Optional[int] = None) -> Action:
    fields: Dict[str, Any] = {}
    if time is not None:
        fields["time"] = time
    return Action(ActionKind.SCHEDULE_CANCEL, fields)


# --- Margin ---

def update_leverage_action(asset: int, is_cross: bool, leverage: int) -> Action:
    if leverage < 1:
        raise ValidationError(f"leverage must be >= 1, got {leverage}")
    return Action(ActionKind.UPDATE_LEVERAGE, {
        "asset": asset,
        "isCross": is_cross,
        "leverage": leverage,
    })


def update_isolated_margin_action(asset: int, amount: Number) -> Action:
    return Action(ActionKind.UPDATE_ISOLATED_MARGIN, {
        "asset": asset,
        "isBuy": True,
        "ntli": usd_to_integer_micros(amount),
    })


# --- Transfers ---

def usd_class_transfer_action(amount: Number, to_perp: bool, nonce: int, vault_address: Optional[str] = None) -> Action:
    str_amount = float_to_wire(amount)
    if vault_address:
        str_amount += f" subaccount:{vault_address}"
    return Action(ActionKind.USD_CLASS_TRANSFER, {
        "amount": str_amount,
        "toPerp": to_perp,
        "nonce": nonce,
    })


def usd_transfer_action(destination: str, amount: Number, time: int) -> Action:
    return Action(ActionKind.USD_SEND, {
        "destination": destination,
        "amount": float_to_wire(amount),
        "time": time,
    })


def spot_transfer_action(destination: str, token: str, amount: Number, time: int) -> Action:
    return Action(ActionKind.SPOT_SEND, {
        "destination": destination,
        "token": token,
        "amount": float_to_wire(amount),
        "time": time,
    })


def withdraw_action(destination: str, amount: Number, time: int) -> Action:
    return Action(ActionKind.WITHDRAW, {
        "destination": destination,
        "amount": float_to_wire(amount),
        "time": time,
    })


def sub_account_transfer_action(sub_account_user: str, is_deposit: bool, usd: Number) -> Action:
    return Action(ActionKind.SUB_ACCOUNT_TRANSFER, {
        "subAccountUser": sub_account_user,
        "isDeposit": is_deposit,
        "usd": usd_to_integer_micros(usd),
    })


def sub_account_spot_transfer_action(sub_account_user: str, is_deposit: bool, token: str, amount: Number) -> Action:
    return Action(ActionKind.SUB_ACCOUNT_SPOT_TRANSFER, {
        "subAccountUser": sub_account_user,
        "isDeposit": is_deposit,
        "token": token,
        "amount": float_to_wire(amount),
    })


def vault_transfer_action(vault_address: str, is_deposit: bool, usd: Number) -> Action:
    return Action(ActionKind.VAULT_TRANSFER, {
        "vaultAddress": vault_address,
        "isDeposit": is_deposit,
        "usd": usd_to_integer_micros(usd),
    })


# --- Delegation / multi-sig ---

def approve_agent_action(agent_address: str, agent_name: Optional[str], nonce: int) -> Action:
    # An unnamed agent is signed with an empty name; the dispatcher drops the field before submitting
    return Action(ActionKind.APPROVE_AGENT, {
        "agentAddress": agent_address,
        "agentName": agent_name or "",
        "nonce": nonce,
    })


def approve_builder_fee_action(builder: str, max_fee_rate: str, nonce: int) -> Action:
    return Action(ActionKind.APPROVE_BUILDER_FEE, {
        "maxFeeRate": max_fee_rate,
        "builder": builder,
        "nonce": nonce,
    })


def convert_to_multi_sig_user_action(authorized_users: Sequence[str], threshold: int, nonce: int) -> Action:
    """
    Membership is a set: users are sorted before serialising so the hash does not
    depend on the order the caller listed them in.
    """
    if threshold < 1 or threshold > len(authorized_users):
        raise ValidationError(f"threshold must be between 1 and {len(authorized_users)}, got {threshold}")
    signers = {
        "authorizedUsers": sorted(authorized_users),
        "threshold": threshold,
    }
    return Action(ActionKind.CONVERT_TO_MULTI_SIG_USER, {
        "signers": json.dumps(signers),
        "nonce": nonce,
    })


def multi_sig_action(
    multi_sig_user: str,
    outer_signer: str,
    inner_action: Dict[str, Any],
    signatures: Sequence[Dict[str, Any]],
) -> Action:
    """Signatures stay in the order given: each one belongs to a specific co-signer."""
    _non_empty("signatures", signatures)
    return Action(ActionKind.MULTI_SIG, {
        "signatureChainId": SIGNATURE_CHAIN_ID,
        "signatures": list(signatures),
        "payload": {
            "multiSigUser": multi_sig_user.lower(),
            "outerSigner": outer_signer.lower(),
            "action": inner_action,
        },
    })


# --- Account ---

def set_referrer_action(code: str) -> Action:
    return Action(ActionKind.SET_REFERRER, {"code": code})


def create_sub_account_action(name: str) -> Action:
    return Action(ActionKind.CREATE_SUB_ACCOUNT, {"name": name})
