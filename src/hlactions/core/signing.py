# src/hlactions/core/signing.py

"""
EIP-712 signing for exchange actions.

Three schemes:

* L1 actions (orders, cancels, margin, internal transfers): the action is
  msgpack-encoded together with nonce and vault, hashed, and the hash is signed as a
  "phantom agent" in the ``Exchange`` domain.
* User-signed actions (transfers, withdrawals, agent/builder approval, multi-sig
  conversion): the action fields themselves are the typed-data message in the
  ``HyperliquidSignTransaction`` domain.
* Multi-sig execution: the outer signer signs a hash of the whole multi-sig action
  (co-signatures included) as a ``SendMultiSig`` user-signed message.

The network flag is derived from ``MAINNET_API_URL`` only: anything else signs for
the test network.
"""

import copy
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import msgpack
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import keccak, to_hex

from hlactions.core.actions import ACTION_SPECS, Action, ActionKind, SigningScheme
from hlactions.core.constants import (
    AGENT_TYPES,
    APPROVE_AGENT_SIGN_TYPES,
    APPROVE_BUILDER_FEE_SIGN_TYPES,
    CONVERT_TO_MULTI_SIG_USER_SIGN_TYPES,
    EIP712_DOMAIN_TYPES,
    L1_CHAIN_ID,
    MAINNET_API_URL,
    MULTI_SIG_ENVELOPE_SIGN_TYPES,
    SIGNATURE_CHAIN_ID,
    SPOT_TRANSFER_SIGN_TYPES,
    USD_CLASS_TRANSFER_SIGN_TYPES,
    USD_SEND_SIGN_TYPES,
    WITHDRAW_SIGN_TYPES,
    ZERO_ADDRESS,
)
from hlactions.core.errors import SigningError, ValidationError
from hlactions.core.nonce import NonceSource, default_nonce_source

logger = logging.getLogger(__name__)

Signature = Dict[str, Any]
SignTypes = List[Dict[str, str]]

USER_SIGNED_TYPES: Dict[ActionKind, Tuple[SignTypes, str]] = {
    ActionKind.USD_CLASS_TRANSFER: (USD_CLASS_TRANSFER_SIGN_TYPES, "HyperliquidTransaction:UsdClassTransfer"),
    ActionKind.USD_SEND: (USD_SEND_SIGN_TYPES, "HyperliquidTransaction:UsdSend"),
    ActionKind.SPOT_SEND: (SPOT_TRANSFER_SIGN_TYPES, "HyperliquidTransaction:SpotSend"),
    ActionKind.WITHDRAW: (WITHDRAW_SIGN_TYPES, "HyperliquidTransaction:Withdraw"),
    ActionKind.APPROVE_AGENT: (APPROVE_AGENT_SIGN_TYPES, "HyperliquidTransaction:ApproveAgent"),
    ActionKind.APPROVE_BUILDER_FEE: (APPROVE_BUILDER_FEE_SIGN_TYPES, "HyperliquidTransaction:ApproveBuilderFee"),
    ActionKind.CONVERT_TO_MULTI_SIG_USER: (
        CONVERT_TO_MULTI_SIG_USER_SIGN_TYPES,
        "HyperliquidTransaction:ConvertToMultiSigUser",
    ),
}

_untyped = {k for k, spec in ACTION_SPECS.items() if spec.scheme is SigningScheme.USER_SIGNED} - set(USER_SIGNED_TYPES)
if _untyped:
    raise RuntimeError(f"User-signed action kinds without EIP-712 types: {sorted(k.value for k in _untyped)}")


def is_mainnet(base_url: str) -> bool:
    return base_url.rstrip("/") == MAINNET_API_URL


def address_to_bytes(address: str) -> bytes:
    return bytes.fromhex(address[2:] if address.startswith("0x") else address)


def action_hash(action: Any, vault_address: Optional[str], nonce: int, expires_after: Optional[int] = None) -> bytes:
    data = msgpack.packb(action)
    data += nonce.to_bytes(8, "big")
    if vault_address is None:
        data += b"\x00"
    else:
        data += b"\x01"
        data += address_to_bytes(vault_address)
    if expires_after is not None:
        data += b"\x00"
        data += expires_after.to_bytes(8, "big")
    return keccak(data)


def construct_phantom_agent(hash: bytes, is_mainnet: bool) -> Dict[str, Any]:
    return {"source": "a" if is_mainnet else "b", "connectionId": hash}


def l1_payload(phantom_agent: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "domain": {
            "chainId": L1_CHAIN_ID,
            "name": "Exchange",
            "verifyingContract": ZERO_ADDRESS,
            "version": "1",
        },
        "types": {
            "Agent": AGENT_TYPES,
            "EIP712Domain": EIP712_DOMAIN_TYPES,
        },
        "primaryType": "Agent",
        "message": phantom_agent,
    }


def user_signed_payload(primary_type: str, payload_types: SignTypes, action: Dict[str, Any]) -> Dict[str, Any]:
    chain_id = int(action["signatureChainId"], 16)
    return {
        "domain": {
            "name": "HyperliquidSignTransaction",
            "version": "1",
            "chainId": chain_id,
            "verifyingContract": ZERO_ADDRESS,
        },
        "types": {
            primary_type: payload_types,
            "EIP712Domain": EIP712_DOMAIN_TYPES,
        },
        "primaryType": primary_type,
        "message": action,
    }


def sign_inner(wallet, data: Dict[str, Any]) -> Signature:
    structured_data = encode_typed_data(full_message=data)
    try:
        signed = wallet.sign_message(structured_data)
    except Exception as e:
        raise SigningError(f"Wallet failed to sign {data['primaryType']} payload: {e}") from e
    return {"r": to_hex(signed.r), "s": to_hex(signed.s), "v": signed.v}


def with_chain_fields(action: Dict[str, Any], is_mainnet: bool) -> Dict[str, Any]:
    signed_action = dict(action)
    signed_action["signatureChainId"] = SIGNATURE_CHAIN_ID
    signed_action["hyperliquidChain"] = "Mainnet" if is_mainnet else "Testnet"
    return signed_action


# --- Mode 1: L1 ---

def sign_l1_action(
    wallet,
    action: Any,
    active_pool: Optional[str],
    nonce: int,
    is_mainnet: bool,
    expires_after: Optional[int] = None,
) -> Signature:
    hash = action_hash(action, active_pool, nonce, expires_after)
    phantom_agent = construct_phantom_agent(hash, is_mainnet)
    return sign_inner(wallet, l1_payload(phantom_agent))


# --- Mode 2/3: user-signed ---

def sign_user_signed_action(
    wallet,
    action: Dict[str, Any],
    payload_types: SignTypes,
    primary_type: str,
    is_mainnet: bool,
) -> Tuple[Dict[str, Any], Signature]:
    """
    :return: the action with ``signatureChainId``/``hyperliquidChain`` filled in (this
             is what must be submitted) and its signature
    """
    signed_action = with_chain_fields(action, is_mainnet)
    data = user_signed_payload(primary_type, payload_types, signed_action)
    return signed_action, sign_inner(wallet, data)


def sign_usd_transfer_action(wallet, action, is_mainnet):
    return sign_user_signed_action(wallet, action, USD_SEND_SIGN_TYPES, "HyperliquidTransaction:UsdSend", is_mainnet)


def sign_spot_transfer_action(wallet, action, is_mainnet):
    return sign_user_signed_action(
        wallet, action, SPOT_TRANSFER_SIGN_TYPES, "HyperliquidTransaction:SpotSend", is_mainnet
    )


def sign_withdraw_from_bridge_action(wallet, action, is_mainnet):
    return sign_user_signed_action(wallet, action, WITHDRAW_SIGN_TYPES, "HyperliquidTransaction:Withdraw", is_mainnet)


def sign_usd_class_transfer_action(wallet, action, is_mainnet):
    return sign_user_signed_action(
        wallet, action, USD_CLASS_TRANSFER_SIGN_TYPES, "HyperliquidTransaction:UsdClassTransfer", is_mainnet
    )


def sign_agent(wallet, action, is_mainnet):
    return sign_user_signed_action(
        wallet, action, APPROVE_AGENT_SIGN_TYPES, "HyperliquidTransaction:ApproveAgent", is_mainnet
    )


def sign_approve_builder_fee(wallet, action, is_mainnet):
    return sign_user_signed_action(
        wallet, action, APPROVE_BUILDER_FEE_SIGN_TYPES, "HyperliquidTransaction:ApproveBuilderFee", is_mainnet
    )


def sign_convert_to_multi_sig_user_action(wallet, action, is_mainnet):
    return sign_user_signed_action(
        wallet,
        action,
        CONVERT_TO_MULTI_SIG_USER_SIGN_TYPES,
        "HyperliquidTransaction:ConvertToMultiSigUser",
        is_mainnet,
    )


# --- Mode 4: multi-sig ---

def sign_multi_sig_action(
    wallet,
    action: Dict[str, Any],
    is_mainnet: bool,
    vault_address: Optional[str],
    nonce: int,
    expires_after: Optional[int] = None,
) -> Signature:
    action_without_tag = copy.deepcopy(action)
    del action_without_tag["type"]
    multi_sig_action_hash = action_hash(action_without_tag, vault_address, nonce, expires_after)
    envelope = {
        "multiSigActionHash": multi_sig_action_hash,
        "nonce": nonce,
    }
    _, signature = sign_user_signed_action(
        wallet, envelope, MULTI_SIG_ENVELOPE_SIGN_TYPES, "HyperliquidTransaction:SendMultiSig", is_mainnet
    )
    return signature


def sign_multi_sig_l1_action_payload(
    wallet,
    action: Dict[str, Any],
    is_mainnet: bool,
    vault_address: Optional[str],
    nonce: int,
    payload_multi_sig_user: str,
    outer_signer: str,
    expires_after: Optional[int] = None,
) -> Signature:
    """Co-signer signature over an L1 action that will be executed through ``multiSig``."""
    envelope = [payload_multi_sig_user.lower(), outer_signer.lower(), action]
    return sign_l1_action(wallet, envelope, vault_address, nonce, is_mainnet, expires_after)


def sign_multi_sig_user_signed_action_payload(
    wallet,
    action: Dict[str, Any],
    is_mainnet: bool,
    payload_types: SignTypes,
    primary_type: str,
    payload_multi_sig_user: str,
    outer_signer: str,
) -> Signature:
    """Co-signer signature over a user-signed action that will be executed through ``multiSig``."""
    envelope = dict(action)
    envelope["payloadMultiSigUser"] = payload_multi_sig_user.lower()
    envelope["outerSigner"] = outer_signer.lower()
    enriched_types = (
        [payload_types[0]]
        + [
            {"name": "payloadMultiSigUser", "type": "address"},
            {"name": "outerSigner", "type": "address"},
        ]
        + payload_types[1:]
    )
    _, signature = sign_user_signed_action(wallet, envelope, enriched_types, primary_type, is_mainnet)
    return signature


USER_SIGNERS = {
    ActionKind.USD_CLASS_TRANSFER: sign_usd_class_transfer_action,
    ActionKind.USD_SEND: sign_usd_transfer_action,
    ActionKind.SPOT_SEND: sign_spot_transfer_action,
    ActionKind.WITHDRAW: sign_withdraw_from_bridge_action,
    ActionKind.APPROVE_AGENT: sign_agent,
    ActionKind.APPROVE_BUILDER_FEE: sign_approve_builder_fee,
    ActionKind.CONVERT_TO_MULTI_SIG_USER: sign_convert_to_multi_sig_user_action,
}

if set(USER_SIGNERS) != set(USER_SIGNED_TYPES):
    raise RuntimeError("USER_SIGNERS and USER_SIGNED_TYPES cover different action kinds")


def generate_key_pair() -> Tuple[str, str]:
    """Fresh secp256k1 key from a CSPRNG. Returns (private_key_hex, address)."""
    private_key = "0x" + secrets.token_hex(32)
    return private_key, Account.from_key(private_key).address


@dataclass
class SignedEnvelope:
    action: Dict[str, Any]
    nonce: int
    signature: Signature
    vault_address: Optional[str] = None
    expires_after: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "action": self.action,
            "nonce": self.nonce,
            "signature": self.signature,
        }
        if self.vault_address is not None:
            payload["vaultAddress"] = self.vault_address
        if self.expires_after is not None:
            payload["expiresAfter"] = self.expires_after
        return payload


class Signer:
    """
    Signs ``Action``s for one identity. The wallet is anything with ``address`` and an
    eth_account-compatible ``sign_message``.
    """

    def __init__(
        self,
        wallet,
        base_url: str,
        vault_address: Optional[str] = None,
        nonce_source: Optional[NonceSource] = None,
        expires_after: Optional[int] = None,
    ):
        self.wallet = wallet
        self.is_mainnet = is_mainnet(base_url)
        self.vault_address = vault_address
        self.nonce_source = nonce_source or default_nonce_source
        self.expires_after = expires_after

    def next_nonce(self) -> int:
        return self.nonce_source.next()

    def sign(self, action: Action, nonce: int, vault_address: Optional[str] = None) -> SignedEnvelope:
        """
        :param vault_address: only read for multi-sig execution, which names its vault
                              per call; other schemes use the identity's vault
        """
        spec = action.spec
        wire = action.to_wire()
        logger.debug(f"Signing {action.kind.value} ({spec.scheme.value}) nonce={nonce} mainnet={self.is_mainnet}")

        if spec.scheme is SigningScheme.L1:
            vault = self.vault_address if spec.vault_scoped else None
            signature = sign_l1_action(self.wallet, wire, vault, nonce, self.is_mainnet, self.expires_after)
            return SignedEnvelope(wire, nonce, signature, vault, self.expires_after)

        if spec.scheme is SigningScheme.USER_SIGNED:
            signed_action, signature = USER_SIGNERS[action.kind](self.wallet, wire, self.is_mainnet)
            return SignedEnvelope(signed_action, nonce, signature)

        if spec.scheme is SigningScheme.MULTI_SIG:
            signature = sign_multi_sig_action(
                self.wallet, wire, self.is_mainnet, vault_address, nonce, self.expires_after
            )
            return SignedEnvelope(wire, nonce, signature, vault_address, self.expires_after)

        raise ValidationError(f"No signing scheme for action {action.kind.value}")

    def inner_wire(self, action: Action) -> Dict[str, Any]:
        """Wire form of an action about to be wrapped in ``multiSig``."""
        wire = action.to_wire()
        if action.spec.scheme is SigningScheme.USER_SIGNED:
            return with_chain_fields(wire, self.is_mainnet)
        return wire

    def co_sign(
        self,
        action: Action,
        nonce: int,
        multi_sig_user: str,
        outer_signer: str,
        vault_address: Optional[str] = None,
    ) -> Signature:
        """This wallet's co-signature over ``action`` on behalf of ``multi_sig_user``."""
        scheme = action.spec.scheme
        if scheme is SigningScheme.L1:
            return sign_multi_sig_l1_action_payload(
                self.wallet,
                action.to_wire(),
                self.is_mainnet,
                vault_address,
                nonce,
                multi_sig_user,
                outer_signer,
                self.expires_after,
            )
        if scheme is SigningScheme.USER_SIGNED:
            payload_types, primary_type = USER_SIGNED_TYPES[action.kind]
            return sign_multi_sig_user_signed_action_payload(
                self.wallet,
                self.inner_wire(action),
                self.is_mainnet,
                payload_types,
                primary_type,
                multi_sig_user,
                outer_signer,
            )
        raise ValidationError(f"{action.kind.value} cannot be nested inside a multi-sig action")
