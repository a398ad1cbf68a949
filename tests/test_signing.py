# tests/test_signing.py

import copy

import pytest

from hlactions.core import actions
from hlactions.core.constants import LOCAL_API_URL, MAINNET_API_URL, MULTI_SIG_ENVELOPE_SIGN_TYPES, TESTNET_API_URL
from hlactions.core.errors import SigningError, ValidationError
from hlactions.core.nonce import NonceSource
from hlactions.core.signing import (
    USER_SIGNED_TYPES,
    Signer,
    action_hash,
    construct_phantom_agent,
    is_mainnet,
    l1_payload,
    user_signed_payload,
    with_chain_fields,
)

from conftest import BrokenWallet, recover

VAULT = "0x" + "ab" * 20


def recover_l1(action, vault, nonce, signature, mainnet, expires_after=None):
    connection_id = action_hash(action, vault, nonce, expires_after)
    return recover(l1_payload(construct_phantom_agent(connection_id, mainnet)), signature)


def test_is_mainnet_only_for_the_mainnet_url():
    assert is_mainnet(MAINNET_API_URL)
    assert is_mainnet(MAINNET_API_URL + "/")
    assert not is_mainnet(TESTNET_API_URL)
    assert not is_mainnet(LOCAL_API_URL)


def test_action_hash_depends_on_nonce_vault_and_expiry():
    action = actions.schedule_cancel_action().to_wire()
    base = action_hash(action, None, 1)
    assert len(base) == 32
    assert base == action_hash(copy.deepcopy(action), None, 1)
    assert base != action_hash(action, None, 2)
    assert base != action_hash(action, VAULT, 1)
    assert base != action_hash(action, None, 1, expires_after=10)


def test_phantom_agent_source():
    assert construct_phantom_agent(b"\x00" * 32, True)["source"] == "a"
    assert construct_phantom_agent(b"\x00" * 32, False)["source"] == "b"


@pytest.mark.parametrize("base_url,mainnet", [(MAINNET_API_URL, True), (TESTNET_API_URL, False)])
def test_l1_signature_recovers_to_signer(wallet, base_url, mainnet):
    signer = Signer(wallet, base_url, nonce_source=NonceSource())
    action = actions.update_leverage_action(1, True, 5)
    envelope = signer.sign(action, 1_700_000_000_000)

    assert envelope.vault_address is None
    assert recover_l1(envelope.action, None, envelope.nonce, envelope.signature, mainnet) == wallet.address
    assert recover_l1(envelope.action, None, envelope.nonce, envelope.signature, not mainnet) != wallet.address


def test_vault_scoped_l1_action_binds_the_vault(wallet):
    signer = Signer(wallet, MAINNET_API_URL, vault_address=VAULT)
    envelope = signer.sign(actions.cancel_action([(1, 7)]), 5)

    assert envelope.to_payload()["vaultAddress"] == VAULT
    assert recover_l1(envelope.action, VAULT, 5, envelope.signature, True) == wallet.address


def test_account_level_l1_action_ignores_the_vault(wallet):
    signer = Signer(wallet, MAINNET_API_URL, vault_address=VAULT)
    envelope = signer.sign(actions.set_referrer_action("CODE"), 5)

    assert "vaultAddress" not in envelope.to_payload()
    assert recover_l1(envelope.action, None, 5, envelope.signature, True) == wallet.address


def test_expires_after_goes_into_hash_and_envelope(wallet):
    signer = Signer(wallet, MAINNET_API_URL, expires_after=1_800_000_000_000)
    envelope = signer.sign(actions.schedule_cancel_action(), 5)

    assert envelope.to_payload()["expiresAfter"] == 1_800_000_000_000
    assert recover_l1(envelope.action, None, 5, envelope.signature, True, 1_800_000_000_000) == wallet.address


@pytest.mark.parametrize("base_url,chain", [(MAINNET_API_URL, "Mainnet"), (TESTNET_API_URL, "Testnet")])
def test_user_signed_action_recovers_to_signer(wallet, base_url, chain):
    signer = Signer(wallet, base_url, vault_address=VAULT)
    action = actions.usd_transfer_action("0x" + "cd" * 20, "12.5", 1_700_000_000_000)
    envelope = signer.sign(action, 1_700_000_000_000)

    assert envelope.action["hyperliquidChain"] == chain
    assert envelope.action["signatureChainId"] == "0x66eee"
    assert "vaultAddress" not in envelope.to_payload()

    payload_types, primary_type = USER_SIGNED_TYPES[action.kind]
    data = user_signed_payload(primary_type, payload_types, envelope.action)
    assert data["domain"]["chainId"] == 421614
    assert recover(data, envelope.signature) == wallet.address


def test_multi_sig_outer_signature(wallet, other_wallet):
    multi_sig_user = "0x" + "ef" * 20
    nonce = 1_700_000_000_000
    inner = actions.schedule_cancel_action()

    co_signature = Signer(other_wallet, MAINNET_API_URL).co_sign(inner, nonce, multi_sig_user, wallet.address)
    hashed = [multi_sig_user, wallet.address.lower(), inner.to_wire()]
    assert recover_l1(hashed, None, nonce, co_signature, True) == other_wallet.address

    action = actions.multi_sig_action(multi_sig_user, wallet.address, inner.to_wire(), [co_signature])
    envelope = Signer(wallet, MAINNET_API_URL).sign(action, nonce)

    without_tag = dict(envelope.action)
    del without_tag["type"]
    message = with_chain_fields({"multiSigActionHash": action_hash(without_tag, None, nonce), "nonce": nonce}, True)
    data = user_signed_payload("HyperliquidTransaction:SendMultiSig", MULTI_SIG_ENVELOPE_SIGN_TYPES, message)
    assert recover(data, envelope.signature) == wallet.address


def test_co_signing_a_user_signed_action(wallet, other_wallet):
    multi_sig_user = "0x" + "ef" * 20
    inner = actions.usd_transfer_action("0x" + "cd" * 20, 1, 99)
    signer = Signer(other_wallet, TESTNET_API_URL)
    signature = signer.co_sign(inner, 99, multi_sig_user, wallet.address)

    message = signer.inner_wire(inner)
    message["payloadMultiSigUser"] = multi_sig_user
    message["outerSigner"] = wallet.address.lower()
    payload_types, primary_type = USER_SIGNED_TYPES[inner.kind]
    enriched = (
        [payload_types[0]]
        + [{"name": "payloadMultiSigUser", "type": "address"}, {"name": "outerSigner", "type": "address"}]
        + payload_types[1:]
    )
    assert recover(user_signed_payload(primary_type, enriched, message), signature) == other_wallet.address


def test_multi_sig_cannot_be_nested(wallet):
    action = actions.multi_sig_action("0xabc", "0xdef", {"type": "scheduleCancel"}, [{"r": "0x1", "s": "0x1", "v": 27}])
    with pytest.raises(ValidationError):
        Signer(wallet, MAINNET_API_URL).co_sign(action, 1, "0xabc", "0xdef")


def test_wallet_failure_is_a_signing_error():
    signer = Signer(BrokenWallet(), MAINNET_API_URL)
    with pytest.raises(SigningError):
        signer.sign(actions.schedule_cancel_action(), 1)
