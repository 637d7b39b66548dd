import base64

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from votechain.crypto_utils import build_challenge, derive_password, make_nonce, recover_signer, verify_signature


@pytest.fixture
def account():
    return Account.create()


def sign(account, message):
    signed = Account.sign_message(encode_defunct(text=message), private_key=account.key)
    return "0x" + bytes(signed.signature).hex()


def test_challenge_format():
    msg = build_challenge("0xABCDEF", "vote1", "n0nce")
    assert msg == "Sign to download invoice.\nAddress:0xabcdef\nVote:vote1\nNonce:n0nce"
    assert make_nonce() != make_nonce()


def test_signature_roundtrip(account):
    msg = build_challenge(account.address, "v1", make_nonce())
    signature = sign(account, msg)
    assert recover_signer(msg, signature) == account.address
    assert verify_signature(account.address.lower(), signature, msg)
    # accepted without the 0x prefix too
    assert verify_signature(account.address, signature[2:], msg)


def test_signature_rejects_other_signer(account):
    other = Account.create()
    msg = "hello"
    assert not verify_signature(account.address, sign(other, msg), msg)


def test_signature_rejects_garbage(account):
    assert not verify_signature(account.address, "0xzz", "hello")
    assert not verify_signature(account.address, "", "hello")
    assert not verify_signature("", "0x00", "hello")


def test_derive_password(account):
    signature = sign(account, "hello")
    password = derive_password(signature, "vote-1")
    assert password == derive_password(signature[2:], "vote-1")
    assert password != derive_password(signature, "vote-2")
    assert "=" not in password
    assert len(base64.urlsafe_b64decode(password + "==")) == 16
