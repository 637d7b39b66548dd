import base64
import secrets
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from eth_account import Account
from eth_account.messages import encode_defunct

# Wallet challenge -> signature -> PDF password
# 1. server hands out a challenge bound to (address, vote, nonce)
# 2. wallet signs it (EIP-191 personal_sign)
# 3. signer is recovered and compared with the voter's wallet
# 4. the signature itself seeds the PDF password, so only the wallet can re-derive it


def make_nonce(nbytes=16):
    return secrets.token_hex(nbytes)


def random_owner_password():
    return secrets.token_hex(24)


def build_challenge(address: str, vote_id, nonce: str) -> str:
    return f"Sign to download invoice.\nAddress:{address.lower()}\nVote:{vote_id}\nNonce:{nonce}"


def recover_signer(message: str, signature: str) -> str:
    if not signature.startswith("0x"):
        signature = "0x" + signature
    return Account.recover_message(encode_defunct(text=message), signature=signature)


def verify_signature(address: str, signature: str, message: str) -> bool:
    if not (address and signature and message):
        return False
    try:
        return recover_signer(message, signature).lower() == address.lower()
    except Exception:
        # malformed hex, wrong length, bad v: all mean "not signed by address"
        return False


def _signature_bytes(signature: str) -> bytes:
    s = signature[2:] if signature.startswith("0x") else signature
    return bytes.fromhex(s)


# HKDF-SHA256 over sha3(signature), salt = vote id, 16 bytes, base64url without padding
def derive_password(signature: str, vote_id, length=16) -> str:
    digest = hashes.Hash(hashes.SHA3_256())
    digest.update(_signature_bytes(signature))
    ikm = digest.finalize()
    key = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=str(vote_id).encode("utf-8"),
        info=b"pdf-pass",
    ).derive(ikm)
    return base64.urlsafe_b64encode(key).decode("ascii").rstrip("=")
