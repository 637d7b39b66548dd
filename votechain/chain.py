"""Gateway to the VoterRegistry and Voting contracts over JSON-RPC.

Every write is signed locally with the admin key and waited on until mined.
Library failures are folded into :class:`ChainError` so routes only deal with
one exception type.
"""
import json
import logging
import os

from eth_account import Account
from flask import current_app
from web3 import Web3
from web3.logs import DISCARD

logger = logging.getLogger(__name__)

EXTENSION_KEY = "votechain.chain"
ABI_DIR = os.path.join(os.path.dirname(__file__), "abi")

# stands in for "no end" on chain
INFINITE_DURATION_SECONDS = 60 * 60 * 24 * 365 * 100


class ChainError(Exception):
    def __init__(self, message, reason=None):
        super().__init__(message)
        self.reason = reason or message


def load_abi(name, override_path=""):
    path = override_path or os.path.join(ABI_DIR, f"{name}.json")
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    # hardhat artifacts wrap the ABI
    return data["abi"] if isinstance(data, dict) else data


class ChainClient:
    def __init__(self, rpc_url, private_key="", registry_address="", voting_address="",
                 registry_abi=None, voting_abi=None, timeout=120, gas_limit=2000000):
        self.rpc_url = rpc_url
        self.registry_address = registry_address
        self.voting_address = voting_address
        self.timeout = timeout
        self.gas_limit = gas_limit
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout})) if rpc_url else None
        self.account = Account.from_key(private_key) if private_key else None
        self.registry_abi = registry_abi or load_abi("VoterRegistry")
        self.voting_abi = voting_abi or load_abi("Voting")

    @classmethod
    def from_config(cls, config):
        return cls(
            config.get("RPC_URL", ""),
            private_key=config.get("ADMIN_PRIVATE_KEY", ""),
            registry_address=config.get("VOTER_REGISTRY_ADDRESS", ""),
            voting_address=config.get("VOTING_CONTRACT_ADDRESS", ""),
            registry_abi=load_abi("VoterRegistry", config.get("VOTER_REGISTRY_ABI_PATH", "")),
            voting_abi=load_abi("Voting", config.get("VOTING_ABI_PATH", "")),
            timeout=config.get("CHAIN_TIMEOUT_SECONDS", 120),
            gas_limit=config.get("TX_GAS_LIMIT", 2000000),
        )

    @property
    def configured(self):
        return bool(self.w3 and self.account and self.registry_address)

    def _contract(self, address, abi):
        if not self.w3 or not address:
            raise ChainError("Blockchain not configured on server.")
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def registry(self):
        return self._contract(self.registry_address, self.registry_abi)

    def voting(self):
        return self._contract(self.voting_address, self.voting_abi)

    def _transact(self, fn):
        if self.account is None:
            raise ChainError("Admin signing key not configured.")
        try:
            tx = fn.build_transaction({
                "from": self.account.address,
                "nonce": self.w3.eth.get_transaction_count(self.account.address, "pending"),
                "gas": self.gas_limit,
                "gasPrice": self.w3.eth.gas_price * 2,
                "chainId": self.w3.eth.chain_id,
            })
            signed = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.timeout)
        except ChainError:
            raise
        except Exception as e:
            raise ChainError(f"Transaction failed: {e}", getattr(e, "message", None) or str(e)) from e
        if receipt["status"] == 0:
            raise ChainError("Transaction reverted", "reverted")
        logger.info("tx %s mined in block %s", Web3.to_hex(tx_hash), receipt["blockNumber"])
        return receipt

    # ---------------------------
    # VoterRegistry
    # ---------------------------
    def is_registered(self, address):
        try:
            return bool(self.registry().functions.isRegistered(Web3.to_checksum_address(address)).call())
        except ChainError:
            raise
        except Exception as e:
            raise ChainError(f"isRegistered failed: {e}", str(e)) from e

    def register_voter(self, address):
        fn = self.registry().functions.registerVoter(Web3.to_checksum_address(address))
        receipt = self._transact(fn)
        return Web3.to_hex(receipt["transactionHash"])

    def ensure_registered(self, address):
        """Returns ``(already_registered, tx_hash)``."""
        if self.is_registered(address):
            logger.info("Voter %s already registered on-chain", address)
            return True, None
        logger.info("Registering voter %s on-chain", address)
        return False, self.register_voter(address)

    # ---------------------------
    # Voting
    # ---------------------------
    def create_poll(self, title, description, options, duration_seconds):
        contract = self.voting()
        receipt = self._transact(contract.functions.createPoll(title, description, list(options), int(duration_seconds)))
        events = contract.events.PollCreated().process_receipt(receipt, errors=DISCARD)
        if not events:
            raise ChainError("PollCreated event not found in transaction receipt")
        return int(events[0]["args"]["pollId"]), Web3.to_hex(receipt["transactionHash"])

    def get_poll(self, poll_id):
        try:
            title, description, options, votes, end_time, is_active = \
                self.voting().functions.getPoll(int(poll_id)).call()
        except ChainError:
            raise
        except Exception as e:
            raise ChainError(f"getPoll({poll_id}) failed: {e}", str(e)) from e
        return {
            "title": title,
            "description": description,
            "options": list(options),
            "votes": [int(v) for v in votes],
            "endTime": int(end_time),
            "isActive": bool(is_active),
        }

    def network_info(self):
        if not self.w3:
            raise ChainError("Blockchain not configured on server.")
        try:
            info = {"chainId": self.w3.eth.chain_id, "blockNumber": self.w3.eth.block_number}
            if self.account is not None:
                balance = self.w3.eth.get_balance(self.account.address)
                info["adminAddress"] = self.account.address
                info["adminBalanceEth"] = str(Web3.from_wei(balance, "ether"))
            return info
        except Exception as e:
            raise ChainError(f"RPC unreachable: {e}", str(e)) from e


def init_chain(app, client=None):
    app.extensions[EXTENSION_KEY] = client or ChainClient.from_config(app.config)


def get_chain():
    return current_app.extensions[EXTENSION_KEY]
