"""
Ledger client module for the stamp gateway.

Provides access to the stamp-registry contract, with a web3-backed
client for real JSON-RPC nodes and an in-process ledger for development
and tests.
"""

import hashlib
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from eth_account import Account
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from web3 import Web3

from .errors import LedgerError

logger = logging.getLogger("stampgate.ledger")

ZERO_ADDRESS = "0x" + "00" * 20
ZERO_HASH = "0x" + "00" * 32

# Minimal ABI of the stamp-registry contract
STAMP_REGISTRY_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "stamp",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "hash", "type": "bytes32"},
            {"name": "entity", "type": "bytes32"},
            {"name": "docType", "type": "uint16"},
            {"name": "state", "type": "uint16"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "exists",
        "stateMutability": "view",
        "inputs": [{"name": "hash", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "getRecord",
        "stateMutability": "view",
        "inputs": [{"name": "hash", "type": "bytes32"}],
        "outputs": [
            {"name": "owner", "type": "address"},
            {"name": "timestamp", "type": "uint256"},
            {"name": "blockNumber", "type": "uint256"},
            {"name": "entity", "type": "bytes32"},
            {"name": "docType", "type": "uint16"},
            {"name": "state", "type": "uint16"},
        ],
    },
]


def load_abi(path: str) -> List[Dict[str, Any]]:
    """Load a contract ABI from a JSON file (bare list or a build artifact with an "abi" key)."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data["abi"]
    return data


def _hash_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:])


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


@dataclass(frozen=True)
class StampRecord:
    """A stamp as recorded on the ledger."""
    owner: str
    timestamp: int
    block_number: int
    entity: str
    doc_type: int
    state: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "timestamp": self.timestamp,
            "blockNumber": self.block_number,
            "entity": self.entity,
            "docType": self.doc_type,
            "state": self.state,
        }


# ============================================================
# Client Interface
# ============================================================

class LedgerClient(ABC):
    """
    Capability over a ledger node hosting the stamp-registry contract.

    Implementations hold no per-request state. Every failure is raised as
    LedgerError carrying the underlying message.
    """

    @abstractmethod
    def estimate_write_cost(self, fingerprint: str, entity: str, doc_type: int, state: int) -> int:
        """Ask the node how much gas a stamp write would consume."""

    @abstractmethod
    def submit_write(self, fingerprint: str, entity: str, doc_type: int, state: int, budget: int) -> str:
        """
        Sign and submit a stamp transaction with the given gas limit.

        Returns:
            The 0x-prefixed transaction hash
        """

    @abstractmethod
    def exists(self, fingerprint: str) -> bool:
        pass

    @abstractmethod
    def get_record(self, fingerprint: str) -> StampRecord:
        """
        Read the raw record for a fingerprint.

        The contract answers with zero-valued fields for fingerprints it has
        never seen, so callers must check exists() first.
        """

    @abstractmethod
    def latest_block_number(self) -> int:
        pass


# ============================================================
# Web3 Client
# ============================================================

class Web3LedgerClient(LedgerClient):
    """
    JSON-RPC ledger client built on web3.py.

    The provider, contract binding and signing account are created once and
    never mutated, so one instance serves all concurrent requests. Reads may
    be retried with exponential backoff; writes are never retried.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str = "",
        private_key: str = "",
        abi: Optional[List[Dict[str, Any]]] = None,
        timeout: float = 30.0,
        read_retries: int = 0,
        read_wait: Optional[Callable] = None,
        web3: Optional[Web3] = None,
    ):
        if web3 is None and rpc_url:
            web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self._w3 = web3
        # Bad settings are kept and reported on first use, so the process
        # still starts and /health can answer.
        self._contract = None
        self._contract_error: Optional[str] = None
        if self._w3 is not None and contract_address:
            try:
                self._contract = self._w3.eth.contract(
                    address=Web3.to_checksum_address(contract_address),
                    abi=abi or STAMP_REGISTRY_ABI,
                )
            except Exception as e:
                self._contract_error = f"CONTRACT_ADDRESS is invalid: {_describe(e)}"
                logger.error(self._contract_error)
        self._account = None
        self._account_error: Optional[str] = None
        if private_key:
            try:
                self._account = Account.from_key(private_key)
            except Exception:
                # the underlying message may echo the key
                self._account_error = "PRIVATE_KEY is invalid"
                logger.error(self._account_error)
        self._read_retries = read_retries
        self._read_wait = read_wait or wait_exponential(multiplier=0.25, max=4)

    @property
    def address(self) -> Optional[str]:
        """Address of the signing account, if one is configured."""
        return self._account.address if self._account else None

    def _require_web3(self) -> Web3:
        if self._w3 is None:
            raise LedgerError("RPC_URL is not configured")
        return self._w3

    def _require_contract(self):
        self._require_web3()
        if self._contract_error:
            raise LedgerError(self._contract_error)
        if self._contract is None:
            raise LedgerError("CONTRACT_ADDRESS is not configured")
        return self._contract

    def _require_account(self):
        if self._account_error:
            raise LedgerError(self._account_error)
        if self._account is None:
            raise LedgerError("PRIVATE_KEY is not configured")
        return self._account

    def _read(self, description: str, fn: Callable[[], Any]) -> Any:
        retrying = Retrying(
            stop=stop_after_attempt(self._read_retries + 1),
            wait=self._read_wait,
            retry=retry_if_exception_type(LedgerError),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning("retrying %s (attempt %d)", description, attempt.retry_state.attempt_number)
                try:
                    return fn()
                except LedgerError:
                    raise
                except Exception as e:
                    raise LedgerError(_describe(e)) from e

    def _stamp_function(self, fingerprint: str, entity: str, doc_type: int, state: int):
        contract = self._require_contract()
        return contract.functions.stamp(_hash_bytes(fingerprint), _hash_bytes(entity), doc_type, state)

    def estimate_write_cost(self, fingerprint: str, entity: str, doc_type: int, state: int) -> int:
        account = self._require_account()
        try:
            fn = self._stamp_function(fingerprint, entity, doc_type, state)
            return int(fn.estimate_gas({"from": account.address}))
        except LedgerError:
            raise
        except Exception as e:
            raise LedgerError(_describe(e)) from e

    def submit_write(self, fingerprint: str, entity: str, doc_type: int, state: int, budget: int) -> str:
        account = self._require_account()
        try:
            fn = self._stamp_function(fingerprint, entity, doc_type, state)
            w3 = self._w3
            tx = fn.build_transaction({
                "from": account.address,
                "nonce": w3.eth.get_transaction_count(account.address, "pending"),
                "gas": budget,
                "chainId": w3.eth.chain_id,
            })
            signed = account.sign_transaction(tx)
            tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise LedgerError(_describe(e)) from e
        return Web3.to_hex(tx_hash)

    def exists(self, fingerprint: str) -> bool:
        contract = self._require_contract()
        return bool(self._read(
            "exists",
            lambda: contract.functions.exists(_hash_bytes(fingerprint)).call(),
        ))

    def get_record(self, fingerprint: str) -> StampRecord:
        contract = self._require_contract()

        def _fetch() -> StampRecord:
            owner, timestamp, block_number, entity, doc_type, state = (
                contract.functions.getRecord(_hash_bytes(fingerprint)).call()
            )
            return StampRecord(
                owner=owner,
                timestamp=int(timestamp),
                block_number=int(block_number),
                entity=Web3.to_hex(entity),
                doc_type=int(doc_type),
                state=int(state),
            )

        return self._read("getRecord", _fetch)

    def latest_block_number(self) -> int:
        w3 = self._require_web3()
        return int(self._read("blockNumber", lambda: w3.eth.block_number))


# ============================================================
# In-Memory Client
# ============================================================

class InMemoryLedgerClient(LedgerClient):
    """
    In-process ledger for development and tests.

    Behaves like the contract as seen through JSON-RPC: unknown fingerprints
    read back as zero-valued records, every write gets a fresh transaction
    hash, and with ``revert_duplicates`` a second stamp of the same
    fingerprint is rejected the way a reverting contract would be.

    Every call is appended to ``calls`` so tests can assert which ledger
    operations a request reached.
    """

    def __init__(
        self,
        owner: str = "0x" + "ab" * 20,
        gas_estimate: int = 85000,
        revert_duplicates: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.owner = owner
        self.gas_estimate = gas_estimate
        self.revert_duplicates = revert_duplicates
        self._clock = clock
        self._records: Dict[bytes, StampRecord] = {}
        self._block = 1
        self._nonce = 0
        self._lock = threading.Lock()
        self.calls: List[str] = []
        self.submitted_budgets: List[int] = []

    def _check_duplicate(self, key: bytes) -> None:
        if self.revert_duplicates and key in self._records:
            raise LedgerError("execution reverted: already stamped")

    def estimate_write_cost(self, fingerprint: str, entity: str, doc_type: int, state: int) -> int:
        with self._lock:
            self.calls.append("estimate_write_cost")
            self._check_duplicate(_hash_bytes(fingerprint))
            return self.gas_estimate

    def submit_write(self, fingerprint: str, entity: str, doc_type: int, state: int, budget: int) -> str:
        key = _hash_bytes(fingerprint)
        with self._lock:
            self.calls.append("submit_write")
            self._check_duplicate(key)
            if budget < self.gas_estimate:
                raise LedgerError("out of gas")
            self._block += 1
            self._nonce += 1
            self._records[key] = StampRecord(
                owner=self.owner,
                timestamp=int(self._clock()),
                block_number=self._block,
                entity="0x" + _hash_bytes(entity).hex(),
                doc_type=doc_type,
                state=state,
            )
            self.submitted_budgets.append(budget)
            digest = hashlib.sha256(key + self._nonce.to_bytes(8, "big")).hexdigest()
            return "0x" + digest

    def exists(self, fingerprint: str) -> bool:
        with self._lock:
            self.calls.append("exists")
            return _hash_bytes(fingerprint) in self._records

    def get_record(self, fingerprint: str) -> StampRecord:
        with self._lock:
            self.calls.append("get_record")
            record = self._records.get(_hash_bytes(fingerprint))
        if record is None:
            return StampRecord(ZERO_ADDRESS, 0, 0, ZERO_HASH, 0, 0)
        return record

    def latest_block_number(self) -> int:
        with self._lock:
            self.calls.append("latest_block_number")
            return self._block


def build_ledger_client(config) -> LedgerClient:
    """Create the ledger client described by a GatewayConfig."""
    if config.is_dev:
        logger.info("using in-memory ledger (network=%s)", config.network)
        return InMemoryLedgerClient()
    abi = load_abi(config.contract_abi_path) if config.contract_abi_path else None
    return Web3LedgerClient(
        rpc_url=config.rpc_url,
        contract_address=config.contract_address,
        private_key=config.private_key,
        abi=abi,
        timeout=config.ledger_timeout_seconds,
        read_retries=config.ledger_read_retries,
    )
