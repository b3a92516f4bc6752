"""
Stamp Gateway

Anchors document fingerprints on an EVM ledger through a stamp-registry
contract, and proves later that a fingerprint was recorded.
"""

__version__ = "1.0.0"

from .config import GatewayConfig
from .errors import (
    ErrorKind,
    GatewayError,
    ValidationError,
    AuthorizationError,
    NotFoundError,
    LedgerError,
    RoutingError,
    RequestError,
)
from .gas import GasBudgeter, budget
from .ledger import LedgerClient, Web3LedgerClient, InMemoryLedgerClient, StampRecord
from .reader import RecordReader
from .submitter import TransactionSubmitter, StampReceipt
from .health import HealthReporter

__all__ = [
    "GatewayConfig",
    "ErrorKind",
    "GatewayError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "LedgerError",
    "RoutingError",
    "RequestError",
    "GasBudgeter",
    "budget",
    "LedgerClient",
    "Web3LedgerClient",
    "InMemoryLedgerClient",
    "StampRecord",
    "RecordReader",
    "TransactionSubmitter",
    "StampReceipt",
    "HealthReporter",
]
