"""
Configuration module for the stamp gateway.

All settings come from environment variables, are read once at process
start into an immutable GatewayConfig, and are passed explicitly to the
components that need them.
"""

import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from .security import sanitize_for_logging


GAS_MODE_ESTIMATE = "estimate"
GAS_MODE_FIXED = "fixed"
GAS_MODES = (GAS_MODE_ESTIMATE, GAS_MODE_FIXED)

# Network name that selects the in-process ledger instead of a JSON-RPC node
DEV_NETWORK = "dev"

DEFAULT_FIXED_GAS_LIMIT = 300000


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


# ============================================================
# Gateway Configuration
# ============================================================

@dataclass(frozen=True)
class GatewayConfig:
    """
    Process-wide settings, fixed at startup.

    Never mutated during request handling, so instances are shared across
    concurrent requests without locking.
    """
    rpc_url: str = ""
    contract_address: str = ""
    private_key: str = ""
    api_key: str = ""
    protect_reads: bool = False
    network: str = "polygon"
    contract_abi_path: str = ""
    gas_mode: str = GAS_MODE_ESTIMATE
    fixed_gas_limit: int = DEFAULT_FIXED_GAS_LIMIT
    allow_duplicate_writes: bool = True
    strict_health: bool = False
    ledger_timeout_seconds: float = 30.0
    ledger_read_retries: int = 0
    log_level: str = "INFO"
    log_json: bool = True
    log_file: str = ""
    debug: bool = False

    def __post_init__(self):
        if self.gas_mode not in GAS_MODES:
            raise ValueError(f"GAS_MODE must be one of {GAS_MODES}, got {self.gas_mode!r}")
        if self.fixed_gas_limit <= 0:
            raise ValueError("FIXED_GAS_LIMIT must be positive")
        if self.ledger_read_retries < 0:
            raise ValueError("LEDGER_READ_RETRIES must not be negative")
        if self.ledger_timeout_seconds <= 0:
            raise ValueError("LEDGER_TIMEOUT_SECONDS must be positive")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "GatewayConfig":
        """Build the configuration from environment variables."""
        if env is None:
            env = os.environ
        return cls(
            rpc_url=env.get("RPC_URL", ""),
            contract_address=env.get("CONTRACT_ADDRESS", ""),
            private_key=env.get("PRIVATE_KEY", ""),
            api_key=env.get("API_KEY", ""),
            protect_reads=_env_bool(env, "PROTECT_READS", False),
            network=env.get("NETWORK", "polygon") or "polygon",
            contract_abi_path=env.get("CONTRACT_ABI_PATH", ""),
            gas_mode=(env.get("GAS_MODE", "") or GAS_MODE_ESTIMATE).strip().lower(),
            fixed_gas_limit=_env_int(env, "FIXED_GAS_LIMIT", DEFAULT_FIXED_GAS_LIMIT),
            allow_duplicate_writes=_env_bool(env, "ALLOW_DUPLICATE_WRITES", True),
            strict_health=_env_bool(env, "STRICT_HEALTH", False),
            ledger_timeout_seconds=_env_float(env, "LEDGER_TIMEOUT_SECONDS", 30.0),
            ledger_read_retries=_env_int(env, "LEDGER_READ_RETRIES", 0),
            log_level=(env.get("LOG_LEVEL", "") or "INFO").upper(),
            log_json=_env_bool(env, "LOG_JSON", True),
            log_file=env.get("LOG_FILE", ""),
            debug=_env_bool(env, "STAMPGATE_DEBUG", False),
        )

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_key)

    @property
    def is_dev(self) -> bool:
        return self.network == DEV_NETWORK

    def is_debug(self) -> bool:
        """Check if debug mode is enabled (STAMPGATE_DEBUG)."""
        return self.debug

    def log_summary(self) -> Dict[str, Any]:
        """Settings as a dict safe to log, with credentials masked."""
        return sanitize_for_logging(asdict(self))

    def validate_config(self) -> Dict[str, bool]:
        """
        Report which required settings are present.
        Presence only: values are not checked against the ledger.
        """
        return {
            "rpc": bool(self.rpc_url),
            "contract": bool(self.contract_address),
            "apiKey": bool(self.api_key),
        }

    def __repr__(self) -> str:
        # Keep credentials out of tracebacks and logs
        return (
            f"GatewayConfig(network={self.network!r}, rpc_url={self.rpc_url!r}, "
            f"contract_address={self.contract_address!r}, gas_mode={self.gas_mode!r}, "
            f"auth_enabled={self.auth_enabled})"
        )
