"""
Health reporting for the stamp gateway.
"""

import logging
from typing import Any, Dict

from .config import GatewayConfig
from .errors import LedgerError
from .ledger import LedgerClient
from .logging_config import audit_log

logger = logging.getLogger("stampgate.health")


class HealthReporter:
    """
    Reports configuration presence and, in strict mode, live connectivity.

    Strict mode makes one block-number read. A failed read is reported as
    ``status: "error"``; it never propagates to the caller.
    """

    def __init__(self, config: GatewayConfig, ledger: LedgerClient):
        self._config = config
        self._ledger = ledger

    def health(self) -> Dict[str, Any]:
        report: Dict[str, Any] = {"status": "ok", "network": self._config.network}
        report.update(self._config.validate_config())

        if not self._config.strict_health:
            audit_log.health_check("ok")
            return report

        try:
            report["block"] = self._ledger.latest_block_number()
        except LedgerError as e:
            logger.warning("strict health check failed: %s", e.detail)
            report["status"] = "error"
            report["message"] = e.detail

        audit_log.health_check(report["status"], report.get("block"))
        return report
