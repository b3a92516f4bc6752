"""
Transaction submitter: the write path.

Validation, optional duplicate check, estimation, budgeting and
submission run strictly in that order. Nothing is retried and there is
no local state to roll back.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import LedgerError, ValidationError
from .gas import GasBudgeter
from .ledger import LedgerClient
from .logging_config import audit_log
from .security import validate_fixed_hash, validate_uint16


@dataclass(frozen=True)
class StampReceipt:
    transaction_id: str
    budget_used: int
    gas_estimate: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": True, "hash": self.transaction_id, "gasLimit": self.budget_used}


class TransactionSubmitter:
    """
    Orchestrates a stamp write.

    With ``allow_duplicate_writes`` disabled, a fingerprint the ledger
    already knows is refused before any fee-charging call is made.
    """

    def __init__(self, ledger: LedgerClient, budgeter: GasBudgeter, allow_duplicate_writes: bool = True):
        self._ledger = ledger
        self._budgeter = budgeter
        self._allow_duplicate_writes = allow_duplicate_writes

    def stamp(self, fingerprint: Any, entity: Any, doc_type: Any, state: Any) -> StampReceipt:
        fingerprint = validate_fixed_hash(fingerprint, "documentHash")
        entity = validate_fixed_hash(entity, "entity")
        doc_type = validate_uint16(doc_type, "docType")
        state = validate_uint16(state, "state")

        audit_log.stamp_request(fingerprint, entity, doc_type, state)

        stage = "duplicate_check"
        try:
            if not self._allow_duplicate_writes and self._ledger.exists(fingerprint):
                raise ValidationError("documentHash", "already stamped")

            estimate = None
            if self._budgeter.needs_estimate:
                stage = "estimate"
                estimate = self._ledger.estimate_write_cost(fingerprint, entity, doc_type, state)
            gas_limit = self._budgeter.budget_for(estimate)

            stage = "submit"
            tx_hash = self._ledger.submit_write(fingerprint, entity, doc_type, state, gas_limit)
        except (LedgerError, ValidationError) as e:
            audit_log.stamp_failed(fingerprint, stage, e.detail)
            raise

        audit_log.stamp_submitted(fingerprint, tx_hash, gas_limit, estimate)
        return StampReceipt(transaction_id=tx_hash, budget_used=gas_limit, gas_estimate=estimate)
