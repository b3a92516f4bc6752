"""
Record reader: the read path.

getRecord is gated on exists(). The contract returns zero-valued fields
for fingerprints it never stamped, and those must not be reported as a
real record.
"""

from typing import Any

from .errors import NotFoundError
from .ledger import LedgerClient, StampRecord
from .logging_config import audit_log
from .security import validate_fixed_hash


class RecordReader:

    def __init__(self, ledger: LedgerClient):
        self._ledger = ledger

    def verify(self, fingerprint: Any) -> bool:
        fingerprint = validate_fixed_hash(fingerprint, "documentHash")
        found = self._ledger.exists(fingerprint)
        audit_log.record_lookup(fingerprint, "verify", found)
        return found

    def get_record(self, fingerprint: Any) -> StampRecord:
        """
        Return the recorded metadata for a fingerprint.

        Raises:
            ValidationError: If the fingerprint is malformed
            NotFoundError: If the ledger has no record for it
            LedgerError: If either ledger call fails
        """
        fingerprint = validate_fixed_hash(fingerprint, "documentHash")
        if not self._ledger.exists(fingerprint):
            audit_log.record_lookup(fingerprint, "getRecord", False)
            raise NotFoundError(f"no record for {fingerprint}")

        raw = self._ledger.get_record(fingerprint)
        audit_log.record_lookup(fingerprint, "getRecord", True)
        return StampRecord(
            owner=str(raw.owner),
            timestamp=int(raw.timestamp),
            block_number=int(raw.block_number),
            entity=raw.entity,
            doc_type=int(raw.doc_type),
            state=int(raw.state),
        )
