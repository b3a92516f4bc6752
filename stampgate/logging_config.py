"""
Logging configuration for the stamp gateway.

Provides structured JSON logging and audit events for stamp and lookup
requests.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Logger for gateway audit events.

    Records every stamp attempt and its outcome, record lookups, and
    rejected requests. Never given secrets.
    """

    def __init__(self, name: str = "stampgate.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def stamp_request(self, document_hash: str, entity: str, doc_type: int, state: int) -> None:
        self._log(
            logging.INFO,
            "STAMP_REQUEST",
            document_hash=document_hash,
            entity=entity,
            doc_type=doc_type,
            state=state,
            message=f"Stamp requested for {document_hash}"
        )

    def stamp_submitted(self, document_hash: str, tx_hash: str, gas_limit: int, gas_estimate: Optional[int] = None) -> None:
        self._log(
            logging.INFO,
            "STAMP_SUBMITTED",
            document_hash=document_hash,
            tx_hash=tx_hash,
            gas_limit=gas_limit,
            gas_estimate=gas_estimate,
            message=f"Stamp transaction {tx_hash} submitted"
        )

    def stamp_failed(self, document_hash: str, stage: str, reason: str) -> None:
        self._log(
            logging.ERROR,
            "STAMP_FAILED",
            document_hash=document_hash,
            stage=stage,
            reason=reason,
            message=f"Stamp failed during {stage}: {reason}"
        )

    def record_lookup(self, document_hash: str, operation: str, found: bool) -> None:
        self._log(
            logging.INFO,
            "RECORD_LOOKUP",
            document_hash=document_hash,
            operation=operation,
            found=found,
            message=f"{operation} for {document_hash}: {'found' if found else 'not found'}"
        )

    def request_rejected(self, path: str, kind: str, detail: str, client_id: Optional[str] = None) -> None:
        """Log a request refused before reaching the ledger, or failed at it."""
        level = logging.ERROR if kind == "REMOTE_LEDGER" else logging.WARNING
        self._log(
            level,
            "REQUEST_REJECTED",
            path=path,
            kind=kind,
            detail=detail,
            client_id=client_id,
            message=f"{path} rejected ({kind}): {detail}"
        )

    def health_check(self, status: str, block: Optional[int] = None) -> None:
        self._log(
            logging.DEBUG if status == "ok" else logging.WARNING,
            "HEALTH_CHECK",
            status=status,
            block=block,
            message=f"Health {status}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


audit_log = AuditLogger()
