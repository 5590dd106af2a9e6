"""
Logging configuration for agelock.

Provides structured JSON logging and an event log for resolutions.
Plaintext is never passed to any logger.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for per-resolution correlation
resolution_id_var: ContextVar[str] = ContextVar('resolution_id', default='')


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

        resolution_id = resolution_id_var.get()
        if resolution_id:
            log_data["resolution_id"] = resolution_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


class ResolutionLog:
    """
    Event logger for resolution attempts.

    Each event is a record on the ``agelock.events`` logger carrying an
    event_type and structured fields.
    """

    def __init__(self, name: str = "agelock.events"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {
            "event_type": event_type,
            "resolution_id": resolution_id_var.get(),
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

    def request(self, who: str, file: str, expected_hash: Optional[str], mode: str) -> None:
        self._log(
            logging.DEBUG,
            "RESOLUTION_REQUEST",
            who=who,
            file=file,
            expected_hash=expected_hash,
            mode=mode,
            message=f"{who} resolving {file}"
        )

    def cache_hit(self, file: str, store_path: str) -> None:
        self._log(
            logging.INFO,
            "CACHE_HIT",
            file=file,
            store_path=store_path,
            message=f"{store_path} already present"
        )

    def cache_miss(self, file: str, store_path: str) -> None:
        self._log(
            logging.DEBUG,
            "CACHE_MISS",
            file=file,
            store_path=store_path,
            message=f"{store_path} not present, decrypting"
        )

    def decrypted(self, file: str, identities: int, size: int) -> None:
        self._log(
            logging.DEBUG,
            "DECRYPTED",
            file=file,
            identities=identities,
            size=size,
            message=f"decrypted {file} ({size} bytes)"
        )

    def stored(self, file: str, store_path: str, content_hash: str) -> None:
        self._log(
            logging.INFO,
            "STORED",
            file=file,
            store_path=store_path,
            content_hash=content_hash,
            message=f"added {store_path}"
        )

    def unpinned(self, file: str, content_hash: str) -> None:
        self._log(
            logging.INFO,
            "HASH_UNPINNED",
            file=file,
            content_hash=content_hash,
            message=f"no hash declared for {file}"
        )

    def failed(self, file: str, kind: str, reason: str) -> None:
        self._log(
            logging.DEBUG,
            "RESOLUTION_FAILED",
            file=file,
            kind=kind,
            reason=reason,
            message=f"{kind} failure for {file}"
        )


def configure_logging(
    level: str = "WARNING",
    json_format: bool = False,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the command line tool.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter('%(levelname)s: %(message)s')

    # Diagnostics go to stderr; stdout carries command output.
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def new_resolution_id() -> str:
    return uuid.uuid4().hex[:16]


def set_resolution_id(resolution_id: Optional[str] = None) -> str:
    """Set the resolution ID for the current context, generating one if None."""
    if resolution_id is None:
        resolution_id = new_resolution_id()
    resolution_id_var.set(resolution_id)
    return resolution_id


def get_resolution_id() -> str:
    return resolution_id_var.get()


events = ResolutionLog()
