"""
nftmarket - Structured Logging Configuration

Library modules only create ``logging.getLogger(__name__)`` loggers and attach
``extra={"event": ...}`` fields. Applications that want JSON output call
``setup_logging`` once at start-up.

Usage:
    from nftmarket.core.logging_config import setup_logging

    logger = setup_logging(name="nftmarket", level="DEBUG")
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

# Extra fields that must never reach a log sink
SENSITIVE_FIELDS = frozenset({"signature", "private_key", "key", "mnemonic"})
REDACTED = "[redacted]"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that stamps service and environment on every record.

    The ``event`` extra used across the library is always present (``"log"``
    for records without one) and its prefix is exposed as ``area`` so sinks
    can filter builder, signing, validator and ledger records. Signature and
    key fields are redacted.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        timestamp: bool = True,
        environment: Optional[str] = None,
        service_name: str = "nftmarket",
    ):
        super().__init__(fmt=fmt)
        self.timestamp = timestamp
        self.environment = environment or "production"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        if self.timestamp and not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name

        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        # Library records carry extra={"event": "<area>.<action>"}
        event = log_record.get("event") or "log"
        log_record["event"] = event
        log_record["area"] = event.split(".", 1)[0]

        for field_name in SENSITIVE_FIELDS.intersection(log_record):
            log_record[field_name] = REDACTED

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "nftmarket",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "production",
    json_format: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure logging for the nftmarket package tree.

    Args:
        name: Logger name, usually the package root
        log_file: Optional path of a rotating JSON log file
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Environment identifier (dev, staging, prod)
        json_format: Emit JSON records instead of plain text
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    if json_format:
        formatter: logging.Formatter = CustomJsonFormatter(
            environment=environment,
            service_name=name.split(".")[0],
        )
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
