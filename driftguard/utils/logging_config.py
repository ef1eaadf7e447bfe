"""Logging configuration."""
import logging
import sys
from pathlib import Path

import structlog

from driftguard.core.config import logging_config

AUDIT_LOGGER_NAME = "audit"


def setup_logging():
    """Configure structured logging."""
    # Create logs directory
    log_path = Path(logging_config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, logging_config.log_level.upper())

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level
    )

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Add file handler
    file_handler = logging.FileHandler(logging_config.log_file)
    file_handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.addHandler(file_handler)

    if logging_config.audit_log_enabled:
        setup_audit_logging()


def setup_audit_logging():
    """Route the audit logger to its own file as well as the root handlers."""
    audit_path = Path(logging_config.audit_log_file)
    audit_path.parent.mkdir(parents=True, exist_ok=True)

    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    audit_logger.setLevel(logging.INFO)

    already_attached = any(
        isinstance(h, logging.FileHandler) and Path(h.baseFilename) == audit_path.resolve()
        for h in audit_logger.handlers
    )
    if not already_attached:
        audit_logger.addHandler(logging.FileHandler(logging_config.audit_log_file))


def get_audit_logger():
    """Structured logger for audit trail events."""
    return structlog.get_logger(AUDIT_LOGGER_NAME)
