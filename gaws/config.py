"""Configuration and constants for gaws."""

import json
import logging
import os
from datetime import datetime

from dotenv import load_dotenv

load_dotenv()

# --- AWS ---
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

# --- Backoff Constants ---
# Attempts per request; a client built without max_tries uses this.
MAX_TRIES = int(os.getenv("GAWS_MAX_TRIES", "5"))
BACKOFF_BASE_DELAY = float(os.getenv("GAWS_BACKOFF_BASE_DELAY", "0.1"))  # seconds

# --- HTTP ---
HTTP_TIMEOUT = float(os.getenv("GAWS_HTTP_TIMEOUT", "30"))  # seconds

# --- Stream Consumer ---
POLL_INTERVAL = float(os.getenv("GAWS_POLL_INTERVAL", "1.0"))  # seconds after an empty batch

LOG_LEVEL = os.getenv("GAWS_LOG_LEVEL", "INFO").upper()


# --- Audit Logging ---
class AuditFormatter(logging.Formatter):
    """JSON structured log formatter for audit events."""

    def format(self, record):
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "audit_data"):
            log_data.update(record.audit_data)
        return json.dumps(log_data)


def get_logger(name: str) -> logging.Logger:
    """Create a logger with JSON audit formatting."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(AuditFormatter())
        logger.addHandler(handler)
        logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    return logger
