"""
FILE DESCRIPTION: Foundational module for global configuration and logging.
KEY FUNCTIONS/CLASSES: setup_logger, CompanyFormatter, configuration constants
"""

import logging
import sys
import os
from datetime import datetime
from pathlib import Path
from dotenv import load_dotenv

# === CONFIGURATION SECTION ===

# Load .env from the repository root
load_dotenv(Path(__file__).resolve().parents[2] / '.env')


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Score at or above which a check / page passes
PASS_THRESHOLD = int(os.getenv("PASS_THRESHOLD", 70))

# Hard per-pipeline render budget (milliseconds).
# Must stay larger than the settle ceiling below; checked at import.
HARD_TIMEOUT_MS = int(os.getenv("HARD_TIMEOUT_MS", 30000))

# Upper bound on the post-load script settle wait (milliseconds)
SETTLE_CEILING_MS = int(os.getenv("SETTLE_CEILING_MS", 5000))


def validate_timeouts(hard_timeout_ms: int, settle_ceiling_ms: int) -> None:
    """Raises ValueError unless the hard timeout leaves room for the full settle wait."""
    if settle_ceiling_ms < 0:
        raise ValueError(f"SETTLE_CEILING_MS must not be negative (got {settle_ceiling_ms})")
    if hard_timeout_ms <= settle_ceiling_ms:
        raise ValueError(
            f"HARD_TIMEOUT_MS ({hard_timeout_ms}) must be larger than SETTLE_CEILING_MS ({settle_ceiling_ms})"
        )


validate_timeouts(HARD_TIMEOUT_MS, SETTLE_CEILING_MS)

# Default number of (url, profile) pipelines run at once
MAX_CONCURRENCY = int(os.getenv("MAX_CONCURRENCY", 4))

# Browser settings
HEADLESS = _env_bool("HEADLESS", True)
VIEWPORT_WIDTH = int(os.getenv("VIEWPORT_WIDTH", 1200))
VIEWPORT_HEIGHT = int(os.getenv("VIEWPORT_HEIGHT", 800))
USER_AGENT = os.getenv("AUDITOR_USER_AGENT", "AgentUX-Compliance-Auditor/1.0")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


# === LOGGING SECTION ===

class CompanyFormatter(logging.Formatter):
    """
    FLOW: Receives a log record -> Extracts timestamp -> Formats according to company standard
    (e.g., [ Tue Jan 06 05:32:41 AM UTC 2026 ]) -> Prepends level and context -> Returns final string.
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p UTC %Y")
        context = getattr(record, 'context', 'root')
        return f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"


def setup_logger(name="auditor", log_file=None, level=logging.INFO):
    """
    FLOW: Initializes/Retrieves logger -> Checks for existing handlers to prevent duplicates ->
    Sets propagation for child loggers -> Attaches Console and optional File handlers with CompanyFormatter.
    """
    logger = logging.getLogger(name)

    # Child loggers inherit the root "auditor" level and handlers
    if name != "auditor":
        logger.propagate = True
        if not logging.getLogger("auditor").handlers:
            setup_logger("auditor", log_file=log_file, level=level)
        return logger

    logger.setLevel(level)
    if logger.handlers:
        return logger

    formatter = CompanyFormatter()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# Global logger instance
logger = setup_logger(level=getattr(logging, LOG_LEVEL, logging.INFO))


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for non-negative scores (Python's round() is banker's rounding)."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)
