import logging
import logging.handlers
import os
import re
import sys
from pathlib import Path
from typing import Optional


class SecurityFilter(logging.Filter):
    """Filter to remove tokens and credentials from logs while preserving context"""

    SENSITIVE_PATTERNS = [
        # JWT tokens (eyJ...)
        (r'eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*', '[JWT_TOKEN]'),
        # Bearer tokens
        (r'Bearer\s+[A-Za-z0-9._-]+', 'Bearer [TOKEN]'),
        # Access token headers
        (r'x-access-token["\s]*[:=]["\s]*[^,}\s]+', 'x-access-token: [HIDDEN]'),
        # Secret keys
        (r'secret["\s]*[:=]["\s]*[^,}\s]+', 'secret: [HIDDEN]'),
    ]

    def filter(self, record):
        if hasattr(record, 'msg'):
            msg = str(record.msg)
            for pattern, replacement in self.SENSITIVE_PATTERNS:
                msg = re.sub(pattern, replacement, msg, flags=re.IGNORECASE)
            record.msg = msg
        return True


def setup_logging(log_file_path: Optional[str] = None) -> logging.Logger:
    """Configure application logging based on environment variables"""

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    sql_log_level = os.getenv("SQL_LOG_LEVEL", "WARNING").upper()
    log_format = os.getenv("LOG_FORMAT", "text").lower()

    # Default log file lives in <repo>/logs/app.log regardless of CWD
    default_log_path = Path(__file__).resolve().parents[2] / "logs" / "app.log"
    log_file_path = log_file_path or os.getenv("LOG_FILE_PATH", str(default_log_path))
    enable_security_filter = os.getenv("ENABLE_SECURITY_FILTER", "false").lower() == "true"

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    if log_format == "json":
        formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"module": "%(name)s", "message": "%(message)s", '
            '"line": %(lineno)d, "function": "%(funcName)s"}'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    level = getattr(logging, log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)

    # Security filter only when enabled (production)
    if enable_security_filter:
        security_filter = SecurityFilter()
        console_handler.addFilter(security_filter)
        file_handler.addFilter(security_filter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    logging.getLogger('sqlalchemy.engine').setLevel(
        getattr(logging, sql_log_level, logging.WARNING)
    )
    logging.getLogger('studiodesk').setLevel(level)

    root_logger.info(
        "Logging initialized level=%s sql=%s file=%s",
        log_level,
        sql_log_level,
        log_file_path,
    )

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given module name"""
    return logging.getLogger(f"studiodesk.{name}")


def log_mutation_event(operation: str, target_id: Optional[int], success: bool = True,
                       detail: Optional[str] = None):
    """Log booking/attendance mutation outcomes"""
    mutation_logger = get_logger("mutations")

    if success:
        mutation_logger.info(f"Mutation {operation} succeeded - target: #{target_id}")
    else:
        mutation_logger.error(
            f"Mutation {operation} failed - target: #{target_id} - {detail or 'unknown error'}"
        )
