"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from smart_advisor.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_analysis(
    request_id: str,
    product: str,
    outcome: str,
    final_cost: float | None,
    duration_ms: float,
) -> None:
    """Log structured analysis outcome"""
    logging.info(
        "Analysis completed",
        extra={
            "request_id": request_id,
            "step": "analysis_complete",
            "product": product,
            "outcome": outcome,
            "final_cost": final_cost,
            "duration_ms": duration_ms,
        },
    )


def log_advisory_attempt(
    attempt: int,
    max_attempts: int,
    error: Exception,
    retry_in_seconds: float | None,
) -> None:
    """Log a failed advisory attempt and whether it will be retried"""
    logging.warning(
        "Advisory attempt failed",
        extra={
            "step": "advisory_attempt",
            "attempt": attempt,
            "max_attempts": max_attempts,
            "error_type": type(error).__name__,
            "error": str(error),
            "retry_in_seconds": retry_in_seconds,
        },
    )
