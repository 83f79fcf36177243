"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from rental_engine.config import settings


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


def log_transition(
    rental_id: str,
    event: str,
    from_status: Optional[str],
    to_status: str,
    actor_id: str,
) -> None:
    """Log a rental lifecycle transition"""
    logging.getLogger("rental_engine.lifecycle").info(
        "Rental transition",
        extra={
            "rental_id": rental_id,
            "step": "rental_transition",
            "event": event,
            "from_status": from_status,
            "to_status": to_status,
            "actor_id": actor_id,
        },
    )


def log_payment(
    payment_id: str,
    rental_id: str,
    method: str,
    status: str,
    failure_reason: Optional[str] = None,
    duration_ms: Optional[float] = None,
) -> None:
    """Log structured payment outcome for analysis"""
    logging.getLogger("rental_engine.payments").info(
        "Payment settled",
        extra={
            "payment_id": payment_id,
            "rental_id": rental_id,
            "step": "payment_settled",
            "method": method,
            "payment_status": status,
            "failure_reason": failure_reason,
            "duration_ms": duration_ms,
        },
    )
