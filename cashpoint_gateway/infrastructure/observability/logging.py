"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from cashpoint_gateway.config import settings


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

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_cash_transaction(
    request_id: str,
    step: str,
    transaction_id: str,
    transaction_type: str,
    amount_cents: int,
    status: str,
    duration_ms: float,
) -> None:
    """Log structured lifecycle outcome for reconciliation"""
    logging.info(
        "Cash transaction step completed",
        extra={
            "request_id": request_id,
            "step": step,
            "transaction_id": transaction_id,
            "transaction_type": transaction_type,
            "amount_cents": amount_cents,
            "status": status,
            "duration_ms": duration_ms,
        },
    )


def log_ussd_interaction(session_id: str, service_code: str, flow: str, depth: int, continue_session: bool) -> None:
    """Phone numbers and input stay out of logs; the audit sink gets them with PINs masked"""
    logging.info(
        "USSD hop handled",
        extra={
            "session_id": session_id,
            "service_code": service_code,
            "flow": flow,
            "depth": depth,
            "session": "con" if continue_session else "end",
        },
    )
