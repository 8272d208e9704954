"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from debt_settlement.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.utcnow().isoformat()
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


def log_settlement(
    request_id: str,
    order_number: str,
    member_user_id: int,
    settled: bool,
    duration_ms: float,
) -> None:
    """Log structured settlement outcome for analysis"""
    logging.info(
        "Settlement completed",
        extra={
            "request_id": request_id,
            "order_number": order_number,
            "member_user_id": member_user_id,
            "step": "settlement_complete",
            "settlement_outcome": "settled" if settled else "not_settled",
            "duration_ms": duration_ms,
        },
    )


def log_rollback(
    request_id: str,
    order_number: str,
    member_user_id: int,
    rolled_back_cents: int,
    duration_ms: float,
) -> None:
    """Log structured rollback outcome for analysis"""
    logging.info(
        "Rollback completed",
        extra={
            "request_id": request_id,
            "order_number": order_number,
            "member_user_id": member_user_id,
            "step": "rollback_complete",
            "rolled_back_cents": rolled_back_cents,
            "duration_ms": duration_ms,
        },
    )
