"""Structured logging for repository operations."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class StructuredRepoLogger:
    """Structured logger for repository calls. Never receives passwords."""

    def log_operation(
        self,
        backend: str,
        operation: str,
        outcome: str,
        latency_ms: float,
        acting_user_id: int,
        error_message: str | None = None,
    ) -> None:
        """Log one repository call with structured data."""
        log_data: dict[str, Any] = {
            "backend": backend,
            "operation": operation,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
            "acting_user_id": acting_user_id,
        }

        if error_message:
            log_data["error"] = error_message

        log_msg = f"User repository: {operation} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
