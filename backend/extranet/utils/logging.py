"""Structured logging for wizard commits and media operations."""

import logging
from typing import Any

from backend.extranet.orchestration.commit import CommitContext

logger = logging.getLogger(__name__)


class StructuredCommitLogger:
    """Structured logger for step commits."""

    def log_commit(
        self,
        ctx: CommitContext,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log a commit attempt with structured data."""
        log_data: dict[str, Any] = {
            "draft_key": ctx.draft_key,
            "step": ctx.step,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Step commit: {ctx.step} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})


def log_upload(filename: str, outcome: str, error_reason: str | None = None) -> None:
    """Log the outcome of a single image upload."""
    log_data: dict[str, Any] = {"file": filename, "outcome": outcome}
    if error_reason:
        log_data["error_reason"] = error_reason
        logger.warning(f"Image upload: {filename} - {outcome}", extra={"structured": log_data})
    else:
        logger.info(f"Image upload: {filename} - {outcome}", extra={"structured": log_data})
