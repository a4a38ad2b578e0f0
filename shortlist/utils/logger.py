"""
Structured Logger Module

Configures structlog for JSON-formatted structured logging with correlation IDs.
Every filtering run gets one correlation ID; batch loggers extend it so a
single run can be traced across waves and classifier calls.

Example Usage:
    from shortlist.utils.logger import get_logger

    logger = get_logger(
        correlation_id="a1b2c3d4-e5f6-7890-abcd-ef1234567890",
        phase="stage_2",
        component="ai_screening",
        job_id="job-42",
    )

    logger.info("Dispatching wave", wave=1, batches=3)
    logger.warning("Batch fell back to deterministic rules", batch=2)
    logger.error("Outcome insert failed", error="disk full")

Log Levels:
    - DEBUG: Per-candidate gate decisions, prompts and raw classifier responses
    - INFO: Run and wave progress, batch completion, outcome persistence
    - WARNING: Fallback batches, overrides, malformed classifier payloads
    - ERROR: Classifier exceptions, persistence failures
    - CRITICAL: Unrecoverable failures requiring user intervention
"""

import logging
import sys
import uuid
from pathlib import Path
from typing import Optional
import structlog
from structlog.types import BindableLogger, EventDict, WrappedLogger


def mask_credentials(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Processor to mask sensitive credentials in log output.

    Args:
        logger: Logger instance
        method_name: Logging method name
        event_dict: Event dictionary to process

    Returns:
        Event dictionary with masked credentials

    Masks:
        - password, api_key, token, secret, credential, auth fields
        - Replaces values with "***MASKED***"
        - Uses word boundary matching so that e.g. "tokens_used" is kept
    """
    sensitive_fields = {"password", "api_key", "token", "secret", "credential", "auth"}

    for key in list(event_dict.keys()):
        key_lower = key.lower()
        for sensitive in sensitive_fields:
            if (
                key_lower == sensitive
                or key_lower.endswith(f"_{sensitive}")
                or key_lower.endswith(f"-{sensitive}")
                or key_lower.startswith(f"{sensitive}_")
                or key_lower.startswith(f"{sensitive}-")
            ):
                event_dict[key] = "***MASKED***"
                break

    return event_dict


def configure_logging(
    log_file: Optional[str] = "logs/shortlist.log", log_level: str = "INFO"
) -> None:
    """
    Configure structlog with JSON output and optional file logging.

    Args:
        log_file: Path to log file, or None to log to stdout only
        log_level: Logging level (default: "INFO")

    Log Format (JSON):
        {
            "timestamp": "2026-10-06T10:30:45Z",
            "level": "info",
            "correlation_id": "a1b2c3d4-...",
            "phase": "stage_2",
            "component": "ai_screening",
            "job_id": "job-42",
            "event": "Wave complete",
            "processed": 45
        }
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_file))

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
        handlers=handlers,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            mask_credentials,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(
    correlation_id: Optional[str] = None,
    phase: Optional[str] = None,
    component: Optional[str] = None,
    job_id: Optional[str] = None,
) -> BindableLogger:
    """
    Get structured logger with bound context.

    Args:
        correlation_id: Correlation ID for run tracing (generates UUID if not provided)
        phase: Pipeline phase ("stage_1", "stage_2", "aggregation", "coordinator")
        component: Component name (e.g., "company_filter", "outcome_store")
        job_id: Job the run belongs to

    Returns:
        BoundLogger with the given context bound
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    logger = structlog.get_logger()

    if correlation_id:
        logger = logger.bind(correlation_id=correlation_id)
    if phase:
        logger = logger.bind(phase=phase)
    if component:
        logger = logger.bind(component=component)
    if job_id:
        logger = logger.bind(job_id=job_id)

    return logger


# Initialize logging on module import with default settings
configure_logging()
