"""
Structured JSON logging for the VerifyShot service.

Every event carries a correlation ID: the request ID set by the HTTP
middleware, or the job ID while an analysis job runs, so log lines from
concurrent model calls can be grouped by job.
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, List, Optional

import structlog
from structlog.types import FilteringBoundLogger, Processor

SERVICE_LOGGER_NAME = "verifyshot"

# Third-party clients that log every HTTP request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "google")

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    return correlation_id_ctx.get()


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set the correlation ID for the current context, generating one if needed."""
    correlation_id = correlation_id or str(uuid.uuid4())
    correlation_id_ctx.set(correlation_id)
    return correlation_id


@contextmanager
def job_context(job_id: str) -> Iterator[str]:
    """
    Use a job ID as the correlation ID for the duration of a block.

    asyncio tasks created inside the block copy the context, so backend
    calls fanned out by the job log under the same ID. The previous ID is
    restored on exit.
    """
    token = correlation_id_ctx.set(job_id)
    try:
        yield job_id
    finally:
        correlation_id_ctx.reset(token)


def add_correlation_id(logger: FilteringBoundLogger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    correlation_id = correlation_id_ctx.get()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def _processors() -> List[Processor]:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_correlation_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ]


def setup_logging(log_level: str = "INFO") -> FilteringBoundLogger:
    """
    Configure structlog over the standard library logging module.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR); unknown names fall back to INFO

    Returns:
        The service logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=_processors(),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return structlog.get_logger(SERVICE_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> FilteringBoundLogger:
    return structlog.get_logger(name or SERVICE_LOGGER_NAME)
