"""
Structured logging setup and provider-call observability.

Every provider call made through the resilient fetcher emits one ``api_call``
record (service, status, latency) that any log aggregator can pick up.
"""

import logging
import sys
from typing import Literal

import structlog

from enrichment.config import LoggingConfig

ApiCallStatus = Literal["success", "cached", "circuit_open", "error"]

logger = structlog.get_logger(__name__)


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog on top of the stdlib logging module."""
    config = config or LoggingConfig()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.level),
        force=True,
    )

    renderer: structlog.types.Processor
    if config.format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def log_api_call(
    service: str,
    status: ApiCallStatus,
    latency_ms: float,
    key: str | None = None,
    error: str | None = None,
) -> None:
    """Emit one structured record for a provider call."""
    fields: dict[str, object] = {
        "service": service,
        "status": status,
        "latency_ms": round(latency_ms, 1),
        "cached": status == "cached",
    }
    if key is not None:
        fields["key"] = key
    if error is not None:
        fields["error"] = error

    if status == "error":
        logger.warning("api_call", **fields)
    else:
        logger.info("api_call", **fields)
