"""
Logging helpers: structlog setup, request context and request lifecycle logging
"""

import sys
import time
import logging
from contextlib import contextmanager
from enum import Enum

import structlog
from structlog import contextvars as struct_context

from .config import settings

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    # "false" keeps only fatal errors
    "false": logging.CRITICAL,
}


def configure_structlog():
    """Configure structlog once; colour console output unless logging is off"""
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.LOG_LEVEL == "false"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            struct_context.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_LEVELS[settings.LOG_LEVEL]),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


configure_structlog()

_logger = structlog.get_logger()


def get_logger(name: str = None):
    if name:
        return structlog.get_logger(name)
    return _logger


def error_log(message: str, **kwargs) -> None:
    _logger.error(message, **kwargs)


def info_log(message: str, **kwargs) -> None:
    _logger.info(message, **kwargs)


def debug_log(message: str, **kwargs) -> None:
    _logger.debug(message, **kwargs)


def bind_request_context(**kwargs) -> None:
    """Bind per-request log fields (request_id, model, ...), skipping None values."""
    filtered = {k: v for k, v in kwargs.items() if v is not None}
    if filtered:
        struct_context.bind_contextvars(**filtered)


def reset_request_context(*keys: str) -> None:
    struct_context.unbind_contextvars(*keys)


class RequestStage(str, Enum):
    """Steps a completion request moves through; ERRORED is reachable from any of them"""

    RECEIVED = "received"
    VALIDATED = "validated"
    RESOLVED = "resolved"
    COMPILED = "compiled"
    INVOKED = "invoked"
    FORMATTED = "formatted"
    ERRORED = "errored"


_STAGE_MESSAGES = {
    RequestStage.RECEIVED: "Request received",
    RequestStage.VALIDATED: "Required fields present",
    RequestStage.RESOLVED: "Replicate model selected",
    RequestStage.COMPILED: "Messages compiled into prompt",
    RequestStage.INVOKED: "Replicate prediction finished",
    RequestStage.FORMATTED: "Response envelope built",
    RequestStage.ERRORED: "Request failed",
}


def request_stage_log(stage: RequestStage, **kwargs) -> None:
    """
    Log a request lifecycle transition at info level.

    Payloads (prompt text, model output) are never passed here; only sizes,
    model names and status codes.
    """
    level = _logger.error if stage is RequestStage.ERRORED else _logger.info
    level(f"[REQUEST] {_STAGE_MESSAGES[stage]}", stage=stage.value, **kwargs)


@contextmanager
def prediction_timer(backend_model: str):
    """
    Log the wall-clock duration of one Replicate prediction, including the
    time spent polling, and whether it produced output.
    """
    start_time = time.perf_counter()
    outcome = "failed"
    try:
        yield
        outcome = "succeeded"
    finally:
        info_log(
            "[REPLICATE] Prediction timing",
            backend_model=backend_model,
            outcome=outcome,
            elapsed_ms=round((time.perf_counter() - start_time) * 1000, 1),
        )
