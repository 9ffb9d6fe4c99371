"""Observability helpers for instrumenting calls to external services."""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Callable, ParamSpec, TypeVar

from outfitly_app.logging_config import ensure_correlation_id, get_logger, log_event

LOGGER = get_logger(__name__)
P = ParamSpec("P")
R = TypeVar("R")


def instrument_call(service: str, operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Log start, failure and completion of an external service call with timing.

    Completion records the HTTP status when the result carries one, so a
    polling sequence can be read back from the logs.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            correlation_id = ensure_correlation_id()
            start = time.perf_counter()
            log_event(
                LOGGER,
                logging.DEBUG,
                "service_call_started",
                service=service,
                operation=operation,
                correlation_id=correlation_id,
            )
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "service_call_failed",
                    service=service,
                    operation=operation,
                    correlation_id=correlation_id,
                    duration_ms=duration_ms,
                    error=type(exc).__name__,
                )
                raise
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            log_event(
                LOGGER,
                logging.INFO,
                "service_call_completed",
                service=service,
                operation=operation,
                correlation_id=correlation_id,
                duration_ms=duration_ms,
                status_code=getattr(result, "status_code", None),
            )
            return result

        return wrapper

    return decorator


__all__ = ["instrument_call"]
