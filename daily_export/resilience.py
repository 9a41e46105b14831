"""Retry helpers for connection checks.

Only idempotent start-up probes are wrapped: verifying the document store
container and creating the output container. Page reads, uploads, deletes and
watermark writes are deliberately left unretried so a failure aborts the run
with the watermark still pointing at the last committed day.

Implementation: Uses tenacity library internally.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

import tenacity
from azure.core.exceptions import ServiceRequestError, ServiceResponseError
from botocore.exceptions import ConnectTimeoutError, EndpointConnectionError
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

__all__ = ["TRANSIENT_ERRORS", "with_retry"]

F = TypeVar("F", bound=Callable[..., Any])

# Transport-level failures where nothing reached the service.
TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    ServiceRequestError,
    ServiceResponseError,
    EndpointConnectionError,
    ConnectTimeoutError,
    ConnectionError,
    TimeoutError,
)


def with_retry(
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
    exponential: bool = True,
    jitter: bool = True,
    retry_exceptions: Optional[Tuple[Type[BaseException], ...]] = None,
) -> Callable[[F], F]:
    """Retry decorator for idempotent connection checks.

    Args:
        max_attempts: Maximum number of attempts (default 3)
        backoff_seconds: Base delay between attempts (default 1.0)
        exponential: Use exponential backoff (default True)
        jitter: Add random jitter to backoff (default True)
        retry_exceptions: Only retry on these exceptions
            (default: :data:`TRANSIENT_ERRORS`)

    Example:
        @with_retry(max_attempts=3)
        def verify_connection(self) -> None:
            self._container.read()
    """
    wait_strategy: wait_base
    if exponential:
        wait_strategy = tenacity.wait_exponential(multiplier=backoff_seconds, min=backoff_seconds)
    else:
        wait_strategy = tenacity.wait_fixed(backoff_seconds)

    if jitter:
        wait_strategy = wait_strategy + tenacity.wait_random(0, backoff_seconds * 0.5)

    retry_condition = tenacity.retry_if_exception_type(retry_exceptions or TRANSIENT_ERRORS)

    def decorator(fn: F) -> F:
        fn_logger = logging.getLogger(fn.__module__)

        def before_sleep_handler(retry_state: tenacity.RetryCallState) -> None:
            exception = retry_state.outcome.exception() if retry_state.outcome else None
            fn_logger.warning(
                "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
                fn.__qualname__,
                retry_state.attempt_number,
                max_attempts,
                exception,
                retry_state.next_action.sleep if retry_state.next_action else 0,
            )

        tenacity_decorator = tenacity.retry(
            stop=tenacity.stop_after_attempt(max_attempts),
            wait=wait_strategy,
            retry=retry_condition,
            before_sleep=before_sleep_handler,
            reraise=True,
        )
        retrying_fn = tenacity_decorator(fn)

        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return retrying_fn(*args, **kwargs)

        return wrapper  # type: ignore

    return decorator
