"""Resilient API call decorator with tenacity retry and Sentry error reporting.

Retry 3 times with exponential backoff and jitter, then log the error and
report it to Sentry on final failure before re-raising.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import sentry_sdk
import structlog
from tenacity import (
    RetryCallState,
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_ATTEMPTS = 3


def report_final_failure(retry_state: RetryCallState) -> None:
    """Log failure and report the exception to Sentry on final retry exhaustion.

    ``sentry_sdk.capture_exception`` is a no-op when Sentry was never
    initialised, so this is safe in development.

    Args:
        retry_state: Tenacity retry state with attempt info and exception.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"

    logger.error(
        "API call failed after all retries",
        api_name=api_name,
        attempts=retry_state.attempt_number,
        exception=str(exception),
    )

    if exception is not None:
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("api_name", api_name)
            sentry_sdk.capture_exception(exception)


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        retry_state: Tenacity retry state with attempt info.
    """
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"
    logger.warning(
        "Retrying API call",
        api_name=api_name,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def _reraise(retry_state: RetryCallState) -> Any:
    report_final_failure(retry_state)
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


def resilient_api_call(
    api_name: str,
    attempts: int = DEFAULT_ATTEMPTS,
    retry_if: Callable[[BaseException], bool] | None = None,
) -> Callable[[F], F]:
    """Create a retry decorator for an API call.

    Returns a tenacity retry decorator configured with:
    - ``attempts`` attempts maximum (default 3)
    - Exponential backoff with jitter (1s initial, 30s max, 5s jitter)
    - Warning log before each retry
    - Error log and Sentry report on final failure
    - Original exception re-raised after exhaustion

    Args:
        api_name: Human-readable name for the API (used in logs and alerts).
        attempts: Maximum number of attempts including the first call.
        retry_if: Optional predicate; exceptions for which it returns
            ``False`` are raised immediately without retrying.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        # Store api_name on function for the retry callbacks
        func._api_name = api_name  # type: ignore[attr-defined]

        def _should_retry(retry_state: RetryCallState) -> bool:
            if retry_state.outcome is None or not retry_state.outcome.failed:
                return False
            exc = retry_state.outcome.exception()
            return retry_if is None or (exc is not None and retry_if(exc))

        wrapped = retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(initial=1, max=30, jitter=5),
            retry=_should_retry,
            before_sleep=_before_sleep_log,
            retry_error_callback=_reraise,
        )(func)

        return wrapped  # type: ignore[no-any-return]

    return decorator
