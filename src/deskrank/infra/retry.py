"""Centralized retry configuration for vote transactions."""

from __future__ import annotations

import logging

from tenacity import RetryCallState, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from deskrank.exceptions import PersistenceFailureError

logger = logging.getLogger(__name__)

# Only store outages are retried; client-facing ranking errors never are.
RETRYABLE_EXCEPTIONS = (PersistenceFailureError,)
DEFAULT_ATTEMPTS = 3
DEFAULT_WAIT_MIN = 0.05
DEFAULT_WAIT_MAX = 2.0
RETRY_IF = retry_if_exception_type(RETRYABLE_EXCEPTIONS)


def retry_stop(attempts: int = DEFAULT_ATTEMPTS):  # noqa: ANN201
    return stop_after_attempt(attempts)


def retry_wait(wait_min: float = DEFAULT_WAIT_MIN, wait_max: float = DEFAULT_WAIT_MAX):  # noqa: ANN201
    return wait_random_exponential(multiplier=wait_min, min=wait_min, max=wait_max)


def log_before_retry(retry_state: RetryCallState) -> None:
    """Log before retrying a failed transaction."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Vote transaction failed (attempt %d, waiting %.2fs): %s",
        retry_state.attempt_number,
        retry_state.next_action.sleep if retry_state.next_action else 0.0,
        exc,
    )
