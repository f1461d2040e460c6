"""Bounded retry loop shared by the lifecycle handlers."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from idsync.core.errors import (
    StoreErrorKind,
    classify_store_error,
    error_code,
    error_message,
    is_retryable,
)

logger = logging.getLogger(__name__)


@dataclass
class RetryOutcome:
    ok: bool
    attempts: int
    duration_ms: int
    value: Any = None
    error: Optional[str] = None
    error_kind: Optional[StoreErrorKind] = None
    error_code: Optional[str] = None


def backoff_delay_ms(attempt: int, base_ms: int) -> int:
    """Wait after failed attempt `attempt` (1-based): base, 2*base, ..."""
    return base_ms * attempt


def elapsed_ms(started: float, clock: Callable[[], float]) -> int:
    return int(round((clock() - started) * 1000))


def warn_if_over_deadline(label: str, uid: Optional[str], duration_ms: int, deadline_ms: int) -> None:
    if duration_ms > deadline_ms:
        logger.warning(
            f"[{label}] Operation for user {uid} took {duration_ms}ms, exceeding {deadline_ms}ms target"
        )


def run_with_retry(
    operation: Callable[[], Any],
    *,
    uid: Optional[str],
    label: str,
    max_retries: int = 2,
    backoff_base_ms: int = 100,
    deadline_ms: int = 5000,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> RetryOutcome:
    """
    Call `operation` until it succeeds, fails permanently, or runs out of attempts.

    Attempts are sequential; at most max_retries + 1 calls are made. Store errors
    are classified and only retryable kinds are attempted again. Never raises:
    every outcome, including unexpected exceptions, is returned as a RetryOutcome.
    The deadline is soft: exceeding it is logged, the loop is not cut short.
    """
    started = clock()
    total = max(0, max_retries) + 1
    failure = None
    attempt = 0

    for attempt in range(1, total + 1):
        logger.info(f"[{label}] Attempt {attempt}/{total} for user: {uid}")
        try:
            value = operation()
        except Exception as e:
            kind = classify_store_error(e)
            code = error_code(e)
            failure = (error_message(e), kind, code)
            logger.error(
                f"[{label}] Attempt {attempt} failed for user {uid}: "
                f"kind={kind.value} code={code} error={failure[0]}"
            )
            if not is_retryable(kind):
                logger.error(f"[{label}] Non-retryable error for user {uid}, giving up")
                break
            if attempt < total:
                if kind is StoreErrorKind.UNIQUE_EMAIL:
                    logger.warning(f"[{label}] Duplicate email detected for user {uid}, retrying upsert...")
                sleep(backoff_delay_ms(attempt, backoff_base_ms) / 1000.0)
            continue

        duration = elapsed_ms(started, clock)
        warn_if_over_deadline(label, uid, duration, deadline_ms)
        return RetryOutcome(ok=True, attempts=attempt, duration_ms=duration, value=value)

    duration = elapsed_ms(started, clock)
    warn_if_over_deadline(label, uid, duration, deadline_ms)
    message, kind, code = failure
    logger.error(
        f"[{label}] Failed for user {uid} after {attempt} attempt(s) in {duration}ms: "
        f"kind={kind.value} code={code} error={message}"
    )
    return RetryOutcome(
        ok=False,
        attempts=attempt,
        duration_ms=duration,
        error=message,
        error_kind=kind,
        error_code=code,
    )
