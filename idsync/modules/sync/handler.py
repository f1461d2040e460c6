import logging
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError
from supabase import Client

from idsync.config import settings
from idsync.core.errors import StoreErrorKind
from idsync.core.retry import elapsed_ms, run_with_retry
from idsync.modules.sync.mapping import describe_validation_error, raw_uid
from idsync.modules.sync.schemas import Operation, SyncFailed, SyncResult, result_from_outcome

logger = logging.getLogger(__name__)


class LifecycleHandler:
    """
    Base for handlers invoked once per identity-provider lifecycle event.

    The store handle is injected (a service-role supabase Client, or any object
    with the same query-builder surface). Handlers return a SyncResult for every
    outcome and never raise into the caller.
    """

    operation: Operation
    label: str

    def __init__(
        self,
        store: Client,
        *,
        table: Optional[str] = None,
        max_retries: Optional[int] = None,
        backoff_base_ms: Optional[int] = None,
        deadline_ms: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.table = table or settings.users_table
        self.max_retries = settings.sync_max_retries if max_retries is None else max_retries
        self.backoff_base_ms = settings.sync_backoff_base_ms if backoff_base_ms is None else backoff_base_ms
        self.deadline_ms = settings.sync_deadline_ms if deadline_ms is None else deadline_ms
        self._sleep = sleep
        self._clock = clock

    def _retry(self, uid: str, operation: Callable[[], Any]) -> SyncResult:
        outcome = run_with_retry(
            operation,
            uid=uid,
            label=self.label,
            max_retries=self.max_retries,
            backoff_base_ms=self.backoff_base_ms,
            deadline_ms=self.deadline_ms,
            sleep=self._sleep,
            clock=self._clock,
        )
        return result_from_outcome(uid, self.operation, outcome)

    def _rejected(self, event: Any, exc: ValidationError, started: float) -> SyncFailed:
        uid = raw_uid(event)
        message = describe_validation_error(exc)
        logger.error(f"[{self.label}] Rejected event for user {uid}: {message}")
        return SyncFailed(
            uid=uid,
            operation=self.operation,
            attempts=0,
            duration_ms=elapsed_ms(started, self._clock),
            error=message,
            error_kind=StoreErrorKind.INVALID_PAYLOAD,
        )
