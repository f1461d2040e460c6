import logging
from typing import Any, Mapping, Union

from pydantic import ValidationError

from idsync.database.schema import PRIMARY_KEY
from idsync.modules.sync.handler import LifecycleHandler
from idsync.modules.sync.mapping import parse_event, to_row
from idsync.modules.sync.schemas import AccountCreatedEvent, SyncResult

logger = logging.getLogger(__name__)


class Synchronizer(LifecycleHandler):
    """
    Mirror an account-created event into the users table.

    The write is an upsert keyed on external_uid, so redelivered or duplicated
    events converge on the same row. Retries follow LifecycleHandler; a
    duplicate-email conflict is retried like a transient error and reported as
    a failure if it persists.
    """

    operation = "sync"
    label = "syncUser"

    def sync(self, event: Union[AccountCreatedEvent, Mapping[str, Any]]) -> SyncResult:
        started = self._clock()
        try:
            account = parse_event(AccountCreatedEvent, event)
        except ValidationError as e:
            return self._rejected(event, e, started)

        logger.info(
            f"[{self.label}] Starting sync for user: {account.uid} "
            f"(email={account.email!r}, displayName={account.display_name!r})"
        )
        result = self._retry(account.uid, lambda: self._upsert(account))
        if result.success:
            logger.info(f"[{self.label}] Successfully synced user {account.uid} in {result.duration_ms}ms")
        return result

    def _upsert(self, account: AccountCreatedEvent):
        return self.store.table(self.table)\
            .upsert(to_row(account), on_conflict=PRIMARY_KEY)\
            .execute()
