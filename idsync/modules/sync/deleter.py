import logging
from typing import Any, Mapping, Union

from pydantic import ValidationError

from idsync.database.schema import PRIMARY_KEY
from idsync.modules.sync.handler import LifecycleHandler
from idsync.modules.sync.mapping import parse_event
from idsync.modules.sync.schemas import AccountDeletedEvent, SyncResult

logger = logging.getLogger(__name__)


class Deleter(LifecycleHandler):
    """Remove the users row of a deleted account. Deleting an absent row succeeds."""

    operation = "delete"
    label = "deleteUser"

    def delete(self, event: Union[AccountDeletedEvent, Mapping[str, Any]]) -> SyncResult:
        started = self._clock()
        try:
            account = parse_event(AccountDeletedEvent, event)
        except ValidationError as e:
            return self._rejected(event, e, started)

        logger.info(f"[{self.label}] Deleting user: {account.uid}")
        result = self._retry(account.uid, lambda: self._delete(account.uid))
        if result.success:
            logger.info(f"[{self.label}] Successfully deleted user {account.uid} in {result.duration_ms}ms")
        return result

    def _delete(self, uid: str):
        result = self.store.table(self.table)\
            .delete()\
            .eq(PRIMARY_KEY, uid)\
            .execute()
        if not result.data:
            logger.info(f"[{self.label}] No row for user {uid}; nothing to delete")
        return result
