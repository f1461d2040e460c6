from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Literal, Optional, Union

from idsync.core.errors import StoreErrorKind
from idsync.core.retry import RetryOutcome
from idsync.database.schema import DISPLAY_NAME_MAX_LENGTH, EMAIL_MAX_LENGTH, UID_MAX_LENGTH

Operation = Literal["sync", "delete"]


class AccountCreatedEvent(BaseModel):
    """Account-created payload as emitted by the identity provider."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    uid: str = Field(min_length=1, max_length=UID_MAX_LENGTH)
    email: Optional[str] = Field(default=None, max_length=EMAIL_MAX_LENGTH)
    display_name: Optional[str] = Field(default=None, alias="displayName", max_length=DISPLAY_NAME_MAX_LENGTH)
    photo_url: Optional[str] = Field(default=None, alias="photoURL")


class AccountDeletedEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    uid: str = Field(min_length=1, max_length=UID_MAX_LENGTH)
    email: Optional[str] = None


class SyncSucceeded(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: Literal[True] = True
    uid: str
    operation: Operation
    attempts: int
    duration_ms: int = Field(alias="durationMs")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"operation"})


class SyncFailed(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: Literal[False] = False
    uid: Optional[str] = None
    operation: Operation
    attempts: int
    duration_ms: int = Field(alias="durationMs")
    error: str
    error_kind: StoreErrorKind = Field(alias="errorKind")
    error_code: Optional[str] = Field(default=None, alias="errorCode")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"operation"}, mode="json")


SyncResult = Union[SyncSucceeded, SyncFailed]


def result_from_outcome(uid: str, operation: Operation, outcome: RetryOutcome) -> SyncResult:
    if outcome.ok:
        return SyncSucceeded(
            uid=uid, operation=operation, attempts=outcome.attempts, duration_ms=outcome.duration_ms
        )
    return SyncFailed(
        uid=uid,
        operation=operation,
        attempts=outcome.attempts,
        duration_ms=outcome.duration_ms,
        error=outcome.error or "Unknown error",
        error_kind=outcome.error_kind or StoreErrorKind.UNKNOWN,
        error_code=outcome.error_code,
    )
