from supabase import Client
from postgrest.exceptions import APIError
from idsync.config import settings
from idsync.core.errors import AccessDeniedError, StoreErrorKind, classify_store_error
from idsync.database.schema import PRIMARY_KEY
from idsync.modules.policies.context import RequestContext
from idsync.modules.policies.service import AccessPolicySet, Command, access_policies
from idsync.modules.users.schemas import UserCreate, UserProjection, UserUpdate
from typing import Any, Dict, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class UserService:
    """
    Self-service access to the caller's own users row.

    `store` is expected to be scoped to the caller's token so the store enforces
    RLS; every row read back is also passed through the in-process policy set,
    so a misconfigured store still cannot hand out another user's row.
    """

    def __init__(
        self,
        supabase: Client,
        context: RequestContext,
        policies: AccessPolicySet = access_policies,
        table: Optional[str] = None,
    ):
        self.supabase = supabase
        self.context = context
        self.policies = policies
        self.table = table or settings.users_table

    def _subject(self) -> str:
        subject = self.context.subject
        if subject is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return subject

    def _fetch_own(self) -> Optional[Dict[str, Any]]:
        result = self.supabase.table(self.table)\
            .select("*")\
            .eq(PRIMARY_KEY, self._subject())\
            .execute()
        rows = self.policies.filter_visible(self.context, result.data or [])
        return rows[0] if rows else None

    def get_own(self) -> UserProjection:
        """Get the caller's row; absent and not-visible are both 404"""
        try:
            row = self._fetch_own()
        except APIError as e:
            raise _store_error(e)
        if row is None:
            raise HTTPException(status_code=404, detail="User not found")
        return UserProjection(**row)

    def update_own(self, user_data: UserUpdate) -> UserProjection:
        """Update display_name / avatar_url on the caller's row"""
        changes = user_data.model_dump(exclude_unset=True)
        current = self.get_own()
        if not changes:
            return current
        existing = current.model_dump()
        try:
            self.policies.check_write(
                self.context, Command.UPDATE, existing=existing, proposed={**existing, **changes}
            )
        except AccessDeniedError as e:
            raise HTTPException(status_code=403, detail=str(e))
        try:
            result = self.supabase.table(self.table)\
                .update(changes)\
                .eq(PRIMARY_KEY, current.external_uid)\
                .execute()
        except APIError as e:
            raise _store_error(e)
        rows = self.policies.filter_visible(self.context, result.data or [])
        if not rows:
            raise HTTPException(status_code=404, detail="User not found")
        return UserProjection(**rows[0])

    def insert_own(self, user_data: UserCreate) -> UserProjection:
        """Insert the caller's own row; the row's external_uid must be the verified subject"""
        proposed = user_data.model_dump()
        try:
            self.policies.check_write(self.context, Command.INSERT, proposed=proposed)
        except AccessDeniedError as e:
            raise HTTPException(status_code=403, detail=str(e))
        try:
            result = self.supabase.table(self.table).insert(proposed).execute()
        except APIError as e:
            raise _store_error(e)
        rows = self.policies.filter_visible(self.context, result.data or [])
        if not rows:
            raise HTTPException(status_code=500, detail="Failed to create user")
        return UserProjection(**rows[0])


def _store_error(e: APIError) -> HTTPException:
    kind = classify_store_error(e)
    logger.error(f"Store error ({kind.value}, code={e.code}): {e.message}")
    if kind is StoreErrorKind.UNAUTHORIZED:
        return HTTPException(status_code=403, detail="Access denied")
    if kind in (StoreErrorKind.UNIQUE_EMAIL, StoreErrorKind.UNIQUE_UID):
        return HTTPException(status_code=409, detail="User already exists")
    if kind is StoreErrorKind.INVALID_PAYLOAD:
        return HTTPException(status_code=422, detail=e.message or "Invalid user data")
    return HTTPException(status_code=503, detail="User store unavailable")
