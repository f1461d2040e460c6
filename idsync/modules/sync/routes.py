from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool
from idsync.core.dependencies import get_service_store, verify_webhook_secret
from idsync.core.errors import StoreErrorKind, classify_store_error
from idsync.core.rate_limit import limiter
from idsync.modules.sync.deleter import Deleter
from idsync.modules.sync.mapping import raw_uid
from idsync.modules.sync.synchronizer import Synchronizer
from idsync.modules.sync.schemas import Operation, SyncFailed, SyncResult
from typing import Any, Callable, Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"], dependencies=[Depends(verify_webhook_secret)])


def get_synchronizer() -> Synchronizer:
    return Synchronizer(get_service_store())


def get_deleter() -> Deleter:
    return Deleter(get_service_store())


async def _read_payload(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


async def _dispatch(operation: Operation, run: Callable[[Any], SyncResult], payload: Any) -> Dict[str, Any]:
    """Always answers with a result body; the identity provider's flow must not see an error status."""
    try:
        result = await run_in_threadpool(run, payload)
    except Exception as e:
        # Handlers never raise; this is the store handle failing to build
        logger.exception(f"Cannot handle {operation} event: {e}")
        kind = StoreErrorKind.UNAUTHORIZED if isinstance(e, RuntimeError) else classify_store_error(e)
        result = SyncFailed(
            uid=raw_uid(payload),
            operation=operation,
            attempts=0,
            duration_ms=0,
            error=str(e) or e.__class__.__name__,
            error_kind=kind,
        )
    return result.to_payload()


@router.post("/account-created")
@limiter.exempt
async def account_created(request: Request):
    """Identity provider hook: an account was created (or re-delivered)."""
    payload = await _read_payload(request)
    return await _dispatch("sync", lambda body: get_synchronizer().sync(body), payload)


@router.post("/account-deleted")
@limiter.exempt
async def account_deleted(request: Request):
    """Identity provider hook: an account was deleted."""
    payload = await _read_payload(request)
    return await _dispatch("delete", lambda body: get_deleter().delete(body), payload)
