from fastapi import APIRouter, Depends
from idsync.core.dependencies import get_user_store, require_verified_context
from idsync.modules.policies.context import RequestContext
from idsync.modules.users.schemas import UserCreate, UserProjection, UserUpdate
from idsync.modules.users.service import UserService
from supabase import Client

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(
    ctx: RequestContext = Depends(require_verified_context),
    supabase: Client = Depends(get_user_store),
) -> UserService:
    return UserService(supabase, ctx)


@router.get("/me", response_model=UserProjection)
def get_me(service: UserService = Depends(get_user_service)):
    """Get the caller's own row"""
    return service.get_own()


@router.put("/me", response_model=UserProjection)
def update_me(user_data: UserUpdate, service: UserService = Depends(get_user_service)):
    """Update the caller's own row"""
    return service.update_own(user_data)


@router.post("/me", response_model=UserProjection, status_code=201)
def create_me(user_data: UserCreate, service: UserService = Depends(get_user_service)):
    """Create the caller's own row (initial sync from the client side)"""
    return service.insert_own(user_data)
