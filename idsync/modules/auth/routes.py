from fastapi import APIRouter, Depends
from idsync.core.dependencies import require_verified_context
from idsync.modules.auth.schemas import ClaimResponse
from idsync.modules.policies.context import RequestContext

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=ClaimResponse)
async def get_current_claim(ctx: RequestContext = Depends(require_verified_context)):
    """Verified claim of the caller (401 when no valid token is presented)."""
    claim = ctx.claim
    return ClaimResponse(
        subject=claim.subject,
        issuer=claim.issuer,
        audience=claim.audience,
        issued_at=claim.issued_at,
        expires_at=claim.expires_at,
        state=ctx.state.value,
    )
