"""
Core dependencies for claim verification and store access
"""

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from functools import lru_cache
from idsync.config import settings
from idsync.database.supabase_client import SupabaseClient
from idsync.modules.auth.claims import ClaimVerifier, JwksClaimVerifier
from idsync.modules.policies.context import RequestContext
from supabase import Client
from typing import Optional
import hmac
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_claim_verifier() -> ClaimVerifier:
    return JwksClaimVerifier(
        issuer=settings.expected_issuer,
        audience=settings.expected_audience,
        jwks_url=settings.identity_jwks_url,
        leeway=settings.jwt_clock_skew_seconds,
    )


def get_request_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    verifier: ClaimVerifier = Depends(get_claim_verifier),
) -> RequestContext:
    """Walk the request through UNAUTHENTICATED -> CLAIM_PRESENTED -> VERIFIED/REJECTED."""
    ctx = RequestContext.anonymous()
    if credentials is None or not credentials.credentials:
        return ctx
    return ctx.present(credentials.credentials).verify(verifier)


def require_verified_context(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Reject anything short of a verified claim"""
    if ctx.subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ctx.reason or "Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return ctx


def get_user_store(ctx: RequestContext = Depends(require_verified_context)) -> Client:
    """Store handle scoped to the caller's token; the store applies RLS to every query."""
    return SupabaseClient.for_token(ctx.token)


def get_service_store() -> Client:
    return SupabaseClient.get_service_client()


def verify_webhook_secret(x_webhook_secret: Optional[str] = Header(default=None)) -> None:
    """Check the shared secret on lifecycle event deliveries when one is configured"""
    expected = settings.event_webhook_secret
    if not expected:
        return
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret.encode(), expected.encode()):
        logger.warning("Rejected lifecycle event delivery with missing or wrong webhook secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")
