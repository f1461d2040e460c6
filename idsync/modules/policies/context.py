"""
Per-request authentication state.

    UNAUTHENTICATED -> CLAIM_PRESENTED -> CLAIM_VERIFIED | CLAIM_REJECTED

A rejected request stays rejected; the caller must start a new request with a
new token. The privileged (service) principal is created directly and never
goes through token verification.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from idsync.modules.auth.claims import ClaimVerifier, IdentityClaim

SERVICE_ROLE = "service_role"
AUTHENTICATED_ROLE = "authenticated"
ANON_ROLE = "anon"


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    CLAIM_PRESENTED = "claim_presented"
    CLAIM_VERIFIED = "claim_verified"
    CLAIM_REJECTED = "claim_rejected"


@dataclass(frozen=True)
class RequestContext:
    state: AuthState
    role: str = ANON_ROLE
    claim: Optional[IdentityClaim] = None
    token: Optional[str] = field(default=None, repr=False)
    reason: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "RequestContext":
        return cls(state=AuthState.UNAUTHENTICATED)

    @classmethod
    def service(cls) -> "RequestContext":
        return cls(state=AuthState.CLAIM_VERIFIED, role=SERVICE_ROLE)

    def present(self, token: str) -> "RequestContext":
        if self.state is not AuthState.UNAUTHENTICATED:
            raise ValueError(f"Cannot present a token in state {self.state.value}")
        if not token:
            return self
        return RequestContext(state=AuthState.CLAIM_PRESENTED, token=token)

    def verified(self, claim: IdentityClaim) -> "RequestContext":
        self._require_presented()
        return RequestContext(
            state=AuthState.CLAIM_VERIFIED,
            role=AUTHENTICATED_ROLE,
            claim=claim,
            token=self.token,
        )

    def rejected(self, reason: str) -> "RequestContext":
        self._require_presented()
        return RequestContext(state=AuthState.CLAIM_REJECTED, reason=reason)

    def verify(self, verifier: ClaimVerifier) -> "RequestContext":
        """Run the presented token through `verifier` and move to the resulting state."""
        self._require_presented()
        claim = verifier.verify(self.token)
        if claim is None:
            return self.rejected("Invalid or expired token")
        return self.verified(claim)

    def _require_presented(self) -> None:
        if self.state is not AuthState.CLAIM_PRESENTED:
            raise ValueError(f"No presented claim to verify in state {self.state.value}")

    @property
    def is_privileged(self) -> bool:
        return self.role == SERVICE_ROLE and self.state is AuthState.CLAIM_VERIFIED

    @property
    def subject(self) -> Optional[str]:
        """Verified subject, or None for every state that is not CLAIM_VERIFIED."""
        if self.state is AuthState.CLAIM_VERIFIED and self.claim is not None:
            return self.claim.subject
        return None
