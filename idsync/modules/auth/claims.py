"""
Identity claims.

A claim is only ever produced from a token whose signature, issuer, audience
and expiry all check out. Any failure yields None: there is no partially
trusted claim.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence

import jwt
from jwt import PyJWKClient

from idsync.database.schema import UID_MAX_LENGTH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityClaim:
    subject: str
    issuer: str
    audience: str
    issued_at: int
    expires_at: int


class ClaimVerifier(Protocol):
    def verify(self, token: str) -> Optional[IdentityClaim]:
        ...


class JwksClaimVerifier:
    """Verify identity-provider tokens against the provider's published key set."""

    def __init__(
        self,
        issuer: str,
        audience: str,
        *,
        jwks_url: Optional[str] = None,
        key_resolver: Optional[Callable[[str], Any]] = None,
        algorithms: Sequence[str] = ("RS256",),
        leeway: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        if key_resolver is None:
            if not jwks_url:
                raise ValueError("Either jwks_url or key_resolver is required")
            jwks_client = PyJWKClient(jwks_url, cache_keys=True)
            key_resolver = lambda token: jwks_client.get_signing_key_from_jwt(token).key
        self._issuer = issuer.rstrip("/")
        self._audience = audience
        self._resolve_key = key_resolver
        self._algorithms = list(algorithms)
        self._leeway = leeway
        self._clock = clock

    def verify(self, token: str) -> Optional[IdentityClaim]:
        if not token or not self._issuer or not self._audience:
            return None
        try:
            key = self._resolve_key(token)
            payload = jwt.decode(
                token,
                key,
                algorithms=self._algorithms,
                audience=self._audience,
                issuer=self._issuer,
                leeway=self._leeway,
                options={"require": ["exp", "iat", "iss", "aud", "sub"]},
            )
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            logger.info(f"Token rejected: {e}")
            return None

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject or len(subject) > UID_MAX_LENGTH:
            logger.info("Token rejected: unusable sub claim")
            return None
        issued_at = int(payload["iat"])
        if issued_at > self._clock() + self._leeway:
            logger.info("Token rejected: issued in the future")
            return None

        return IdentityClaim(
            subject=subject,
            issuer=payload["iss"],
            audience=self._audience,
            issued_at=issued_at,
            expires_at=int(payload["exp"]),
        )
