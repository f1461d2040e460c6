import time
from typing import Any, Dict, List

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import Depends
from fastapi.testclient import TestClient

from idsync.core.dependencies import get_claim_verifier, get_user_store, require_verified_context
from idsync.core.rate_limit import limiter
from idsync.database.supabase_client import SupabaseClient
from idsync.main import app
from idsync.modules.auth.claims import JwksClaimVerifier
from idsync.modules.policies.context import RequestContext
from idsync.modules.sync import routes as sync_routes
from idsync.modules.sync.deleter import Deleter
from idsync.modules.sync.synchronizer import Synchronizer
from tests.fakes import FakeStore

PROJECT_ID = "idsync-test"
ISSUER = f"https://securetoken.google.com/{PROJECT_ID}"
AUDIENCE = PROJECT_ID


class FakeClock:
    """Monotonic clock that only moves when told to (or when sleep is called)."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(scope="session")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def issue_token(signing_key):
    def _issue(subject: str = "u1", key=None, headers: Dict[str, Any] = None, **claims) -> str:
        now = int(time.time())
        payload = {
            "iss": ISSUER,
            "aud": AUDIENCE,
            "sub": subject,
            "iat": now - 10,
            "exp": now + 3600,
        }
        payload.update(claims)
        payload = {k: v for k, v in payload.items() if v is not None}
        return jwt.encode(payload, key or signing_key, algorithm="RS256", headers=headers)
    return _issue


@pytest.fixture(scope="session")
def verifier(signing_key):
    public_key = signing_key.public_key()
    return JwksClaimVerifier(ISSUER, AUDIENCE, key_resolver=lambda token: public_key)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def synchronizer(store, clock):
    return Synchronizer(store, sleep=clock.sleep, clock=clock)


@pytest.fixture
def deleter(store, clock):
    return Deleter(store, sleep=clock.sleep, clock=clock)


@pytest.fixture
def client(store, verifier, synchronizer, deleter, mocker):
    def user_store(ctx: RequestContext = Depends(require_verified_context)):
        return store.bind(ctx)

    app.dependency_overrides[get_claim_verifier] = lambda: verifier
    app.dependency_overrides[get_user_store] = user_store
    mocker.patch.object(sync_routes, "get_synchronizer", return_value=synchronizer)
    mocker.patch.object(sync_routes, "get_deleter", return_value=deleter)
    limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        SupabaseClient.reset_client()


@pytest.fixture
def auth_header(issue_token):
    def _header(subject: str = "u1", **claims) -> Dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(subject, **claims)}"}
    return _header
