"""
Tests for the account-created handler.
"""

import logging

from hypothesis import given, settings as hypothesis_settings, strategies as st

from idsync.core.errors import StoreErrorKind
from idsync.modules.sync.schemas import AccountCreatedEvent, SyncFailed, SyncSucceeded
from idsync.modules.sync.synchronizer import Synchronizer
from tests.conftest import FakeClock
from tests.fakes import FakeStore, api_error, rls_violation


def event(uid="u1", email="a@x.com", **fields):
    return {"uid": uid, "email": email, **fields}


class TestSync:
    """Tests for Synchronizer.sync against the in-memory store."""

    def test_creates_row(self, synchronizer, store):
        result = synchronizer.sync(event(displayName="A"))
        assert isinstance(result, SyncSucceeded)
        assert result.success
        assert result.attempts == 1
        row = store.row("u1")
        assert row["email"] == "a@x.com"
        assert row["display_name"] == "A"
        assert row["avatar_url"] is None
        assert row["created_at"] is not None

    def test_redelivery_converges_on_one_row(self, synchronizer, store):
        synchronizer.sync(event(displayName="A"))
        first = store.row("u1")
        result = synchronizer.sync(event(displayName="A"))
        assert result.success
        assert list(store.rows) == ["u1"]
        second = store.row("u1")
        assert second["created_at"] == first["created_at"]
        assert second["updated_at"] >= first["updated_at"]

    def test_later_event_overwrites_fields(self, synchronizer, store):
        synchronizer.sync(event(displayName="A", photoURL="https://img/1.png"))
        synchronizer.sync(event(email="new@x.com"))
        row = store.row("u1")
        assert row["email"] == "new@x.com"
        # absent fields are written as defaults, not left untouched
        assert row["display_name"] is None
        assert row["avatar_url"] is None

    def test_accepts_model_instance(self, synchronizer, store):
        result = synchronizer.sync(AccountCreatedEvent(uid="u9"))
        assert result.success
        assert store.row("u9")["email"] == ""

    def test_upsert_keyed_on_external_uid(self, synchronizer, store):
        synchronizer.sync(event())
        call = store.calls[0]
        assert call["op"] == "upsert"
        assert call["table"] == "users"
        assert call["on_conflict"] == "external_uid"
        assert set(call["payload"]) == {"external_uid", "email", "display_name", "avatar_url"}

    def test_duplicate_email_reported_after_retries(self, synchronizer, store, clock):
        synchronizer.sync(event("u1", "a@x.com"))
        result = synchronizer.sync(event("u2", "a@x.com"))
        assert isinstance(result, SyncFailed)
        assert not result.success
        assert result.uid == "u2"
        assert result.attempts == 3
        assert result.error_kind == StoreErrorKind.UNIQUE_EMAIL
        assert result.error_code == "23505"
        assert store.row("u2") is None
        assert store.row("u1")["email"] == "a@x.com"
        assert clock.sleeps == [0.1, 0.2]

    def test_transient_failures_then_success(self, synchronizer, store):
        store.fail_next(api_error("40001", "could not serialize access"), ConnectionError("reset"))
        result = synchronizer.sync(event())
        assert result.success
        assert result.attempts == 3
        assert store.row("u1") is not None

    def test_authorization_failure_not_retried(self, synchronizer, store):
        store.fail_next(rls_violation())
        result = synchronizer.sync(event())
        assert not result.success
        assert result.attempts == 1
        assert result.error_kind == StoreErrorKind.UNAUTHORIZED
        assert len(store.calls) == 1

    def test_malformed_payload_never_reaches_store(self, synchronizer, store):
        result = synchronizer.sync({"email": "a@x.com"})
        assert isinstance(result, SyncFailed)
        assert result.attempts == 0
        assert result.uid is None
        assert result.error_kind == StoreErrorKind.INVALID_PAYLOAD
        assert store.calls == []

    def test_oversized_uid_rejected(self, synchronizer, store):
        result = synchronizer.sync(event(uid="x" * 129))
        assert not result.success
        assert result.attempts == 0
        assert store.calls == []

    def test_slow_sync_warns_but_succeeds(self, store, caplog):
        clock = FakeClock()
        synchronizer = Synchronizer(store, backoff_base_ms=3000, sleep=clock.sleep, clock=clock)
        store.fail_next(ConnectionError("reset"), ConnectionError("reset"))
        with caplog.at_level(logging.WARNING):
            result = synchronizer.sync(event())
        assert result.success
        assert result.duration_ms == 9000
        assert any("exceeding 5000ms target" in r.getMessage() for r in caplog.records)

    def test_result_payload(self, synchronizer):
        payload = synchronizer.sync(event()).to_payload()
        assert payload == {"success": True, "uid": "u1", "attempts": 1, "durationMs": 0}


class TestIdempotence:
    """Applying the same event any number of times leaves exactly one row."""

    @hypothesis_settings(max_examples=50, deadline=None)
    @given(
        uid=st.text(min_size=1, max_size=128),
        email=st.one_of(st.none(), st.emails().filter(lambda e: len(e) <= 255)),
        display_name=st.one_of(st.none(), st.text(max_size=255)),
        repeats=st.integers(min_value=1, max_value=4),
    )
    def test_repeated_delivery(self, uid, email, display_name, repeats):
        store = FakeStore()
        synchronizer = Synchronizer(store, sleep=lambda seconds: None)
        payload = {"uid": uid, "email": email, "displayName": display_name}

        results = [synchronizer.sync(payload) for _ in range(repeats)]

        assert all(r.success for r in results)
        assert list(store.rows) == [uid]
        row = store.row(uid)
        assert row["email"] == (email if email is not None else "")
        assert row["display_name"] == display_name
        assert row["updated_at"] >= row["created_at"]
