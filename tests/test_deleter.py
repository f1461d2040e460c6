"""
Tests for the account-deleted handler.
"""

from idsync.core.errors import StoreErrorKind
from idsync.modules.sync.schemas import AccountDeletedEvent, SyncFailed, SyncSucceeded
from tests.fakes import api_error


class TestDelete:
    """Tests for Deleter.delete against the in-memory store."""

    def test_removes_existing_row(self, deleter, store):
        store.seed("u1", "a@x.com")
        result = deleter.delete({"uid": "u1"})
        assert isinstance(result, SyncSucceeded)
        assert result.operation == "delete"
        assert result.attempts == 1
        assert store.row("u1") is None

    def test_absent_row_is_success(self, deleter, store):
        result = deleter.delete({"uid": "ghost"})
        assert result.success
        assert result.attempts == 1
        assert store.rows == {}

    def test_leaves_other_rows(self, deleter, store):
        store.seed("u1", "a@x.com")
        store.seed("u2", "b@x.com")
        deleter.delete(AccountDeletedEvent(uid="u1"))
        assert list(store.rows) == ["u2"]

    def test_repeated_delete(self, deleter, store):
        store.seed("u1", "a@x.com")
        assert deleter.delete({"uid": "u1"}).success
        assert deleter.delete({"uid": "u1"}).success

    def test_delete_filters_on_external_uid(self, deleter, store):
        deleter.delete({"uid": "u1", "email": "a@x.com"})
        call = store.calls[0]
        assert call["op"] == "delete"
        assert call["filters"] == [("external_uid", "u1")]

    def test_transient_failure_retried(self, deleter, store, clock):
        store.seed("u1", "a@x.com")
        store.fail_next(api_error("57014", "canceling statement due to statement timeout"))
        result = deleter.delete({"uid": "u1"})
        assert result.success
        assert result.attempts == 2
        assert clock.sleeps == [0.1]
        assert store.row("u1") is None

    def test_persistent_failure_reported(self, deleter, store):
        store.fail_next(*[ConnectionError("down")] * 3)
        result = deleter.delete({"uid": "u1"})
        assert isinstance(result, SyncFailed)
        assert result.attempts == 3
        assert result.error_kind == StoreErrorKind.TRANSIENT
        assert result.to_payload()["errorKind"] == "transient"

    def test_malformed_payload(self, deleter, store):
        result = deleter.delete({"uid": ""})
        assert not result.success
        assert result.attempts == 0
        assert result.error_kind == StoreErrorKind.INVALID_PAYLOAD
        assert store.calls == []
