"""
Error taxonomy for projection-store calls.

Store errors arrive either as postgrest APIError (the store answered with a
SQLSTATE / PostgREST code) or as httpx transport errors (the store did not
answer). Both are reduced to a StoreErrorKind that decides retry behaviour.
"""

from enum import Enum
from typing import Optional

import httpx
from postgrest.exceptions import APIError


class StoreErrorKind(str, Enum):
    UNIQUE_EMAIL = "unique_email"
    UNIQUE_UID = "unique_uid"
    TRANSIENT = "transient"
    UNAUTHORIZED = "unauthorized"
    INVALID_PAYLOAD = "invalid_payload"
    UNKNOWN = "unknown"


UNIQUE_VIOLATION = "23505"

_UNAUTHORIZED_CODES = {"42501", "PGRST301", "PGRST302", "401", "403"}
_INVALID_PAYLOAD_CODES = {"22001", "23502", "22P02", "23514", "PGRST204", "PGRST102"}
_TRANSIENT_CODES = {"40001", "40P01", "57014", "57P01", "PGRST000", "PGRST001", "PGRST002", "503", "504"}
_TRANSIENT_CLASSES = ("08", "53")

_RETRYABLE = {
    StoreErrorKind.UNIQUE_EMAIL,
    StoreErrorKind.UNIQUE_UID,
    StoreErrorKind.TRANSIENT,
    StoreErrorKind.UNKNOWN,
}


class AccessDeniedError(Exception):
    """A row-level policy refused the operation."""

    def __init__(self, command: str, subject: Optional[str], message: Optional[str] = None):
        self.command = command
        self.subject = subject
        msg = message or f"Access denied: {subject or 'anonymous'} may not {command} this row"
        super().__init__(msg)


def error_code(exc: BaseException) -> Optional[str]:
    if isinstance(exc, APIError):
        return str(exc.code) if exc.code is not None else None
    if isinstance(exc, httpx.HTTPStatusError):
        return str(exc.response.status_code)
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return "TIMEOUT"
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return "NETWORK_ERROR"
    return None


def error_message(exc: BaseException) -> str:
    if isinstance(exc, APIError):
        return exc.message or str(exc)
    return str(exc) or exc.__class__.__name__


def classify_store_error(exc: BaseException) -> StoreErrorKind:
    if isinstance(exc, APIError):
        code = str(exc.code or "")
        if code == UNIQUE_VIOLATION:
            text = f"{exc.message or ''} {exc.details or ''}".lower()
            return StoreErrorKind.UNIQUE_EMAIL if "email" in text else StoreErrorKind.UNIQUE_UID
        if code in _UNAUTHORIZED_CODES:
            return StoreErrorKind.UNAUTHORIZED
        if code in _INVALID_PAYLOAD_CODES:
            return StoreErrorKind.INVALID_PAYLOAD
        if code in _TRANSIENT_CODES or code.startswith(_TRANSIENT_CLASSES):
            return StoreErrorKind.TRANSIENT
        return StoreErrorKind.UNKNOWN
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in (401, 403):
            return StoreErrorKind.UNAUTHORIZED
        if status >= 500 or status == 429:
            return StoreErrorKind.TRANSIENT
        return StoreErrorKind.UNKNOWN
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return StoreErrorKind.TRANSIENT
    return StoreErrorKind.UNKNOWN


def is_retryable(kind: StoreErrorKind) -> bool:
    return kind in _RETRYABLE
