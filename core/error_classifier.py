"""
Provider error classification.

Maps any raw failure raised inside an adapter into a stable
``ErrorClassification(type, suppressed)`` pair. Pure: no I/O, no SDK imports;
SDK exceptions are recognised by their HTTP status and class names.

Types:
    aborted      the call was cancelled through its abort signal
    auth         missing/expired credentials or a logged-out web session
    rate_limit   provider throttling or quota exhaustion
    transport    connection failures, timeouts and 5xx answers
    malformed    the provider answered with something we could not interpret
    unknown      anything else
"""

from __future__ import annotations

import asyncio
import json

from .domain import ErrorClassification
from .errors import MalformedResponseError, ProviderAbortedError


ABORTED = "aborted"
AUTH = "auth"
RATE_LIMIT = "rate_limit"
TRANSPORT = "transport"
MALFORMED = "malformed"
UNKNOWN = "unknown"

ERROR_TYPES = (ABORTED, AUTH, RATE_LIMIT, TRANSPORT, MALFORMED, UNKNOWN)

SESSION_KIND_SUFFIX = "-session"

_AUTH_CLASS_NAMES = {"AuthenticationError", "PermissionDeniedError"}
_RATE_LIMIT_CLASS_NAMES = {"RateLimitError"}
_TRANSPORT_CLASS_NAMES = {"APIConnectionError", "APITimeoutError", "InternalServerError"}

_AUTH_MARKERS = ("not logged in", "login", "session expired", "unauthorized", "unauthenticated")
_RATE_LIMIT_MARKERS = ("rate limit", "rate-limit", "too many requests", "quota")


def _status_code(error: BaseException) -> int | None:
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def _class_names(error: BaseException) -> set[str]:
    return {cls.__name__ for cls in type(error).__mro__}


def _error_type(error: BaseException) -> str:
    if isinstance(error, (ProviderAbortedError, asyncio.CancelledError)):
        return ABORTED

    status = _status_code(error)
    if status is not None:
        if status in (401, 403):
            return AUTH
        if status == 429:
            return RATE_LIMIT
        if status >= 500:
            return TRANSPORT

    names = _class_names(error)
    if names & _AUTH_CLASS_NAMES:
        return AUTH
    if names & _RATE_LIMIT_CLASS_NAMES:
        return RATE_LIMIT
    if names & _TRANSPORT_CLASS_NAMES:
        return TRANSPORT

    if isinstance(error, MalformedResponseError):
        return MALFORMED

    message = str(error).lower()
    if any(marker in message for marker in _AUTH_MARKERS):
        return AUTH
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return RATE_LIMIT

    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError, OSError)):
        return TRANSPORT
    if isinstance(error, (json.JSONDecodeError, KeyError, TypeError, ValueError)):
        return MALFORMED
    return UNKNOWN


def classify(provider_kind: str, error: BaseException) -> ErrorClassification:
    """Classify *error* raised by an adapter of *provider_kind*."""
    error_type = _error_type(error)
    if error_type == ABORTED:
        suppressed = True
    elif error_type == AUTH:
        # Being logged out of a web session is the provider's resting state.
        suppressed = (provider_kind or "").endswith(SESSION_KIND_SUFFIX)
    else:
        suppressed = False
    return ErrorClassification(type=error_type, suppressed=suppressed)
