"""Error taxonomy shared by the resolver, the adapters and the refiner."""

from __future__ import annotations


class ContextResolutionError(Exception):
    """Base class for request errors raised by the context resolver.

    Each subclass carries a stable ``kind`` so callers (and the HTTP layer)
    can tell business-rule violations apart from infrastructure failures,
    which are never wrapped.
    """

    kind = "context_resolution"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(ContextResolutionError):
    """Request is missing ``type`` or has an unrecognised shape."""

    kind = "invalid_request"


class MissingSessionIdError(ContextResolutionError):
    """An ``extend``/``recompute`` request arrived without a session id."""

    kind = "missing_session_id"


class NoPriorTurnError(ContextResolutionError):
    """The session exists (or not) but has no ``last_turn_id`` to extend."""

    kind = "no_prior_turn"


class TurnNotFoundError(ContextResolutionError):
    """The turn referenced by the session or request is not in the store."""

    kind = "turn_not_found"


class NoProviderAvailableError(Exception):
    """Neither the requested model nor any fallback resolved to an adapter."""

    kind = "no_provider_available"


class RefinerStageError(Exception):
    """A refiner stage's model call failed or produced nothing usable."""

    def __init__(self, stage: str, error_code: str, detail: str = ""):
        message = f"{stage} stage failed ({error_code})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.stage = stage
        self.error_code = error_code
        self.detail = detail


class ProviderError(Exception):
    """Base class for failures raised inside a provider adapter."""

    def __init__(self, message: str, *, details=None):
        super().__init__(message)
        self.details = details


class ProviderAbortedError(ProviderError):
    """The call was cancelled through its abort signal."""

    def __init__(self, reason: str = "aborted"):
        super().__init__(f"Provider call aborted: {reason}", details={"reason": reason})
        self.reason = reason


class MalformedResponseError(ProviderError):
    """The provider answered but the payload could not be interpreted."""
