from __future__ import annotations


class EngineError(Exception):
    """Base class for every business rule violation raised by the engine."""


class InvalidTransitionError(EngineError):
    """A state-machine operation was requested from a state that forbids it."""


class AuthorizationError(InvalidTransitionError):
    """The transition exists but the caller is not allowed to trigger it."""


class LockedError(EngineError):
    """Edit or delete attempted on a validated time entry."""


class UnresolvedError(EngineError):
    """A lookup has no answer and must not be defaulted to zero."""


class ValidationError(EngineError, ValueError):
    """Input violates a domain invariant (hours range, date order, ...)."""
