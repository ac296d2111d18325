"""Domain error taxonomy.

Every failure raised by the services is a ``DomainError`` subclass with a
stable ``code`` the caller can branch on. The HTTP layer renders them as
``{"error": code, "details": ...}`` with ``status_code``.
"""
from typing import Any, Optional


class DomainError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 400
    code: str = "domain_error"

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details if details is not None else message

    def to_dict(self) -> dict:
        return {"error": self.code, "details": self.details}


class ValidationError(DomainError):
    """Malformed or semantically invalid input. Never retried automatically."""

    status_code = 400
    code = "validation_error"

    def __init__(self, code: str, message: Optional[str] = None, details: Any = None):
        super().__init__(message or code, code=code, details=details)


class InvalidInputError(ValidationError):
    """Numeric input outside the accepted domain (negative counts, bad rates)."""

    def __init__(self, message: str, details: Any = None):
        super().__init__("invalid_input", message, details)


class InvalidTransitionError(DomainError):
    """Illegal state change. Callers should re-fetch current state."""

    status_code = 400
    code = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot transition from {current} to {target}",
            details={"currentStatus": current, "targetStatus": target},
        )
        self.current = current
        self.target = target


class ConcurrentModificationError(DomainError):
    """Optimistic lock conflict; re-fetch and retry the whole operation."""

    status_code = 409
    code = "concurrent_modification"


class CountersFrozenError(DomainError):
    """Variant counters cannot move outside a running experiment."""

    status_code = 409
    code = "counters_frozen"


class BelowThresholdError(DomainError):
    """Payout amount is under the platform minimum."""

    status_code = 400
    code = "below_threshold"


class InsufficientBalanceError(DomainError):
    """Payout amount exceeds the partner's available balance."""

    status_code = 400
    code = "insufficient_balance"


class NotFoundError(DomainError):
    """Missing, or not owned by the caller. The two cases are not distinguished."""

    status_code = 404
    code = "not_found"


class RateLimitExceeded(DomainError):
    status_code = 429
    code = "rate_limit_exceeded"


class DependencyError(DomainError):
    """Storage or configuration collaborator unavailable. Safe to retry."""

    status_code = 503
    code = "dependency_unavailable"
