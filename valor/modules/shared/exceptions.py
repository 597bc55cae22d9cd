"""
Domain exceptions for the Valor engine.

Every failure a caller of an engine operation can observe is a
``ValorDomainError``. The operation's transaction has been rolled back by
the time the caller sees it, so persisted state is unchanged.

Five categories, each mapping onto one transport status:

- ``NotFoundError`` (404): an id did not resolve
- ``ForbiddenError`` (403): wrong actor, not a member, not an admin;
  ``RankTooLowError`` for the tower gate
- ``InvalidStateError`` (409): the entity is in the wrong lifecycle state
- ``InsufficientResourcesError`` (402): a currency or requirement is short
- ``ValidationError`` (400): malformed input; ``BidTooLowError`` for bids

A lost battle or a failed dungeon run is not an error; resolvers return a
result with ``won=False``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ValorDomainError(Exception):
    """
    Root of every failure an engine operation reports to its caller.

    ``error_code`` defaults to the class name; subclasses derive a more
    specific one (``GUILD_NOT_FOUND``, ``INSUFFICIENT_GOLD``). ``details``
    carries the structured fields a transport needs to render the failure.
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.severity = severity or self.DEFAULT_SEVERITY
        self.is_retryable = self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        if not self.details:
            return f"[{self.error_code}] {self.message}"
        return f"[{self.error_code}] {self.message} | Details: {self.details}"


class NotFoundError(ValorDomainError):
    """
    Raised when an entity id does not resolve.

    Args:
        resource_type: Type of resource (e.g., "Account", "Guild", "Auction")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ForbiddenError(ValorDomainError):
    """
    Raised when the actor lacks permission, membership or ownership.

    Args:
        action: The attempted action
        reason: Why the actor may not perform it
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, reason: str, error_code: Optional[str] = None) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Forbidden '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=error_code or "FORBIDDEN",
        )


class RankTooLowError(ForbiddenError):
    """Raised when an actor's rank is below the gate for an NPC tower level."""

    def __init__(self, required_rank: str, current_rank: str, global_level: int) -> None:
        self.required_rank = required_rank
        self.current_rank = current_rank
        self.global_level = global_level
        super().__init__(
            "battle_npc",
            f"rank {required_rank} required for level {global_level}, "
            f"current rank is {current_rank}",
            error_code="RANK_TOO_LOW",
        )
        self.details.update(
            {
                "required_rank": required_rank,
                "current_rank": current_rank,
                "global_level": global_level,
            }
        )


class InvalidStateError(ValorDomainError):
    """
    Raised when an operation is illegal for the entity's lifecycle state.

    Example:
        >>> raise InvalidStateError("place_bid", "auction is not active")
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid state for '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=f"INVALID_STATE_{action.upper()}",
        )


class InsufficientResourcesError(ValorDomainError):
    """
    Raised when a balance or requirement check fails.

    Args:
        resource: Name of the resource (e.g., "gold", "trainingPoints", "exp")
        required: Amount required for the action
        current: Amount currently available
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource: str, required: int, current: int) -> None:
        self.resource = resource
        self.required = required
        self.current = current
        super().__init__(
            f"Insufficient {resource}: need {required:,}, have {current:,}",
            details={
                "resource": resource,
                "required": required,
                "current": current,
                "deficit": required - current,
            },
            error_code=f"INSUFFICIENT_{resource.upper()}",
        )


class ValidationError(ValorDomainError):
    """
    Raised when input fails shape or range validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str, error_code: Optional[str] = None) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=error_code or f"VALIDATION_{field.upper()}",
        )


class BidTooLowError(ValidationError):
    """Raised when a bid does not strictly exceed the current highest bid."""

    def __init__(self, amount: int, highest: int) -> None:
        self.amount = amount
        self.highest = highest
        super().__init__(
            "amount",
            f"bid {amount:,} must exceed the current highest bid {highest:,}",
            error_code="BID_TOO_LOW",
        )
        self.details.update({"amount": amount, "highest": highest})


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """Return True when the failed operation may be retried as-is."""
    if isinstance(exc, ValorDomainError):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    if isinstance(exc, ValorDomainError):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
