"""
Shared building blocks for Valor domain modules.
"""

from valor.modules.shared.base_repository import BaseRepository
from valor.modules.shared.base_service import BaseService
from valor.modules.shared.exceptions import (
    BidTooLowError,
    ErrorSeverity,
    ForbiddenError,
    InsufficientResourcesError,
    InvalidStateError,
    NotFoundError,
    RankTooLowError,
    ValidationError,
    ValorDomainError,
    get_error_severity,
    is_transient_error,
    should_alert,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "ErrorSeverity",
    "ValorDomainError",
    "NotFoundError",
    "ForbiddenError",
    "RankTooLowError",
    "InvalidStateError",
    "InsufficientResourcesError",
    "ValidationError",
    "BidTooLowError",
    "is_transient_error",
    "get_error_severity",
    "should_alert",
]
