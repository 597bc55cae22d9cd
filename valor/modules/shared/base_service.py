"""
Common ground for the engine's domain services.

A service method in Valor follows one shape:

    async with self._locks.hold(account_key(actor_id)):
        async with DatabaseService.get_transaction() as session:
            ...  # read rows for update, apply rules, raise ValorDomainError
    self.log_operation("battle_npc", actor_id=actor_id, won=outcome.won)
    await self.emit_event("npcBattle", {...})

Events are emitted only after the transaction commits, so a listener never
sees state that was rolled back. ``emit_event`` is the only way a service
reaches the outside world.

``BaseService`` supplies config lookups, the logging helpers, the emission
hook and the input validators that raise ``ValidationError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

from valor.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from valor.core.config.manager import ConfigManager
    from valor.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Configuration manager (class or instance exposing ``get``)
        event_bus: Event bus for the emission hook
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: type[ConfigManager] | ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve configuration value.

        Args:
            key: Dot-path configuration key
            default: Default value if key not found
            required: If True, raise when the key is missing

        Raises:
            ConfigManagerError: If required=True and key is missing
        """
        from valor.core.config.manager import ConfigManagerError

        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigManagerError(f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Emit a domain event to the external pub/sub boundary.

        Services call this after their transaction has committed, so a
        subscriber never observes state that was rolled back.

        Args:
            event_type: Event name (e.g. ``"playerUpdate"``)
            data: Event payload
            context: Optional extra keys merged into the payload
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        """
        Log a service operation with structured context.

        Args:
            operation: Name of the operation being performed
            **context: Additional context data
        """
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        """
        Log a service error with full context.

        Args:
            operation: Name of the operation that failed
            error: The exception that occurred
            **context: Additional context data
        """
        self.log.error(
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def validate_positive_int(self, value: int, name: str) -> None:
        """
        Validate that a value is a positive integer.

        Raises:
            ValidationError: If value is not a positive int
        """
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(name, f"{name} must be a positive integer, got {value}")

    def validate_non_negative_int(self, value: int, name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(
                name, f"{name} must be a non-negative integer, got {value}"
            )

    def validate_range(self, value: int, name: str, min_val: int, max_val: int) -> None:
        """
        Validate that an integer lies within ``[min_val, max_val]``.

        Raises:
            ValidationError: If value is not an int or is out of range
        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(name, f"{name} must be an integer, got {value!r}")
        if not (min_val <= value <= max_val):
            raise ValidationError(
                name,
                f"{name} must be between {min_val} and {max_val}, got {value}",
            )

    def validate_choice(self, value: Any, name: str, choices: Iterable[Any]) -> None:
        allowed = tuple(choices)
        if value not in allowed:
            raise ValidationError(
                name, f"{name} must be one of {', '.join(map(str, allowed))}, got {value!r}"
            )
