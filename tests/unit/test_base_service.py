"""
Unit Tests for the Service Foundation
=====================================

Test Coverage
-------------
- Domain exception codes, details and severities
- BaseService validation helpers
- Event emission hook and config access

Testing Strategy
----------------
- Mocked ConfigManager and EventBus; no database
"""

import logging

import pytest

from valor.core.config.manager import ConfigManagerError
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
    should_alert,
)


@pytest.fixture
def service(mock_config_manager, mock_event_bus) -> BaseService:
    return BaseService(mock_config_manager, mock_event_bus, logging.getLogger("tests.base"))


# ============================================================================
# EXCEPTIONS
# ============================================================================


@pytest.mark.unit
class TestExceptions:
    def test_not_found(self):
        error = NotFoundError("Guild", "g1")

        assert error.error_code == "GUILD_NOT_FOUND"
        assert error.details == {"resource_type": "Guild", "identifier": "g1"}
        assert "g1" in str(error)

    def test_rank_too_low_is_forbidden(self):
        error = RankTooLowError("Apprentice", "Novice", 101)

        assert isinstance(error, ForbiddenError)
        assert error.error_code == "RANK_TOO_LOW"
        assert error.details["required_rank"] == "Apprentice"

    def test_invalid_state_code_names_the_action(self):
        assert InvalidStateError("place_bid", "ended").error_code == "INVALID_STATE_PLACE_BID"

    def test_insufficient_resources_reports_deficit(self):
        error = InsufficientResourcesError("trainingPoints", 1000, 250)

        assert error.error_code == "INSUFFICIENT_TRAININGPOINTS"
        assert error.details["deficit"] == 750

    def test_bid_too_low_is_a_validation_error(self):
        error = BidTooLowError(100, 150)

        assert isinstance(error, ValidationError)
        assert error.error_code == "BID_TOO_LOW"
        assert error.details["highest"] == 150

    def test_to_dict(self):
        payload = ForbiddenError("delete_account", "not the owner").to_dict()

        assert payload["error_type"] == "ForbiddenError"
        assert payload["severity"] == "info"
        assert payload["is_retryable"] is False

    def test_alerting(self):
        assert should_alert(RuntimeError("x"))
        assert not should_alert(ValidationError("amount", "too big"))
        assert should_alert(ValorDomainError("x", severity=ErrorSeverity.CRITICAL))


# ============================================================================
# VALIDATORS
# ============================================================================


@pytest.mark.unit
class TestValidators:
    @pytest.mark.parametrize("value", [0, -1, True, 1.5, "3"])
    def test_positive_int_rejects(self, service, value):
        with pytest.raises(ValidationError):
            service.validate_positive_int(value, "amount")

    def test_positive_int_accepts(self, service):
        service.validate_positive_int(1, "amount")

    def test_non_negative_int(self, service):
        service.validate_non_negative_int(0, "amount")
        with pytest.raises(ValidationError):
            service.validate_non_negative_int(-1, "amount")

    @pytest.mark.parametrize("value", [0, 101, False, "5"])
    def test_range_rejects(self, service, value):
        with pytest.raises(ValidationError) as exc_info:
            service.validate_range(value, "amount", 1, 100)

        assert exc_info.value.field == "amount"

    def test_range_bounds_are_inclusive(self, service):
        service.validate_range(1, "amount", 1, 100)
        service.validate_range(100, "amount", 1, 100)

    def test_choice(self, service):
        service.validate_choice("Str", "stat", ("Str", "Spd"))
        with pytest.raises(ValidationError):
            service.validate_choice("Def", "stat", ("Str", "Spd"))


# ============================================================================
# HOOKS
# ============================================================================


@pytest.mark.unit
class TestHooks:
    async def test_emit_event_merges_context(self, service, mock_event_bus):
        await service.emit_event("playerUpdate", {"actorId": "a"}, context={"source": "test"})

        mock_event_bus.publish.assert_awaited_once_with(
            "playerUpdate", {"actorId": "a", "source": "test"}
        )

    def test_required_config_missing(self, service):
        with pytest.raises(ConfigManagerError):
            service.get_config("missing.key", required=True)

    def test_config_default(self, service):
        assert service.get_config("missing.key", 5) == 5

    def test_log_operation_uses_structured_extra(self, service, caplog):
        with caplog.at_level(logging.INFO, logger="tests.base"):
            service.log_operation("battle_npc", actor_id="a1")

        record = caplog.records[-1]
        assert record.operation == "battle_npc"
        assert record.actor_id == "a1"
