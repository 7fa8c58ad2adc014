"""Unit tests for error classification utilities."""

import pytest

from src.core.errors import (
    ConcurrentModification,
    ErrorCode,
    ErrorSeverity,
    GracePeriodExpired,
    InvalidTransition,
    NoEligibleStaff,
    TaskEngineError,
    TaskNotFound,
    TaskValidationError,
    classify_error_with_response,
)


@pytest.mark.unit
class TestTaskEngineErrors:
    """Tests for the typed error hierarchy."""

    @pytest.mark.parametrize(
        ("error_type", "code", "status"),
        [
            (InvalidTransition, ErrorCode.ERR_INVALID_TRANSITION, 409),
            (GracePeriodExpired, ErrorCode.ERR_GRACE_PERIOD_EXPIRED, 423),
            (NoEligibleStaff, ErrorCode.ERR_NO_ELIGIBLE_STAFF, 409),
            (ConcurrentModification, ErrorCode.ERR_CONCURRENT_MODIFICATION, 409),
            (TaskNotFound, ErrorCode.ERR_TASK_NOT_FOUND, 404),
            (TaskValidationError, ErrorCode.ERR_VALIDATION, 422),
        ],
    )
    def test_codes_and_statuses(self, error_type, code, status):
        error = error_type("boom")

        assert isinstance(error, TaskEngineError)
        assert error.code == code
        assert error.http_status == status
        assert error.message == "boom"

    def test_code_override(self):
        assert TaskEngineError("x", code="ERR_CUSTOM").code == "ERR_CUSTOM"


@pytest.mark.unit
class TestClassifyErrorWithResponse:
    """Tests for classify_error_with_response function."""

    def test_typed_error_keeps_its_message(self):
        response = classify_error_with_response(GracePeriodExpired("Task t1 is locked"))

        assert response.code == ErrorCode.ERR_GRACE_PERIOD_EXPIRED
        assert response.message == "Task t1 is locked"
        assert "new task" in response.suggestion.lower()
        assert response.severity == ErrorSeverity.LOW

    def test_no_eligible_staff_is_medium_severity(self):
        response = classify_error_with_response(NoEligibleStaff("nobody"))
        assert response.severity == ErrorSeverity.MEDIUM

    def test_permission_error(self):
        response = classify_error_with_response(PermissionError("denied"))
        assert response.code == ErrorCode.ERR_PERMISSION_DENIED

    @pytest.mark.parametrize(
        "exception",
        [ConnectionError("refused"), TimeoutError("slow"), Exception("upstream returned 503")],
    )
    def test_network_errors(self, exception):
        response = classify_error_with_response(exception)

        assert response.code == ErrorCode.ERR_NETWORK_ERROR
        assert "connection" in response.suggestion.lower()

    def test_unknown_error(self):
        response = classify_error_with_response(ValueError("something odd"))

        assert response.code == ErrorCode.ERR_UNKNOWN
        assert response.message == "An unexpected error occurred."
