"""
Tests for the error taxonomy, operation results and logging helpers.
"""

import json
import logging

import pytest

from edudash.common.error_handling import (
    AlreadyPassed,
    AttemptLimitExceeded,
    EduDashError,
    ErrorCode,
    ErrorSeverity,
    IncompleteSubmission,
    InvariantViolation,
    NotGradable,
    StructuralEditBlocked,
    ValidationError,
    convert_exception,
    error_response,
    log_error,
)
from edudash.common.logger import (
    JsonFormatter,
    LoggerAdapter,
    app_logger,
    log_execution_time,
    with_context,
)
from edudash.common.results import OperationResult


class TestTaxonomy:
    def test_codes(self):
        assert NotGradable("a1", ["No questions"]).code is ErrorCode.NOT_GRADABLE
        assert AttemptLimitExceeded("a1", "s1", 2).code is ErrorCode.ATTEMPT_LIMIT_EXCEEDED
        assert AlreadyPassed("a1", "s1", "sub1").code is ErrorCode.ALREADY_PASSED
        assert IncompleteSubmission("sub1", [2]).code is ErrorCode.INCOMPLETE_SUBMISSION

    def test_structural_edit_blocked_is_an_invariant_violation(self):
        error = StructuralEditBlocked("a1", 3)

        assert isinstance(error, InvariantViolation)
        assert error.code is ErrorCode.STRUCTURAL_EDIT_BLOCKED
        assert error.details["submission_count"] == 3

    def test_validation_error_records_field(self):
        error = ValidationError("Bad points", field="points")

        assert error.field == "points"
        assert error.details == {"field": "points"}
        assert error.severity is ErrorSeverity.WARNING

    def test_str_includes_code_and_cause(self):
        error = EduDashError("Boom", cause=KeyError("x"))
        assert str(error).startswith("unknown_error: Boom")
        assert "caused by KeyError" in str(error)

    def test_to_dict_is_json_ready(self):
        data = NotGradable("a1", ["No questions"]).to_dict()

        assert data["code"] == "not_gradable"
        assert data["exception_type"] == "NotGradable"
        assert data["details"]["problems"] == ["No questions"]
        json.dumps(data)

    def test_convert_exception(self):
        wrapped = convert_exception(RuntimeError("disk full"), context={"op": "save"})
        assert wrapped.code is ErrorCode.UNKNOWN_ERROR
        assert wrapped.cause.args == ("disk full",)

        original = NotGradable("a1", [])
        assert convert_exception(original) is original


def test_error_response():
    response = error_response(IncompleteSubmission("sub1", [1, 2]))

    assert response == {
        "status": "error",
        "code": "incomplete_submission",
        "message": "Submission sub1 is missing answers for 2 question(s)",
        "details": {"submission_id": "sub1", "missing_question_indexes": [1, 2]},
    }
    assert "details" not in error_response(IncompleteSubmission("sub1", [1]), include_details=False)


def test_log_error_uses_severity_level(caplog):
    with caplog.at_level(logging.DEBUG, logger="edudash"):
        log_error(NotGradable("a1", ["No questions"]), context={"operation": "publish"}, log=app_logger)
        log_error(EduDashError("Database down"), log=app_logger)

    warning, error = caplog.records[-2:]
    assert warning.levelno == logging.WARNING
    assert "[not_gradable]" in warning.getMessage()
    assert "operation=publish" in warning.getMessage()
    assert error.levelno == logging.ERROR


class TestOperationResult:
    def test_success(self):
        result = OperationResult.success(42, note="fresh")

        assert result.ok and bool(result)
        assert result.code is None
        assert result.unwrap() == 42
        assert result.meta == {"note": "fresh"}

    def test_failure(self):
        result = OperationResult.failure(NotGradable("a1", []))

        assert not result
        assert result.code is ErrorCode.NOT_GRADABLE
        with pytest.raises(NotGradable):
            result.unwrap()
        assert "not_gradable" in repr(result)


class TestLogging:
    def test_adapter_appends_context(self, caplog):
        log = LoggerAdapter(app_logger).with_context(assessment_id="a1")

        with caplog.at_level(logging.INFO, logger="edudash"):
            log.info("Published")

        record = caplog.records[-1]
        assert record.getMessage() == "Published [assessment_id=a1]"
        assert record.data == {"assessment_id": "a1"}

    def test_module_level_with_context(self, caplog):
        log = with_context(course_id="c1")

        with caplog.at_level(logging.INFO, logger="edudash"):
            log.with_context(assessment_id="a1").info("Created")

        assert caplog.records[-1].data == {"course_id": "c1", "assessment_id": "a1"}

    def test_json_formatter_merges_context(self):
        record = logging.LogRecord("edudash", logging.INFO, __file__, 1, "Published", None, None)
        record.data = {"assessment_id": "a1"}

        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "Published"
        assert payload["level"] == "INFO"
        assert payload["assessment_id"] == "a1"

    @pytest.mark.asyncio
    async def test_log_execution_time_wraps_coroutines(self, caplog):
        @log_execution_time(app_logger)
        async def work():
            return "done"

        with caplog.at_level(logging.DEBUG, logger="edudash"):
            assert await work() == "done"

        assert "work executed in" in caplog.records[-1].getMessage()

    def test_log_execution_time_wraps_functions(self):
        @log_execution_time()
        def work(value):
            return value * 2

        assert work(21) == 42
