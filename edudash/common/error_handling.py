"""
Error Handling System for EduDash

This module provides the error framework for the assessment core:
1. Error codes and severities shared by every layer
2. The typed exception hierarchy raised by domain code
3. Structured error logging
4. Error response generation for the HTTP layer
"""

import json
import logging
import traceback
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Configure logging
logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for errors"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCode(Enum):
    """Standard error codes for EduDash"""
    # General errors
    UNKNOWN_ERROR = "unknown_error"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND_ERROR = "not_found_error"

    # Assessment lifecycle errors
    INVARIANT_VIOLATION = "invariant_violation"
    STRUCTURAL_EDIT_BLOCKED = "structural_edit_blocked"
    NOT_GRADABLE = "not_gradable"
    ASSESSMENT_NOT_FOUND = "assessment_not_found"
    ASSESSMENT_UNAVAILABLE = "assessment_unavailable"

    # Attempt errors
    SUBMISSION_NOT_FOUND = "submission_not_found"
    ATTEMPT_LIMIT_EXCEEDED = "attempt_limit_exceeded"
    ALREADY_PASSED = "already_passed"
    ATTEMPT_PENDING = "attempt_pending"
    INCOMPLETE_SUBMISSION = "incomplete_submission"

    # Collaborator errors
    GENERATION_ERROR = "generation_error"
    DATABASE_ERROR = "database_error"


class ErrorInfo(BaseModel):
    """Structured information about an error"""
    model_config = ConfigDict(use_enum_values=True)

    code: ErrorCode
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    exception_type: Optional[str] = None
    stack_trace: Optional[List[str]] = None
    context: Optional[Dict[str, Any]] = None

    @field_validator('stack_trace', mode='before')
    @classmethod
    def validate_stack_trace(cls, v):
        """Split a stack trace given as one string into lines"""
        if isinstance(v, str):
            return v.splitlines()
        return v


class EduDashError(Exception):
    """Base exception class for all EduDash errors"""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    severity: ErrorSeverity = ErrorSeverity.ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        severity: Optional[ErrorSeverity] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if severity is not None:
            self.severity = severity
        self.details = details or {}
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_error_info(self, include_stack_trace: bool = False) -> ErrorInfo:
        """Convert the exception to an ErrorInfo object"""
        stack_trace = None
        if include_stack_trace:
            stack_trace = traceback.format_exc().splitlines()

        details = dict(self.details)
        if self.cause is not None:
            details["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }

        return ErrorInfo(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            severity=self.severity,
            details=details,
            exception_type=type(self).__name__,
            stack_trace=stack_trace,
            context=self.context
        )

    def to_dict(self, include_stack_trace: bool = False) -> Dict[str, Any]:
        """Convert the exception to a dictionary"""
        return self.to_error_info(include_stack_trace).model_dump(mode="json")

    def to_json(self, include_stack_trace: bool = False) -> str:
        """Convert the exception to a JSON string"""
        return json.dumps(self.to_dict(include_stack_trace))

    def __str__(self) -> str:
        base_str = f"{self.code.value}: {self.message}"
        if self.details:
            base_str += f" (details: {self.details})"
        if self.cause:
            base_str += f" caused by {type(self.cause).__name__}: {str(self.cause)}"
        return base_str


class ValidationError(EduDashError):
    """Malformed question, rubric, milestone, or assessment shape"""
    code = ErrorCode.VALIDATION_ERROR
    severity = ErrorSeverity.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        details = details or {}
        if field is not None:
            details["field"] = field
        super().__init__(message, details=details, cause=cause)
        self.field = field


class NotFoundError(EduDashError):
    """Base class for missing aggregates"""
    code = ErrorCode.NOT_FOUND_ERROR
    severity = ErrorSeverity.WARNING


class AssessmentNotFoundError(NotFoundError):
    """Error raised when an assessment is not found"""
    code = ErrorCode.ASSESSMENT_NOT_FOUND

    def __init__(self, assessment_id: str, version: Optional[int] = None):
        details = {"assessment_id": assessment_id}
        message = f"Assessment with ID {assessment_id} not found"
        if version is not None:
            details["version"] = version
            message = f"Assessment {assessment_id} has no version {version}"
        super().__init__(message, details=details)
        self.assessment_id = assessment_id


class SubmissionNotFoundError(NotFoundError):
    """Error raised when a submission is not found"""
    code = ErrorCode.SUBMISSION_NOT_FOUND

    def __init__(self, submission_id: str):
        super().__init__(
            f"Submission with ID {submission_id} not found",
            details={"submission_id": submission_id}
        )
        self.submission_id = submission_id


class AssessmentError(EduDashError):
    """Base class for assessment lifecycle errors"""
    severity = ErrorSeverity.WARNING


class InvariantViolation(AssessmentError):
    """A structural invariant of the aggregate would be broken"""
    code = ErrorCode.INVARIANT_VIOLATION


class StructuralEditBlocked(InvariantViolation):
    """Structural edit of a published assessment that already has submissions"""
    code = ErrorCode.STRUCTURAL_EDIT_BLOCKED

    def __init__(self, assessment_id: str, submission_count: int):
        super().__init__(
            f"Assessment {assessment_id} has {submission_count} submitted attempt(s); "
            "its question set cannot be changed in place",
            details={"assessment_id": assessment_id, "submission_count": submission_count}
        )


class AssessmentUnavailable(InvariantViolation):
    """The assessment cannot be attempted right now"""
    code = ErrorCode.ASSESSMENT_UNAVAILABLE

    def __init__(self, assessment_id: str, reason: str):
        super().__init__(
            f"Assessment {assessment_id} is not open for attempts: {reason}",
            details={"assessment_id": assessment_id, "reason": reason}
        )
        self.reason = reason


class AttemptPending(InvariantViolation):
    """The previous attempt has not been graded yet"""
    code = ErrorCode.ATTEMPT_PENDING

    def __init__(self, submission_id: str):
        super().__init__(
            f"Attempt {submission_id} is still awaiting grading",
            details={"submission_id": submission_id}
        )


class NotGradable(AssessmentError):
    """Publish attempted on an incomplete assessment"""
    code = ErrorCode.NOT_GRADABLE

    def __init__(self, assessment_id: str, problems: Sequence[str]):
        super().__init__(
            f"Assessment {assessment_id} cannot be published",
            details={"assessment_id": assessment_id, "problems": list(problems)}
        )
        self.problems = list(problems)


class AttemptLimitExceeded(AssessmentError):
    """Every allowed attempt has been used"""
    code = ErrorCode.ATTEMPT_LIMIT_EXCEEDED

    def __init__(self, assessment_id: str, student_id: str, limit: int):
        super().__init__(
            f"Student {student_id} has used all {limit} attempt(s) on assessment {assessment_id}",
            details={"assessment_id": assessment_id, "student_id": student_id, "limit": limit}
        )


class AlreadyPassed(AssessmentError):
    """A graded attempt already passed; no further attempts are needed"""
    code = ErrorCode.ALREADY_PASSED

    def __init__(self, assessment_id: str, student_id: str, submission_id: str):
        super().__init__(
            f"Student {student_id} already passed assessment {assessment_id}",
            details={
                "assessment_id": assessment_id,
                "student_id": student_id,
                "submission_id": submission_id
            }
        )


class IncompleteSubmission(AssessmentError):
    """Submit attempted while some questions are unanswered"""
    code = ErrorCode.INCOMPLETE_SUBMISSION

    def __init__(self, submission_id: str, missing: Sequence[int]):
        super().__init__(
            f"Submission {submission_id} is missing answers for {len(missing)} question(s)",
            details={"submission_id": submission_id, "missing_question_indexes": list(missing)}
        )
        self.missing = list(missing)


class GenerationError(EduDashError):
    """The question-content generator failed or returned unusable output"""
    code = ErrorCode.GENERATION_ERROR


class DatabaseError(EduDashError):
    """Persistence collaborator failure"""
    code = ErrorCode.DATABASE_ERROR


def convert_exception(
    exception: Exception,
    default_message: str = "An unexpected error occurred",
    context: Optional[Dict[str, Any]] = None
) -> EduDashError:
    """
    Wrap an arbitrary exception in an EduDashError.

    Args:
        exception: The exception to convert
        default_message: Message used when the exception has none
        context: Additional context to attach

    Returns:
        The original error if it already is an EduDashError, else a wrapper
    """
    if isinstance(exception, EduDashError):
        if context:
            exception.context.update(context)
        return exception

    return EduDashError(
        message=str(exception) or default_message,
        code=ErrorCode.UNKNOWN_ERROR,
        severity=ErrorSeverity.ERROR,
        cause=exception,
        context=context
    )


def error_response(
    error: Union[EduDashError, Exception],
    include_details: bool = True,
    include_stack_trace: bool = False
) -> Dict[str, Any]:
    """
    Generate a standardized API error response.

    Args:
        error: The error to generate a response for
        include_details: Whether to include error details
        include_stack_trace: Whether to include stack trace

    Returns:
        Standardized error response dictionary
    """
    if not isinstance(error, EduDashError):
        error = convert_exception(error)

    error_info = error.to_error_info(include_stack_trace=include_stack_trace)

    response = {
        "status": "error",
        "code": error_info.code,
        "message": error_info.message
    }

    if include_details and error_info.details:
        response["details"] = error_info.details

    return response


_SEVERITY_LEVELS = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


def log_error(
    error: Union[EduDashError, Exception],
    level: Optional[int] = None,
    include_stack_trace: bool = False,
    context: Optional[Dict[str, Any]] = None,
    log: Optional[logging.Logger] = None
) -> None:
    """
    Log an error with standardized format.

    Args:
        error: The error to log
        level: Logging level; defaults to the level matching the error severity
        include_stack_trace: Whether to include stack trace
        context: Additional context to include
        log: Logger to write to; defaults to this module's logger
    """
    error = convert_exception(error, context=context)

    message = f"ERROR [{error.code.value}]: {error.message}"

    if error.context:
        context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
        message += f" (context: {context_str})"

    if error.cause:
        message += f" caused by {type(error.cause).__name__}: {str(error.cause)}"

    if include_stack_trace:
        message += f"\n{traceback.format_exc()}"

    if level is None:
        level = _SEVERITY_LEVELS[error.severity]

    (log or logger).log(level, message)
