"""
Common Components for EduDash

Shared infrastructure used by the assessment core:
1. Logging - Centralized logging configuration
2. Error Handling - Typed error taxonomy and error responses
3. Results - Typed operation results for the service boundary
4. Serialization - Plain-data conversion for domain objects
"""

from edudash.common.logger import app_logger, get_logger, with_context
from edudash.common.error_handling import (
    ErrorCode, ErrorSeverity, EduDashError, ValidationError, InvariantViolation,
    NotGradable, AttemptLimitExceeded, AlreadyPassed, IncompleteSubmission
)
from edudash.common.results import OperationResult

__all__ = [
    # Logging
    'app_logger', 'get_logger', 'with_context',

    # Errors
    'ErrorCode', 'ErrorSeverity', 'EduDashError', 'ValidationError',
    'InvariantViolation', 'NotGradable', 'AttemptLimitExceeded',
    'AlreadyPassed', 'IncompleteSubmission',

    # Results
    'OperationResult',
]
