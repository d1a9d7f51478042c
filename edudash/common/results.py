"""
Operation Results

Typed result objects returned across the service boundary. Domain code
raises EduDashError subclasses; the service layer converts them into an
OperationResult so callers branch on ``ok``/``code`` instead of catching
exceptions.
"""

from typing import Any, Dict, Generic, Optional, TypeVar

from edudash.common.error_handling import EduDashError, ErrorCode

T = TypeVar('T')


class OperationResult(Generic[T]):
    """Result of a service operation"""

    def __init__(
        self,
        value: Optional[T] = None,
        error: Optional[EduDashError] = None,
        meta: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the result.

        Args:
            value: Value produced by a successful operation
            error: Typed error for a failed operation
            meta: Extra information about the outcome (for example a
                  type switch record or rejected generated questions)
        """
        self.value = value
        self.error = error
        self.meta = meta or {}

    @classmethod
    def success(cls, value: T, **meta: Any) -> 'OperationResult[T]':
        return cls(value=value, meta=meta)

    @classmethod
    def failure(cls, error: EduDashError) -> 'OperationResult[T]':
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def code(self) -> Optional[ErrorCode]:
        """Error code of a failed result, None on success"""
        return self.error.code if self.error is not None else None

    def __bool__(self) -> bool:
        """Allow using the result in boolean context"""
        return self.ok

    def unwrap(self) -> T:
        """
        Return the value, raising the carried error if the operation failed.

        Raises:
            EduDashError: The error of a failed result
        """
        if self.error is not None:
            raise self.error
        return self.value

    def __repr__(self) -> str:
        if self.ok:
            return f"OperationResult(ok, value={self.value!r})"
        return f"OperationResult(error={self.error.code.value})"
