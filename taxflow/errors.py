"""Error taxonomy shared by taxflow services."""

from __future__ import annotations

from typing import Any, Dict, Optional

WORKFLOW_NOT_FOUND = "WORKFLOW_NOT_FOUND"
STEP_NOT_FOUND = "STEP_NOT_FOUND"
TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
PROCESSING_ERROR = "PROCESSING_ERROR"
TIMEOUT = "TIMEOUT"


class ServiceError(Exception):
    """Base error carrying a machine-readable code and details.

    ``retryable`` tells ``BaseService.execute_with_retry`` whether another
    attempt could possibly succeed.
    """

    def __init__(
        self,
        message: str,
        code: str = "SERVICE_ERROR",
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.retryable = retryable

    def to_metadata(self) -> Dict[str, Any]:
        return {"code": self.code, "details": self.details}


class ValidationError(ServiceError):
    """Input failed validation."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, VALIDATION_ERROR, details, retryable=False)


class ProcessingError(ServiceError):
    """A pipeline step failed while processing."""

    def __init__(
        self,
        message: str,
        step: str,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(
            message, PROCESSING_ERROR, {"step": step, **(details or {})}, retryable
        )
        self.step = step


class OperationTimeoutError(ServiceError):
    """An attempt exceeded its per-attempt timeout and was cancelled."""

    def __init__(self, operation_name: str, timeout_ms: int) -> None:
        super().__init__(
            f"Operation {operation_name} timed out after {timeout_ms}ms",
            TIMEOUT,
            {"operation": operation_name, "timeout_ms": timeout_ms},
        )


class WorkflowNotFoundError(ServiceError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, WORKFLOW_NOT_FOUND, details, retryable=False)


class StepNotFoundError(ServiceError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, STEP_NOT_FOUND, details, retryable=False)


class TemplateNotFoundError(ServiceError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, TEMPLATE_NOT_FOUND, details, retryable=False)


class ServiceNotInitializedError(RuntimeError):
    """Raised when the service manager is used before ``initialize()``."""


__all__ = [
    "PROCESSING_ERROR",
    "STEP_NOT_FOUND",
    "TIMEOUT",
    "TEMPLATE_NOT_FOUND",
    "VALIDATION_ERROR",
    "WORKFLOW_NOT_FOUND",
    "OperationTimeoutError",
    "ProcessingError",
    "ServiceError",
    "ServiceNotInitializedError",
    "StepNotFoundError",
    "TemplateNotFoundError",
    "ValidationError",
    "WorkflowNotFoundError",
]
