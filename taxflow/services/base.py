"""Shared execution wrapper for taxflow services."""

from __future__ import annotations

import abc
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, TypeVar, Union

from ..config import RetryPolicy, ServiceConfig
from ..contracts import ProcessingResult
from ..errors import OperationTimeoutError, ServiceError, ValidationError
from ..utils import retry as retry_utils
from ..utils.sanitize import sanitize_data

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class BaseService(metaclass=abc.ABCMeta):
    """Abstract base for services returning ``ProcessingResult`` envelopes.

    Subclasses set ``default_config`` to override the global service defaults;
    values explicitly passed to the constructor win over both.
    """

    default_config: Dict[str, Any] = {}

    def __init__(self, config: Union[ServiceConfig, Mapping[str, Any], None] = None) -> None:
        if isinstance(config, ServiceConfig):
            overrides = config.model_dump(exclude_unset=True)
        else:
            overrides = dict(config or {})
        self.config = ServiceConfig(**{**self.default_config, **overrides})
        self.logger = logging.getLogger(type(self).__module__).getChild(type(self).__name__)

    @property
    def service_name(self) -> str:
        return type(self).__name__

    @property
    def retry_policy(self) -> RetryPolicy:
        return self.config.retry_policy()

    async def execute_with_retry(
        self,
        operation: Operation[T],
        operation_name: str,
        policy: Optional[RetryPolicy] = None,
    ) -> ProcessingResult[T]:
        """Run ``operation`` with a per-attempt timeout and exponential backoff.

        Failures never escape: the last error is reported in the returned
        result. A timed-out attempt is cancelled before the next one starts.
        """
        policy = policy or self.retry_policy
        start = time.perf_counter()
        last_error: Optional[Exception] = None
        attempt = 0

        for attempt in range(1, policy.attempts + 1):
            try:
                data = await asyncio.wait_for(operation(), timeout=policy.timeout_ms / 1000)
                return ProcessingResult(
                    success=True, data=data, processing_time=_elapsed_ms(start)
                )
            except asyncio.TimeoutError:
                last_error = OperationTimeoutError(operation_name, policy.timeout_ms)
            except Exception as e:
                last_error = e

            context: Dict[str, Any] = {"error_type": type(last_error).__name__}
            if isinstance(last_error, ServiceError):
                context.update(last_error.to_metadata())
            self._log(
                logging.WARNING,
                f"{operation_name} failed on attempt {attempt}/{policy.attempts}",
                context,
            )
            if isinstance(last_error, ServiceError) and not last_error.retryable:
                break
            if attempt < policy.attempts:
                await retry_utils.schedule_retry(
                    attempt, base=policy.backoff_base, jitter=policy.jitter
                )

        metadata: Dict[str, Any] = {"operation": operation_name, "attempts": attempt}
        if isinstance(last_error, ServiceError):
            metadata.update(sanitize_data(last_error.to_metadata()))
        self._log(logging.ERROR, f"{operation_name} failed after {attempt} attempt(s)")
        return ProcessingResult(
            success=False,
            error=str(last_error),
            processing_time=_elapsed_ms(start),
            metadata=metadata,
        )

    async def health_check(self) -> ProcessingResult[Dict[str, Any]]:
        """Wrap ``perform_health_check`` into a result envelope."""
        start = time.perf_counter()
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            details = await self.perform_health_check()
        except Exception as e:
            self._log(logging.ERROR, f"Health check failed: {e}")
            return ProcessingResult(
                success=False,
                data={"status": "unhealthy", "timestamp": timestamp, "service": self.service_name},
                error=str(e),
                processing_time=_elapsed_ms(start),
            )
        return ProcessingResult(
            success=True,
            data={
                "status": "healthy",
                "timestamp": timestamp,
                "service": self.service_name,
                "details": details,
            },
            processing_time=_elapsed_ms(start),
        )

    @abc.abstractmethod
    async def perform_health_check(self) -> Dict[str, Any]:
        """Return service-specific health details or raise."""
        raise NotImplementedError

    def sanitize_data(self, obj: Any) -> Any:
        return sanitize_data(obj)

    def validate_required(self, data: Mapping[str, Any], fields: Iterable[str]) -> None:
        """Raise ``ValidationError`` naming every missing or empty field."""
        missing = [field for field in fields if data.get(field) in (None, "")]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}", {"missing": missing}
            )

    def _log(self, level: int, message: str, payload: Any = None) -> None:
        if not self.config.enable_logging and level < logging.ERROR:
            return
        if payload is not None:
            message = f"{message} {sanitize_data(payload)}"
        self.logger.log(level, message)
