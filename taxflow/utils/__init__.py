from .retry import compute_backoff, schedule_retry
from .sanitize import is_sensitive_key, sanitize_data

__all__ = [
    "compute_backoff",
    "is_sensitive_key",
    "sanitize_data",
    "schedule_retry",
]
