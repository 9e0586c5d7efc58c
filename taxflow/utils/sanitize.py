"""Redaction of sensitive fields before payloads reach the logs."""

from __future__ import annotations

from typing import Any, Iterable

from ..constants import REDACTED, SENSITIVE_FIELDS


def is_sensitive_key(key: Any, denylist: Iterable[str] = SENSITIVE_FIELDS) -> bool:
    name = str(key).lower()
    return any(marker in name for marker in denylist)


def sanitize_data(obj: Any) -> Any:
    """Return a deep copy of ``obj`` with sensitive values redacted.

    Dicts and lists (tuples become lists) are copied recursively; any key
    whose name contains a denylisted marker, case-insensitively, has its
    value replaced by ``[REDACTED]``. Anything else is returned unchanged.
    """
    if isinstance(obj, dict):
        return {
            key: REDACTED if is_sensitive_key(key) else sanitize_data(value)
            for key, value in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return [sanitize_data(item) for item in obj]
    return obj
