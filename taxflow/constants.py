"""Default values shared across taxflow."""

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE = 2.0

DEFAULT_STEP_PACING_SCALE = 0.001
DEFAULT_START_DELAY_SECONDS = 0.1
DEFAULT_MAX_RETAINED_WORKFLOWS = 1000

REDACTED = "[REDACTED]"
SENSITIVE_FIELDS = (
    "ssn",
    "password",
    "api_key",
    "secret",
    "token",
    "credit_card",
    "bank_account",
    "routing_number",
)
