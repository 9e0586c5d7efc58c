import pytest

from taxflow.config import OrchestratorSettings
from taxflow.utils import retry


@pytest.fixture
def fast_settings() -> OrchestratorSettings:
    """Orchestrator settings without start delay or step pacing."""
    return OrchestratorSettings(step_pacing_scale=0, start_delay_seconds=0)


@pytest.fixture
def backoff_calls(monkeypatch) -> list:
    """Replace backoff sleeps with a recorder of the delays they would use."""
    delays: list = []

    async def fake_schedule_retry(attempt, base=2.0, jitter=0.0):
        delays.append(retry.compute_backoff(attempt, base=base, jitter=jitter))

    monkeypatch.setattr("taxflow.utils.retry.schedule_retry", fake_schedule_retry)
    return delays
