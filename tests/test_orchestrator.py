"""Workflow orchestration behaviour."""

import asyncio
import itertools

import pytest

from taxflow.config import OrchestratorSettings
from taxflow.workflows import (
    DEFAULT_REGISTRY,
    WorkflowOrchestrationService,
    WorkflowStatus,
    WorkflowStep,
)
from taxflow.workflows.models import STEP_STATES

ONBOARDING_STEPS = [
    "intake_submission",
    "crm_creation",
    "folder_setup",
    "welcome_notification",
    "document_checklist",
    "initial_consultation",
]


@pytest.mark.asyncio
@pytest.mark.parametrize("workflow_type", DEFAULT_REGISTRY.types())
async def test_every_registered_workflow_runs_to_completion(workflow_type, fast_settings):
    orchestrator = WorkflowOrchestrationService(settings=fast_settings)

    started = await orchestrator.start_workflow("client-1", workflow_type)
    assert started.success
    assert started.data.startswith(f"{workflow_type}_client-1_")

    finished = await orchestrator.wait_for_workflow(started.data, timeout=5)
    assert finished.success
    workflow = finished.data
    assert workflow.status == "completed"
    assert all(step.status == "completed" for step in workflow.steps)
    assert all(step.started_at and step.completed_at for step in workflow.steps)
    assert workflow.current_step == workflow.steps[-1].id


@pytest.mark.asyncio
async def test_new_workflow_is_pending_with_fixed_step_order():
    orchestrator = WorkflowOrchestrationService(
        settings=OrchestratorSettings(step_pacing_scale=0, start_delay_seconds=0.1)
    )

    started = await orchestrator.start_workflow("client-42", "client_onboarding")
    status = await orchestrator.get_workflow_status(started.data)

    workflow = status.data
    assert [step.id for step in workflow.steps] == ONBOARDING_STEPS
    assert all(step.status == "pending" for step in workflow.steps)
    assert workflow.status == "pending"
    assert workflow.current_step == "intake_submission"
    assert workflow.client_id == "client-42"

    await orchestrator.aclose()
    assert workflow.status == "completed"


@pytest.mark.asyncio
async def test_unknown_workflow_type_is_rejected(fast_settings, backoff_calls):
    orchestrator = WorkflowOrchestrationService(settings=fast_settings)

    result = await orchestrator.start_workflow("client-1", "payroll")

    assert not result.success
    assert "not found" in result.error.lower()
    assert result.code == "WORKFLOW_NOT_FOUND"
    assert set(result.metadata["details"]["available_types"]) == set(DEFAULT_REGISTRY.types())
    assert orchestrator.list_workflows() == []
    assert backoff_calls == []


@pytest.mark.asyncio
async def test_failing_step_fails_workflow_and_leaves_rest_pending(fast_settings):
    calls = []

    def folder_setup(context):
        calls.append(context.step.id)
        raise RuntimeError("storage offline")

    orchestrator = WorkflowOrchestrationService(
        settings=fast_settings, step_handlers={"folder_setup": folder_setup}
    )
    started = await orchestrator.start_workflow("client-1", "client_onboarding")
    workflow = (await orchestrator.wait_for_workflow(started.data, timeout=5)).data

    assert workflow.status == "failed"
    assert [step.status for step in workflow.steps] == [
        "completed",
        "completed",
        "failed",
        "pending",
        "pending",
        "pending",
    ]
    assert workflow.get_step("folder_setup").error == "storage offline"
    # step handlers are never retried
    assert calls == ["folder_setup"]


@pytest.mark.asyncio
async def test_step_handlers_receive_context_and_store_results(fast_settings):
    seen = []

    async def crm_creation(context):
        seen.append((context.workflow_id, context.client_id))
        return {"crm_id": "hs-1"}

    orchestrator = WorkflowOrchestrationService(settings=fast_settings)
    orchestrator.register_step_handler("crm_creation", crm_creation)
    orchestrator.register_step_handler("client_onboarding:folder_setup", lambda ctx: "/clients/c1")

    started = await orchestrator.start_workflow("c1", "client_onboarding")
    workflow = (await orchestrator.wait_for_workflow(started.data, timeout=5)).data

    assert seen == [(started.data, "c1")]
    assert workflow.get_step("crm_creation").metadata["result"] == {"crm_id": "hs-1"}
    assert workflow.get_step("folder_setup").metadata["result"] == "/clients/c1"
    assert "result" not in workflow.get_step("welcome_notification").metadata


@pytest.mark.asyncio
async def test_manual_failure_halts_a_running_workflow(fast_settings):
    release = asyncio.Event()
    entered = asyncio.Event()

    async def intake_submission(context):
        entered.set()
        await release.wait()

    orchestrator = WorkflowOrchestrationService(
        settings=fast_settings, step_handlers={"intake_submission": intake_submission}
    )
    started = await orchestrator.start_workflow("c1", "client_onboarding")
    await asyncio.wait_for(entered.wait(), timeout=5)

    updated = await orchestrator.update_workflow_step(started.data, "folder_setup", "failed")
    assert updated.data.status == "failed"

    release.set()
    workflow = (await orchestrator.wait_for_workflow(started.data, timeout=5)).data

    assert workflow.status == "failed"
    assert [step.status for step in workflow.steps[:3]] == ["completed", "pending", "failed"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "step_id,forced,expected_steps",
    [
        (
            "folder_setup",
            "skipped",
            ["completed", "completed", "skipped", "completed", "completed", "completed"],
        ),
        (
            "intake_submission",
            "pending",
            ["pending", "completed", "completed", "completed", "completed", "completed"],
        ),
    ],
)
async def test_final_status_is_derived_from_steps(step_id, forced, expected_steps, fast_settings):
    release = asyncio.Event()
    entered = asyncio.Event()

    async def intake_submission(context):
        entered.set()
        await release.wait()

    orchestrator = WorkflowOrchestrationService(
        settings=fast_settings, step_handlers={"intake_submission": intake_submission}
    )
    started = await orchestrator.start_workflow("c1", "client_onboarding")
    await asyncio.wait_for(entered.wait(), timeout=5)

    await orchestrator.update_workflow_step(started.data, step_id, forced)
    release.set()
    workflow = (await orchestrator.wait_for_workflow(started.data, timeout=5)).data

    assert [step.status for step in workflow.steps] == expected_steps
    assert workflow.status == "in_progress"


@pytest.mark.asyncio
async def test_start_returns_before_any_step_runs_without_start_delay(fast_settings):
    orchestrator = WorkflowOrchestrationService(settings=fast_settings)

    started = await orchestrator.start_workflow("c1", "client_onboarding")
    workflow = orchestrator.store.get(started.data)

    assert workflow.status == "pending"
    assert all(step.status == "pending" for step in workflow.steps)
    assert all(step.started_at is None for step in workflow.steps)

    await orchestrator.aclose()
    assert workflow.status == "completed"


@pytest.mark.asyncio
async def test_wait_for_workflow_times_out_without_cancelling(fast_settings):
    release = asyncio.Event()

    async def blocked(context):
        await release.wait()

    orchestrator = WorkflowOrchestrationService(
        settings=fast_settings, step_handlers={"upload_validation": blocked}
    )
    started = await orchestrator.start_workflow("c1", "document_processing")

    waited = await orchestrator.wait_for_workflow(started.data, timeout=0.05)
    assert not waited.success
    assert waited.code == "TIMEOUT"
    assert waited.data.status == "in_progress"

    release.set()
    finished = await orchestrator.wait_for_workflow(started.data, timeout=5)
    assert finished.data.status == "completed"


@pytest.mark.asyncio
async def test_lookups_of_missing_workflows_and_steps(fast_settings):
    orchestrator = WorkflowOrchestrationService(settings=fast_settings)

    missing = await orchestrator.get_workflow_status("nope")
    assert not missing.success
    assert missing.code == "WORKFLOW_NOT_FOUND"

    waited = await orchestrator.wait_for_workflow("nope")
    assert waited.code == "WORKFLOW_NOT_FOUND"

    started = await orchestrator.start_workflow("c1", "client_onboarding")
    await orchestrator.aclose()

    bad_step = await orchestrator.update_workflow_step(started.data, "filing", "completed")
    assert not bad_step.success
    assert bad_step.code == "STEP_NOT_FOUND"

    bad_status = await orchestrator.update_workflow_step(started.data, "crm_creation", "done")
    assert not bad_status.success
    assert bad_status.code == "VALIDATION_ERROR"


@pytest.mark.asyncio
@pytest.mark.parametrize("first,second", list(itertools.product(STEP_STATES, repeat=2)))
async def test_update_workflow_step_recomputes_status(first, second, fast_settings):
    orchestrator = WorkflowOrchestrationService(settings=fast_settings)
    orchestrator.store.add(
        WorkflowStatus(
            id="wf-1",
            type="manual",
            client_id="c1",
            current_step="review",
            steps=[WorkflowStep(id="review", name="Review"), WorkflowStep(id="sign", name="Sign")],
        )
    )

    await orchestrator.update_workflow_step("wf-1", "review", first)
    result = await orchestrator.update_workflow_step("wf-1", "sign", second)

    statuses = (first, second)
    if "failed" in statuses:
        expected = "failed"
    elif statuses == ("completed", "completed"):
        expected = "completed"
    elif "completed" in statuses:
        expected = "in_progress"
    else:
        expected = "pending"
    assert result.success
    assert result.data.status == expected


@pytest.mark.asyncio
async def test_workflow_ids_are_unique_per_start(fast_settings):
    orchestrator = WorkflowOrchestrationService(settings=fast_settings)

    ids = [
        (await orchestrator.start_workflow("c1", "client_onboarding")).data for _ in range(5)
    ]
    await orchestrator.aclose()

    assert len(set(ids)) == 5
    assert len(orchestrator.get_completed_workflows()) == 5


@pytest.mark.asyncio
async def test_listing_and_health_check(fast_settings):
    release = asyncio.Event()

    async def blocked(context):
        await release.wait()

    orchestrator = WorkflowOrchestrationService(
        settings=fast_settings, step_handlers={"intake_review": blocked}
    )
    done = await orchestrator.start_workflow("c1", "client_onboarding")
    await orchestrator.wait_for_workflow(done.data, timeout=5)
    running = await orchestrator.start_workflow("c2", "tax_preparation")

    assert [wf.id for wf in orchestrator.get_completed_workflows()] == [done.data]
    assert [wf.id for wf in orchestrator.get_active_workflows()] == [running.data]
    assert [wf.id for wf in orchestrator.list_workflows(client_id="c2")] == [running.data]

    health = await orchestrator.health_check()
    assert health.success
    details = health.data["details"]
    assert details["active_workflows"] == 1
    assert {d["id"]: d["step_count"] for d in details["workflow_definitions"]} == {
        "tax_preparation": 8,
        "document_processing": 6,
        "client_onboarding": 6,
    }

    release.set()
    await orchestrator.aclose()


@pytest.mark.asyncio
async def test_steps_are_paced_by_estimated_duration(monkeypatch):
    slept = []
    real_sleep = asyncio.sleep

    async def recording_sleep(delay, *args, **kwargs):
        slept.append(delay)
        await real_sleep(0)

    monkeypatch.setattr("taxflow.workflows.orchestrator.asyncio.sleep", recording_sleep)
    orchestrator = WorkflowOrchestrationService(
        settings=OrchestratorSettings(step_pacing_scale=0.5, start_delay_seconds=0)
    )

    started = await orchestrator.start_workflow("c1", "document_processing")
    await orchestrator.aclose()

    assert (await orchestrator.get_workflow_status(started.data)).data.status == "completed"
    assert slept == [30.0, 90.0, 120.0, 60.0, 90.0, 30.0]
