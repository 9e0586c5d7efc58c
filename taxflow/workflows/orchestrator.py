"""Workflow orchestration: create, run and track workflow instances."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from ..config import OrchestratorSettings, ServiceConfig
from ..contracts import ProcessingResult
from ..errors import (
    TIMEOUT,
    StepNotFoundError,
    ValidationError,
    WorkflowNotFoundError,
)
from ..services.base import BaseService
from .definitions import DEFAULT_REGISTRY, WorkflowRegistry
from .models import (
    STEP_STATES,
    TERMINAL_STEP_STATES,
    WorkflowDefinition,
    WorkflowStatus,
    WorkflowStep,
    derive_workflow_status,
    utcnow,
)
from .store import InMemoryWorkflowStore, WorkflowStore


@dataclass
class StepContext:
    """What a step handler gets to see about the step it runs."""

    workflow: WorkflowStatus
    step: WorkflowStep

    @property
    def workflow_id(self) -> str:
        return self.workflow.id

    @property
    def client_id(self) -> str:
        return self.workflow.client_id


StepHandler = Callable[[StepContext], Union[Any, Awaitable[Any]]]


class WorkflowOrchestrationService(BaseService):
    """Runs registered workflows as sequential, pollable state machines.

    ``start_workflow`` returns as soon as the instance is stored; each instance
    then runs in its own asyncio task. Step work is delegated to handlers
    looked up by ``"<workflow_type>:<step_id>"`` and then by ``"<step_id>"``;
    steps without a handler just log. A handler that raises fails the whole
    workflow and is never retried.
    """

    def __init__(
        self,
        config: Union[ServiceConfig, Mapping[str, Any], None] = None,
        registry: Optional[WorkflowRegistry] = None,
        store: Optional[WorkflowStore] = None,
        step_handlers: Optional[Mapping[str, StepHandler]] = None,
        settings: Optional[OrchestratorSettings] = None,
    ) -> None:
        super().__init__(config)
        self.settings = settings or OrchestratorSettings()
        self.registry = registry or DEFAULT_REGISTRY
        self.store: WorkflowStore = store or InMemoryWorkflowStore(
            self.settings.max_retained_workflows
        )
        self._handlers: Dict[str, StepHandler] = dict(step_handlers or {})
        self._tasks: Dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Public API
    async def start_workflow(self, client_id: str, workflow_type: str) -> ProcessingResult[str]:
        """Create a workflow instance and schedule its execution."""

        async def _start() -> str:
            definition = self.registry.get(workflow_type)
            if definition is None:
                raise WorkflowNotFoundError(
                    f"Workflow definition not found: {workflow_type}",
                    {"workflow_type": workflow_type, "available_types": self.registry.types()},
                )

            workflow_id = self._generate_workflow_id(client_id, workflow_type)
            steps = [WorkflowStep.from_template(template) for template in definition.steps]
            workflow = WorkflowStatus(
                id=workflow_id,
                type=workflow_type,
                client_id=client_id,
                current_step=steps[0].id,
                steps=steps,
            )
            self.store.add(workflow)
            return workflow_id

        result = await self.execute_with_retry(_start, "start_workflow")
        if result.success:
            self._spawn(result.data)
            self._log(logging.INFO, f"Started workflow {result.data}")
        return result

    async def get_workflow_status(self, workflow_id: str) -> ProcessingResult[WorkflowStatus]:
        """Return the live (possibly still changing) workflow instance."""

        async def _get() -> WorkflowStatus:
            return self._require_workflow(workflow_id)

        return await self.execute_with_retry(_get, "get_workflow_status")

    async def update_workflow_step(
        self, workflow_id: str, step_id: str, status: str
    ) -> ProcessingResult[WorkflowStatus]:
        """Force a step's status from outside, e.g. a manual approval gate.

        The workflow status is recomputed from all steps afterwards.
        """

        async def _update() -> WorkflowStatus:
            workflow = self._require_workflow(workflow_id)
            step = workflow.get_step(step_id)
            if step is None:
                raise StepNotFoundError(
                    f"Step not found: {step_id}",
                    {"workflow_id": workflow_id, "step_id": step_id},
                )
            if status not in STEP_STATES:
                raise ValidationError(
                    f"Invalid step status: {status}",
                    {"status": status, "allowed": list(STEP_STATES)},
                )

            step.status = status
            if status in TERMINAL_STEP_STATES:
                step.completed_at = utcnow()
            elif status == "in_progress" and step.started_at is None:
                step.started_at = utcnow()
            workflow.status = derive_workflow_status(workflow.steps)
            workflow.touch()
            self._log(
                logging.INFO,
                f"Step {step_id} of workflow {workflow_id} set to {status}; "
                f"workflow is {workflow.status}",
            )
            return workflow

        return await self.execute_with_retry(_update, "update_workflow_step")

    async def wait_for_workflow(
        self, workflow_id: str, timeout: Optional[float] = None
    ) -> ProcessingResult[WorkflowStatus]:
        """Wait until the workflow finishes executing, or ``timeout`` seconds pass."""
        start = time.perf_counter()
        workflow = self.store.get(workflow_id)
        if workflow is None:
            error = WorkflowNotFoundError(f"Workflow not found: {workflow_id}")
            return ProcessingResult(
                success=False,
                error=str(error),
                processing_time=(time.perf_counter() - start) * 1000,
                metadata=error.to_metadata(),
            )

        task = self._tasks.get(workflow_id)
        if task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout)
            except asyncio.TimeoutError:
                return ProcessingResult(
                    success=False,
                    data=workflow,
                    error=f"Timed out waiting for workflow {workflow_id}",
                    processing_time=(time.perf_counter() - start) * 1000,
                    metadata={"code": TIMEOUT, "details": {"timeout": timeout}},
                )
        return ProcessingResult(
            success=True, data=workflow, processing_time=(time.perf_counter() - start) * 1000
        )

    def register_step_handler(self, step_id: str, handler: StepHandler) -> None:
        """Route ``step_id`` (optionally ``"<workflow_type>:<step_id>"``) to ``handler``."""
        self._handlers[step_id] = handler

    def get_available_workflow_types(self) -> List[str]:
        return self.registry.types()

    def get_workflow_definition(self, workflow_type: str) -> Optional[WorkflowDefinition]:
        return self.registry.get(workflow_type)

    def get_active_workflows(self) -> List[WorkflowStatus]:
        return [wf for wf in self.store.list() if wf.status in ("pending", "in_progress")]

    def get_completed_workflows(self) -> List[WorkflowStatus]:
        return [wf for wf in self.store.list() if wf.status == "completed"]

    def list_workflows(self, client_id: Optional[str] = None) -> List[WorkflowStatus]:
        workflows = self.store.list()
        if client_id is None:
            return workflows
        return [wf for wf in workflows if wf.client_id == client_id]

    async def aclose(self) -> None:
        """Wait for every in-flight workflow task to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def perform_health_check(self) -> Dict[str, Any]:
        return {
            "active_workflows": len(self.get_active_workflows()),
            "available_workflow_types": self.registry.types(),
            "workflow_definitions": [
                {"id": d.id, "name": d.name, "step_count": len(d.steps)}
                for d in self.registry.definitions()
            ],
        }

    # ------------------------------------------------------------------
    # Execution
    def _spawn(self, workflow_id: str) -> None:
        task = asyncio.get_running_loop().create_task(
            self._execute_workflow(workflow_id), name=f"workflow:{workflow_id}"
        )
        self._tasks[workflow_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(workflow_id, None))

    async def _execute_workflow(self, workflow_id: str) -> None:
        if self.settings.start_delay_seconds:
            await asyncio.sleep(self.settings.start_delay_seconds)

        workflow = self.store.get(workflow_id)
        if workflow is None or workflow.is_finished():
            return

        workflow.status = "in_progress"
        workflow.touch()

        for step in workflow.steps:
            if workflow.status == "failed":
                self._log(logging.INFO, f"Workflow {workflow_id} failed out of band; halting")
                return
            if step.status in ("completed", "skipped"):
                continue
            try:
                await self._execute_step(workflow, step)
            except Exception as e:
                step.status = "failed"
                step.error = str(e)
                step.completed_at = utcnow()
                workflow.status = "failed"
                workflow.touch()
                self._log(logging.ERROR, f"Step {step.id} of workflow {workflow_id} failed: {e}")
                return

        workflow.status = derive_workflow_status(workflow.steps)
        workflow.touch()
        self._log(logging.INFO, f"Workflow {workflow_id} finished as {workflow.status}")

    async def _execute_step(self, workflow: WorkflowStatus, step: WorkflowStep) -> None:
        step.status = "in_progress"
        step.started_at = utcnow()
        workflow.current_step = step.id
        workflow.touch()

        handler = self._resolve_handler(workflow.type, step.id)
        result = handler(StepContext(workflow=workflow, step=step))
        if inspect.isawaitable(result):
            result = await result
        if result is not None:
            step.metadata["result"] = result

        delay = float(step.metadata.get("estimated_duration", 0)) * self.settings.step_pacing_scale
        if delay > 0:
            await asyncio.sleep(delay)

        if step.status == "in_progress":
            step.status = "completed"
            step.completed_at = utcnow()
            workflow.touch()

    def _resolve_handler(self, workflow_type: str, step_id: str) -> StepHandler:
        return (
            self._handlers.get(f"{workflow_type}:{step_id}")
            or self._handlers.get(step_id)
            or self._default_step_handler
        )

    def _default_step_handler(self, context: StepContext) -> None:
        self._log(logging.INFO, f"Executing step: {context.step.name}")

    # ------------------------------------------------------------------
    # Helpers
    def _require_workflow(self, workflow_id: str) -> WorkflowStatus:
        workflow = self.store.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(
                f"Workflow not found: {workflow_id}", {"workflow_id": workflow_id}
            )
        return workflow

    def _generate_workflow_id(self, client_id: str, workflow_type: str) -> str:
        base_id = f"{workflow_type}_{client_id}_{time.time_ns() // 1_000_000}"
        workflow_id = base_id
        suffix = 1
        while workflow_id in self.store:
            workflow_id = f"{base_id}_{suffix}"
            suffix += 1
        return workflow_id
