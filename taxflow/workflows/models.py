"""Data models for workflow definitions and running instances."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Sequence, get_args

from pydantic import BaseModel, ConfigDict, Field

StepState = Literal["pending", "in_progress", "completed", "failed", "skipped"]
WorkflowState = Literal["pending", "in_progress", "completed", "failed"]

STEP_STATES: tuple[str, ...] = get_args(StepState)
TERMINAL_STEP_STATES = frozenset({"completed", "failed", "skipped"})
TERMINAL_WORKFLOW_STATES = frozenset({"completed", "failed"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepTemplate(BaseModel):
    """One step of a workflow definition.

    ``estimated_duration`` is in seconds.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    estimated_duration: float = 1.0
    description: Optional[str] = None


class WorkflowDefinition(BaseModel):
    """A named, ordered template of steps."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    steps: tuple[StepTemplate, ...]

    def step_ids(self) -> List[str]:
        return [step.id for step in self.steps]


class WorkflowStep(BaseModel):
    """Execution record of one step, owned by a single ``WorkflowStatus``."""

    id: str
    name: str
    status: StepState = "pending"
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_template(cls, template: StepTemplate) -> "WorkflowStep":
        return cls(
            id=template.id,
            name=template.name,
            metadata={"estimated_duration": template.estimated_duration},
        )


class WorkflowStatus(BaseModel):
    """Live state of one workflow instance."""

    id: str
    type: str
    client_id: str
    status: WorkflowState = "pending"
    current_step: str
    steps: List[WorkflowStep]
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        return next((step for step in self.steps if step.id == step_id), None)

    def is_finished(self) -> bool:
        return self.status in TERMINAL_WORKFLOW_STATES

    def touch(self) -> None:
        self.updated_at = utcnow()


def derive_workflow_status(steps: Sequence[WorkflowStep]) -> WorkflowState:
    """Workflow status implied by its steps.

    Precedence: any failed step, then all completed, then any completed,
    otherwise pending.
    """
    statuses = [step.status for step in steps]
    if "failed" in statuses:
        return "failed"
    if statuses and all(status == "completed" for status in statuses):
        return "completed"
    if "completed" in statuses:
        return "in_progress"
    return "pending"
