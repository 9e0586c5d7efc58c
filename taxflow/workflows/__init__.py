"""Workflow definitions, instance models and the orchestrator."""

from __future__ import annotations

from .definitions import (
    BUILTIN_DEFINITIONS,
    CLIENT_ONBOARDING,
    DEFAULT_REGISTRY,
    DOCUMENT_PROCESSING,
    TAX_PREPARATION,
    WorkflowRegistry,
    default_registry,
)
from .models import (
    StepTemplate,
    WorkflowDefinition,
    WorkflowStatus,
    WorkflowStep,
    derive_workflow_status,
)
from .orchestrator import StepContext, StepHandler, WorkflowOrchestrationService
from .store import InMemoryWorkflowStore, WorkflowStore

__all__ = [
    "BUILTIN_DEFINITIONS",
    "CLIENT_ONBOARDING",
    "DEFAULT_REGISTRY",
    "DOCUMENT_PROCESSING",
    "TAX_PREPARATION",
    "InMemoryWorkflowStore",
    "StepContext",
    "StepHandler",
    "StepTemplate",
    "WorkflowDefinition",
    "WorkflowOrchestrationService",
    "WorkflowRegistry",
    "WorkflowStatus",
    "WorkflowStep",
    "WorkflowStore",
    "default_registry",
    "derive_workflow_status",
]
