"""Catalog of workflow definitions."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .models import StepTemplate, WorkflowDefinition


class WorkflowRegistry:
    """In-memory catalog of workflow definitions keyed by workflow type."""

    def __init__(self, definitions: Iterable[WorkflowDefinition] = ()) -> None:
        self._definitions: Dict[str, WorkflowDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: WorkflowDefinition) -> None:
        """Add ``definition``; re-registering a type replaces the old one."""
        if not definition.steps:
            raise ValueError(f"Workflow {definition.id} must define at least one step")
        step_ids = definition.step_ids()
        if len(set(step_ids)) != len(step_ids):
            raise ValueError(f"Workflow {definition.id} has duplicate step ids")
        self._definitions[definition.id] = definition

    def get(self, workflow_type: str) -> Optional[WorkflowDefinition]:
        return self._definitions.get(workflow_type)

    def types(self) -> List[str]:
        return list(self._definitions)

    def definitions(self) -> List[WorkflowDefinition]:
        return list(self._definitions.values())

    def __contains__(self, workflow_type: object) -> bool:
        return workflow_type in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


def _steps(*items: tuple[str, str, float]) -> tuple[StepTemplate, ...]:
    return tuple(
        StepTemplate(id=step_id, name=name, estimated_duration=duration)
        for step_id, name, duration in items
    )


TAX_PREPARATION = WorkflowDefinition(
    id="tax_preparation",
    name="Tax Preparation Workflow",
    description="Complete tax preparation process from intake to filing",
    steps=_steps(
        ("intake_review", "Review Client Intake", 300),
        ("document_collection", "Collect Tax Documents", 1800),
        ("document_processing", "Process Documents with AI", 600),
        ("form_generation", "Generate Tax Forms", 900),
        ("review_validation", "Review and Validate", 1200),
        ("client_review", "Client Review", 2400),
        ("digital_signing", "Digital Signing", 600),
        ("filing", "File Tax Return", 300),
    ),
)

DOCUMENT_PROCESSING = WorkflowDefinition(
    id="document_processing",
    name="Document Processing Workflow",
    description="AI-powered document analysis and data extraction",
    steps=_steps(
        ("upload_validation", "Validate Upload", 60),
        ("ocr_extraction", "OCR Text Extraction", 180),
        ("ai_analysis", "AI Document Analysis", 240),
        ("data_extraction", "Extract Tax Data", 120),
        ("validation", "Validate Extracted Data", 180),
        ("categorization", "Categorize Document", 60),
    ),
)

CLIENT_ONBOARDING = WorkflowDefinition(
    id="client_onboarding",
    name="Client Onboarding Workflow",
    description="Complete client onboarding process",
    steps=_steps(
        ("intake_submission", "Intake Form Submission", 1800),
        ("crm_creation", "Create CRM Entry", 120),
        ("folder_setup", "Setup Client Folder", 180),
        ("welcome_notification", "Send Welcome Email", 60),
        ("document_checklist", "Generate Document Checklist", 240),
        ("initial_consultation", "Schedule Initial Consultation", 300),
    ),
)

BUILTIN_DEFINITIONS = (TAX_PREPARATION, DOCUMENT_PROCESSING, CLIENT_ONBOARDING)


def default_registry() -> WorkflowRegistry:
    """Return a fresh registry holding the built-in workflows."""
    return WorkflowRegistry(BUILTIN_DEFINITIONS)


# Shared catalog used when an orchestrator is not given its own registry.
DEFAULT_REGISTRY = default_registry()
