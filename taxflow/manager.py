"""Composition root exposing client-facing use cases."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import TaxflowConfig, load_config
from .contracts import ClientData, DocumentData, ProcessingResult, TaxFormData
from .errors import ServiceNotInitializedError
from .services import DocumentProcessingService, FormGenerationService
from .services.interfaces import DocumentProcessor, FormGenerator
from .workflows import WorkflowOrchestrationService

logger = logging.getLogger(__name__)


def determine_required_forms(client: ClientData) -> List[str]:
    """Forms a client needs, derived from their documents.

    Form 1040 is always included.
    """
    types = {document.type for document in client.documents}
    categories = {
        (document.extracted_data or {}).get("category") for document in client.documents
    }

    forms = ["1040"]
    if "deduction" in categories:
        forms.append("ScheduleA")
    if "1099-NEC" in types or "business" in categories:
        forms.append("ScheduleC")
    if "1099-B" in types or "investment" in categories:
        forms.extend(["ScheduleD", "8949"])
    if "rental" in categories:
        forms.append("ScheduleE")
    if types & {"1099-INT", "1099-DIV"}:
        forms.append("ScheduleB")
    return forms


class ServiceManager:
    """Owns the collaborators and the orchestrator and pairs them per use case.

    Workflows started here are bookkeeping: the real work is driven directly
    through the collaborators. Wire step handlers on the orchestrator to make
    a workflow drive the work instead.
    """

    def __init__(
        self,
        config: Optional[TaxflowConfig] = None,
        document_processor: Optional[DocumentProcessor] = None,
        form_generator: Optional[FormGenerator] = None,
        workflow_orchestrator: Optional[WorkflowOrchestrationService] = None,
    ) -> None:
        self.config = config or TaxflowConfig()
        general = self.config.general
        self._document_processor = document_processor or DocumentProcessingService(general)
        self._form_generator = form_generator or FormGenerationService(general)
        self._workflow_orchestrator = workflow_orchestrator or WorkflowOrchestrationService(
            general, settings=self.config.orchestrator
        )
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> ProcessingResult[None]:
        """Health-check every service and mark the manager ready if all pass."""
        checks = await self._health_checks()
        failed = [check for check in checks if not check.success]
        if failed:
            error = f"Service initialization failed: {', '.join(str(c.error) for c in failed)}"
            logger.error(error)
            return ProcessingResult(success=False, error=error)

        self._initialized = True
        logger.info("Service manager initialized")
        return ProcessingResult(
            success=True,
            metadata={
                "services": ["DocumentProcessing", "FormGeneration", "WorkflowOrchestration"],
                "health_checks": [check.data for check in checks],
            },
        )

    # ------------------------------------------------------------------
    # Use cases
    async def process_client_intake(self, client: ClientData) -> ProcessingResult[str]:
        self._ensure_initialized()
        result = await self._workflow_orchestrator.start_workflow(client.id, "client_onboarding")
        if not result.success:
            return result
        return ProcessingResult(
            success=True,
            data=result.data,
            processing_time=result.processing_time,
            metadata={"client_id": client.id, "workflow_type": "client_onboarding"},
        )

    async def process_documents(
        self, client_id: str, documents: List[DocumentData]
    ) -> ProcessingResult[List[DocumentData]]:
        self._ensure_initialized()
        workflow = await self._workflow_orchestrator.start_workflow(client_id, "document_processing")
        if not workflow.success:
            logger.warning(f"Document workflow not started for {client_id}: {workflow.error}")

        processed: List[DocumentData] = []
        for document in documents:
            result = await self._document_processor.process_document(document)
            if result.success and result.data is not None:
                processed.append(result.data)
            else:
                logger.warning(f"Document {document.id} not processed: {result.error}")

        return ProcessingResult(
            success=True,
            data=processed,
            metadata={
                "workflow_id": workflow.data,
                "processed_count": len(processed),
                "total_count": len(documents),
            },
        )

    async def generate_tax_forms(self, client: ClientData) -> ProcessingResult[List[TaxFormData]]:
        self._ensure_initialized()
        workflow = await self._workflow_orchestrator.start_workflow(client.id, "tax_preparation")
        if not workflow.success:
            logger.warning(f"Tax preparation workflow not started for {client.id}: {workflow.error}")

        required = determine_required_forms(client)
        data = {**client.model_dump(), "client_id": client.id}
        forms: List[TaxFormData] = []
        for form_type in required:
            result = await self._form_generator.generate_form(form_type, data)
            if result.success and result.data is not None:
                forms.append(result.data)
            else:
                logger.warning(f"Form {form_type} not generated for {client.id}: {result.error}")

        return ProcessingResult(
            success=True,
            data=forms,
            metadata={
                "workflow_id": workflow.data,
                "forms_generated": len(forms),
                "form_types": required,
            },
        )

    async def get_client_progress(self, client_id: str) -> ProcessingResult[Dict[str, Any]]:
        self._ensure_initialized()
        orchestrator = self._workflow_orchestrator
        active = [wf for wf in orchestrator.get_active_workflows() if wf.client_id == client_id]
        completed = [wf for wf in orchestrator.get_completed_workflows() if wf.client_id == client_id]
        return ProcessingResult(
            success=True,
            data={
                "client_id": client_id,
                "active_workflows": active,
                "completed_workflows": completed,
                "total_workflows": len(active) + len(completed),
            },
        )

    async def get_system_status(self) -> ProcessingResult[Dict[str, Any]]:
        """Health of every service; callable before ``initialize``."""
        documents, forms, workflows = await self._health_checks()
        return ProcessingResult(
            success=True,
            data={
                "initialized": self._initialized,
                "services": {
                    "document_processing": documents.data,
                    "form_generation": forms.data,
                    "workflow_orchestration": workflows.data,
                },
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    # ------------------------------------------------------------------
    # Service access
    def get_document_processor(self) -> DocumentProcessor:
        self._ensure_initialized()
        return self._document_processor

    def get_form_generator(self) -> FormGenerator:
        self._ensure_initialized()
        return self._form_generator

    def get_workflow_orchestrator(self) -> WorkflowOrchestrationService:
        self._ensure_initialized()
        return self._workflow_orchestrator

    async def _health_checks(self) -> List[ProcessingResult[Dict[str, Any]]]:
        return list(
            await asyncio.gather(
                self._document_processor.health_check(),
                self._form_generator.health_check(),
                self._workflow_orchestrator.health_check(),
            )
        )

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise ServiceNotInitializedError(
                "ServiceManager not initialized. Call initialize() first."
            )


_service_manager_instance: ServiceManager | None = None


def create_service_manager(config: Optional[TaxflowConfig] = None, **overrides: Any) -> ServiceManager:
    """Build a ``ServiceManager`` from configuration.

    ``overrides`` are passed through to the constructor, e.g. to inject a
    custom ``document_processor``.
    """
    return ServiceManager(config or load_config(), **overrides)


def get_service_manager() -> ServiceManager:
    """Return the process-wide service manager, creating it on first use."""
    global _service_manager_instance
    if _service_manager_instance is None:
        _service_manager_instance = create_service_manager()
    return _service_manager_instance


async def initialize_services(config: Optional[TaxflowConfig] = None) -> ProcessingResult[None]:
    """Replace the process-wide service manager and initialize it."""
    global _service_manager_instance
    _service_manager_instance = create_service_manager(config)
    return await _service_manager_instance.initialize()
