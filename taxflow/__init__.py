"""taxflow: in-process workflow orchestration for tax practice services."""

from .config import OrchestratorSettings, RetryPolicy, ServiceConfig, TaxflowConfig, load_config
from .contracts import ClientData, DocumentData, ProcessingResult, TaxFormData
from .errors import ProcessingError, ServiceError, ValidationError
from .manager import ServiceManager, create_service_manager, get_service_manager, initialize_services
from .services import BaseService, DocumentProcessingService, FormGenerationService
from .utils import sanitize_data
from .workflows import DEFAULT_REGISTRY, WorkflowOrchestrationService, WorkflowStatus

__version__ = "0.1.0"
__all__ = [
    "BaseService",
    "ClientData",
    "DEFAULT_REGISTRY",
    "DocumentData",
    "DocumentProcessingService",
    "FormGenerationService",
    "OrchestratorSettings",
    "ProcessingError",
    "ProcessingResult",
    "RetryPolicy",
    "ServiceConfig",
    "ServiceError",
    "ServiceManager",
    "TaxFormData",
    "TaxflowConfig",
    "ValidationError",
    "WorkflowOrchestrationService",
    "WorkflowStatus",
    "create_service_manager",
    "get_service_manager",
    "initialize_services",
    "load_config",
    "sanitize_data",
]
