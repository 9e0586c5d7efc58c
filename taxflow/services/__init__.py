from .base import BaseService
from .documents import DocumentProcessingService
from .forms import DEFAULT_TEMPLATES, FormGenerationService, FormTemplate
from .interfaces import DocumentProcessor, FormGenerator

__all__ = [
    "BaseService",
    "DEFAULT_TEMPLATES",
    "DocumentProcessingService",
    "DocumentProcessor",
    "FormGenerationService",
    "FormGenerator",
    "FormTemplate",
]
