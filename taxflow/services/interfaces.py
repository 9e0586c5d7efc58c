"""Collaborator protocols consumed by the service manager."""

from __future__ import annotations

from typing import Any, Dict, Protocol

from ..contracts import DocumentData, ProcessingResult, TaxFormData


class DocumentProcessor(Protocol):
    """Turns raw client documents into extracted, categorised data."""

    async def process_document(self, document: DocumentData) -> ProcessingResult[DocumentData]:
        """Run the full pipeline on ``document``."""

    async def extract_data(self, document: DocumentData) -> ProcessingResult[Dict[str, Any]]:
        """Extract structured values from ``document``."""

    async def validate_document(self, document: DocumentData) -> ProcessingResult[bool]:
        """Check ``document`` carries what its type requires."""

    async def health_check(self) -> ProcessingResult[Dict[str, Any]]:
        """Report collaborator health."""


class FormGenerator(Protocol):
    """Builds, validates and renders tax forms."""

    async def generate_form(
        self, form_type: str, data: Dict[str, Any]
    ) -> ProcessingResult[TaxFormData]:
        """Generate ``form_type`` from client data."""

    async def validate_form(self, form: TaxFormData) -> ProcessingResult[bool]:
        """Validate a generated form."""

    async def fill_form(self, template: str, data: Dict[str, Any]) -> ProcessingResult[bytes]:
        """Render ``template`` filled with ``data``."""

    async def health_check(self) -> ProcessingResult[Dict[str, Any]]:
        """Report collaborator health."""
