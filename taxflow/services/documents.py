"""Rule-based document processor.

Classifies a document from its declared type or filename and pulls
``Label: value`` lines out of its text content. Real OCR and model-backed
extraction plug in behind the same ``DocumentProcessor`` protocol.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..contracts import DocumentData, ProcessingResult
from ..errors import ProcessingError, ValidationError
from .base import BaseService

KNOWN_TYPES = ("W-2", "1099-NEC", "1099-INT", "1099-DIV", "1099-B", "1099-MISC", "1098", "Receipt", "Invoice")

CATEGORY_BY_TYPE: Dict[str, str] = {
    "W-2": "income",
    "1099-NEC": "business",
    "1099-MISC": "income",
    "1099-INT": "interest",
    "1099-DIV": "dividend",
    "1099-B": "investment",
    "1098": "deduction",
    "Receipt": "deduction",
    "Invoice": "business",
}

REQUIRED_AMOUNTS: Dict[str, tuple[str, ...]] = {
    "W-2": ("wages",),
    "1099-NEC": ("income",),
    "1099-INT": ("interest",),
    "1099-DIV": ("dividends",),
    "1099-B": ("proceeds",),
    "Receipt": ("amount",),
}

OCR_MIME_TYPES = ("image/jpeg", "image/png", "image/tiff", "application/pdf")

_LINE_RE = re.compile(r"^\s*([A-Za-z][A-Za-z0-9 _/'()-]*?)\s*:\s*(.+?)\s*$")
_AMOUNT_RE = re.compile(r"^\(?-?\$?\s*-?[\d,]*\d[\d,]*(\.\d+)?\)?$")


def _field_name(label: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", label.lower()).strip("_")


def parse_value(raw: str) -> Any:
    """Parse ``$1,234.50`` style amounts into floats; leave other text alone."""
    value = raw.strip()
    if not _AMOUNT_RE.match(value):
        return value
    negative = value.startswith("(") or "-" in value
    number = float(re.sub(r"[^\d.]", "", value))
    return -number if negative else number


def parse_fields(content: str) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for line in content.splitlines():
        match = _LINE_RE.match(line)
        if match:
            fields[_field_name(match.group(1))] = parse_value(match.group(2))
    return fields


class DocumentProcessingService(BaseService):
    """Default ``DocumentProcessor`` implementation."""

    default_config = {"timeout_ms": 60_000}

    async def process_document(self, document: DocumentData) -> ProcessingResult[DocumentData]:
        async def _process() -> DocumentData:
            self.validate_required(document.model_dump(), ["id", "type", "content"])
            document_type = self.identify_document_type(document)
            extracted = self._extract(document, document_type)
            metadata = {
                **document.metadata,
                "document_type": document_type,
                "requires_ocr": self.requires_ocr(document),
                "processed_at": datetime.now(timezone.utc).isoformat(),
            }
            self._log(logging.INFO, f"Processed document {document.id} as {document_type}")
            return document.model_copy(
                update={"extracted_data": extracted, "metadata": metadata}, deep=True
            )

        return await self.execute_with_retry(_process, "process_document")

    async def extract_data(self, document: DocumentData) -> ProcessingResult[Dict[str, Any]]:
        async def _extract() -> Dict[str, Any]:
            return self._extract(document, self.identify_document_type(document))

        return await self.execute_with_retry(_extract, "extract_data")

    async def validate_document(self, document: DocumentData) -> ProcessingResult[bool]:
        async def _validate() -> bool:
            document_type = self.identify_document_type(document)
            extracted = document.extracted_data or self._extract(document, document_type)
            required = REQUIRED_AMOUNTS.get(document_type, ())
            missing = [name for name in required if not isinstance(extracted.get(name), (int, float))]
            if missing:
                raise ValidationError(
                    f"{document_type} document {document.id} is missing {', '.join(missing)}",
                    {"document_id": document.id, "missing": missing},
                )
            return True

        return await self.execute_with_retry(_validate, "validate_document")

    def requires_ocr(self, document: DocumentData) -> bool:
        return (
            document.metadata.get("mime_type") in OCR_MIME_TYPES
            or document.metadata.get("requires_ocr") is True
        )

    def identify_document_type(self, document: DocumentData) -> str:
        """Known declared type first, then filename hints, else ``Unknown``."""
        if document.type in KNOWN_TYPES:
            return document.type
        filename = str(document.metadata.get("filename", "")).lower()
        for doc_type in ("1099-NEC", "1099-INT", "1099-DIV", "1099-B", "1099-MISC"):
            if doc_type.lower() in filename:
                return doc_type
        if "w-2" in filename or "w2" in filename:
            return "W-2"
        if "1098" in filename:
            return "1098"
        if "receipt" in filename:
            return "Receipt"
        if "invoice" in filename:
            return "Invoice"
        return "Unknown"

    def _extract(self, document: DocumentData, document_type: str) -> Dict[str, Any]:
        fields = parse_fields(document.content)
        if not fields:
            raise ProcessingError(
                f"No \"Label: value\" lines found in document {document.id}",
                step="extraction",
                details={"document_id": document.id, "document_type": document_type},
                retryable=False,
            )
        category: Optional[str] = document.metadata.get("category") or fields.get("category")
        amounts = {key: value for key, value in fields.items() if isinstance(value, float)}
        return {
            **fields,
            "document_type": document_type,
            "category": category or CATEGORY_BY_TYPE.get(document_type, "other"),
            "amounts": amounts,
            "total": round(sum(amounts.values()), 2),
        }

    async def perform_health_check(self) -> Dict[str, Any]:
        return {
            "extractors": list(KNOWN_TYPES) + ["Generic"],
            "validators": list(REQUIRED_AMOUNTS),
        }
