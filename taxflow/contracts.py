"""Core data contracts shared by taxflow services."""

from __future__ import annotations

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ProcessingResult(BaseModel, Generic[T]):
    """Uniform success/failure envelope returned by every service operation.

    ``processing_time`` is in milliseconds.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    processing_time: float = 0.0
    metadata: Optional[Dict[str, Any]] = None

    @property
    def code(self) -> Optional[str]:
        """Error code of a failed result, when one was recorded."""
        if self.metadata:
            return self.metadata.get("code")
        return None


class DocumentData(BaseModel):
    """A client document submitted for processing."""

    id: str
    type: str
    content: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    extracted_data: Optional[Dict[str, Any]] = None


class ClientData(BaseModel):
    """A client together with the documents collected for them."""

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    filing_status: Optional[str] = None
    documents: List[DocumentData] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FormValidation(BaseModel):
    is_valid: bool = False
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class TaxFormData(BaseModel):
    """A generated tax form and its validation outcome."""

    form_type: str
    fields: Dict[str, Any] = Field(default_factory=dict)
    validation: FormValidation = Field(default_factory=FormValidation)
