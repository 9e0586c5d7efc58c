"""Tax form templates and the default form generator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..contracts import FormValidation, ProcessingResult, TaxFormData
from ..errors import TEMPLATE_NOT_FOUND, TemplateNotFoundError
from .base import BaseService

STANDARD_DEDUCTIONS = {
    "single": 14600,
    "married_filing_jointly": 29200,
    "married_filing_separately": 14600,
    "head_of_household": 21900,
}


def _extracted(document: Mapping[str, Any]) -> Mapping[str, Any]:
    return document.get("extracted_data") or {}


def _matches(
    document: Mapping[str, Any],
    types: Iterable[str] = (),
    categories: Iterable[str] = (),
) -> bool:
    return document.get("type") in types or _extracted(document).get("category") in categories


def sum_amounts(
    documents: Iterable[Mapping[str, Any]],
    key: str,
    types: Iterable[str] = (),
    categories: Iterable[str] = (),
    where: Optional[Callable[[Mapping[str, Any]], bool]] = None,
) -> float:
    """Sum ``extracted_data[key]`` over documents of the given types/categories."""
    types, categories = tuple(types), tuple(categories)
    total = 0.0
    for document in documents:
        if not _matches(document, types, categories):
            continue
        if where is not None and not where(document):
            continue
        value = _extracted(document).get(key)
        if isinstance(value, (int, float)):
            total += value
    return round(total, 2)


def _deduction_of(kind: str) -> Callable[[Mapping[str, Any]], bool]:
    return lambda document: _extracted(document).get("deduction_type") == kind


def _form_1040(data: Mapping[str, Any]) -> Dict[str, Any]:
    documents = data.get("documents") or []
    metadata = data.get("metadata") or {}
    first_name, _, last_name = (data.get("name") or "").partition(" ")
    filing_status = data.get("filing_status") or ""

    wages = sum_amounts(documents, "wages", types=("W-2",))
    interest = sum_amounts(documents, "interest", types=("1099-INT",))
    dividends = sum_amounts(documents, "dividends", types=("1099-DIV",))
    business = sum_amounts(documents, "income", types=("1099-NEC",))
    itemized = sum_amounts(documents, "amount", categories=("deduction",))
    standard = STANDARD_DEDUCTIONS.get(filing_status, STANDARD_DEDUCTIONS["single"])
    agi = round(wages + interest + dividends + business, 2)

    return {
        "first_name": first_name,
        "last_name": last_name,
        "ssn": metadata.get("ssn", ""),
        "filing_status": filing_status,
        "wages": wages,
        "interest_income": interest,
        "dividend_income": dividends,
        "business_income": business,
        "standard_deduction": standard,
        "itemized_deductions": itemized,
        "adjusted_gross_income": agi,
        "taxable_income": max(0.0, round(agi - max(standard, itemized), 2)),
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


def _schedule_a(data: Mapping[str, Any]) -> Dict[str, Any]:
    documents = data.get("documents") or []
    fields = {
        name: sum_amounts(documents, "amount", categories=("deduction",), where=_deduction_of(kind))
        for name, kind in (
            ("medical_expenses", "medical"),
            ("state_and_local_taxes", "state_tax"),
            ("mortgage_interest", "mortgage_interest"),
            ("charitable_contributions", "charitable"),
        )
    }
    fields["total_itemized_deductions"] = sum_amounts(documents, "amount", categories=("deduction",))
    return fields


def _schedule_b(data: Mapping[str, Any]) -> Dict[str, Any]:
    documents = data.get("documents") or []
    interest = sum_amounts(documents, "interest", types=("1099-INT",))
    dividends = sum_amounts(documents, "dividends", types=("1099-DIV",))
    return {"interest": interest, "dividends": dividends, "total": round(interest + dividends, 2)}


def _schedule_c(data: Mapping[str, Any]) -> Dict[str, Any]:
    documents = data.get("documents") or []
    income = sum_amounts(documents, "income", types=("1099-NEC",), categories=("business",))
    expenses = sum_amounts(documents, "expenses", categories=("business",))
    return {
        "business_income": income,
        "business_expenses": expenses,
        "net_profit": round(income - expenses, 2),
    }


def _capital_transactions(data: Mapping[str, Any]) -> List[Dict[str, Any]]:
    transactions = []
    for document in data.get("documents") or []:
        if not _matches(document, ("1099-B",), ("investment",)):
            continue
        extracted = _extracted(document)
        proceeds = float(extracted.get("proceeds") or 0)
        cost_basis = float(extracted.get("cost_basis") or 0)
        transactions.append(
            {
                "description": extracted.get("description") or document.get("id"),
                "proceeds": proceeds,
                "cost_basis": cost_basis,
                "gain": round(proceeds - cost_basis, 2),
            }
        )
    return transactions


def _schedule_d(data: Mapping[str, Any]) -> Dict[str, Any]:
    gains = [t["gain"] for t in _capital_transactions(data)]
    capital_gains = round(sum(g for g in gains if g > 0), 2)
    capital_losses = round(-sum(g for g in gains if g < 0), 2)
    return {
        "capital_gains": capital_gains,
        "capital_losses": capital_losses,
        "net_capital_gain": round(capital_gains - capital_losses, 2),
    }


def _form_8949(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {"transactions": _capital_transactions(data)}


def _schedule_e(data: Mapping[str, Any]) -> Dict[str, Any]:
    documents = data.get("documents") or []
    income = sum_amounts(documents, "rent", categories=("rental",))
    expenses = sum_amounts(documents, "expenses", categories=("rental",))
    return {
        "rental_income": income,
        "rental_expenses": expenses,
        "net_rental_income": round(income - expenses, 2),
    }


@dataclass(frozen=True)
class FormTemplate:
    """How to build and check one form type."""

    form_type: str
    build: Callable[[Mapping[str, Any]], Dict[str, Any]]
    required_fields: tuple[str, ...] = ()
    non_negative: tuple[str, ...] = ()

    def validate(self, form: TaxFormData) -> FormValidation:
        errors = [f"{name} is required" for name in self.required_fields if not form.fields.get(name)]
        for name in self.non_negative:
            value = form.fields.get(name)
            if isinstance(value, (int, float)) and value < 0:
                errors.append(f"{name} cannot be negative")
        warnings = []
        agi = form.fields.get("adjusted_gross_income")
        if isinstance(agi, (int, float)) and agi < 0:
            warnings.append("Negative adjusted gross income may require review")
        return FormValidation(is_valid=not errors, errors=errors, warnings=warnings)


DEFAULT_TEMPLATES = (
    FormTemplate(
        "1040",
        _form_1040,
        required_fields=("first_name", "last_name", "ssn", "filing_status"),
        non_negative=("wages", "interest_income", "dividend_income"),
    ),
    FormTemplate("ScheduleA", _schedule_a, non_negative=("total_itemized_deductions",)),
    FormTemplate("ScheduleB", _schedule_b, non_negative=("interest", "dividends")),
    FormTemplate("ScheduleC", _schedule_c, non_negative=("business_income", "business_expenses")),
    FormTemplate("ScheduleD", _schedule_d, non_negative=("capital_gains", "capital_losses")),
    FormTemplate("ScheduleE", _schedule_e, non_negative=("rental_income", "rental_expenses")),
    FormTemplate("8949", _form_8949),
)


class FormGenerationService(BaseService):
    """Default ``FormGenerator`` built on a table of ``FormTemplate``s."""

    def __init__(self, config=None, templates: Iterable[FormTemplate] = DEFAULT_TEMPLATES) -> None:
        super().__init__(config)
        self.templates = {template.form_type: template for template in templates}

    async def generate_form(
        self, form_type: str, data: Dict[str, Any]
    ) -> ProcessingResult[TaxFormData]:
        async def _generate() -> TaxFormData:
            self.validate_required(data, ["client_id"])
            template = self._template(form_type)
            form = TaxFormData(form_type=form_type, fields=template.build(data))
            form.validation = template.validate(form)
            self._log(
                logging.INFO,
                f"Generated {form_type} for client {data['client_id']}",
                {"valid": form.validation.is_valid, "errors": form.validation.errors},
            )
            return form

        return await self.execute_with_retry(_generate, "generate_form")

    async def validate_form(self, form: TaxFormData) -> ProcessingResult[bool]:
        async def _validate() -> bool:
            template = self.templates.get(form.form_type)
            if template is None:
                return False
            return template.validate(form).is_valid

        return await self.execute_with_retry(_validate, "validate_form")

    async def fill_form(self, template: str, data: Dict[str, Any]) -> ProcessingResult[bytes]:
        """Render ``template`` as a plain-text form document."""

        async def _fill() -> bytes:
            self._template(template)
            lines = [f"FORM {template}"]
            lines.extend(f"{key}: {data[key]}" for key in sorted(data))
            return ("\n".join(lines) + "\n").encode("utf-8")

        return await self.execute_with_retry(_fill, "fill_form")

    def get_available_form_types(self) -> List[str]:
        return list(self.templates)

    async def get_form_requirements(self, form_type: str) -> ProcessingResult[List[str]]:
        template = self.templates.get(form_type)
        if template is None:
            return ProcessingResult(
                success=False,
                error=f"Form template not found: {form_type}",
                metadata={"code": TEMPLATE_NOT_FOUND},
            )
        return ProcessingResult(success=True, data=list(template.required_fields))

    def _template(self, form_type: str) -> FormTemplate:
        template = self.templates.get(form_type)
        if template is None:
            raise TemplateNotFoundError(
                f"Form template not found for type: {form_type}",
                {"form_type": form_type, "available_types": list(self.templates)},
            )
        return template

    async def perform_health_check(self) -> Dict[str, Any]:
        return {"available_templates": list(self.templates), "renderer": "text"}
