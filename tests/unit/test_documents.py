import pytest

from taxflow.contracts import DocumentData
from taxflow.services import DocumentProcessingService
from taxflow.services.documents import parse_fields, parse_value


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("$1,234.50", 1234.5),
        ("85000", 85000.0),
        ("(250.00)", -250.0),
        ("-40", -40.0),
        ("Acme Corp", "Acme Corp"),
        ("123-45-6789", "123-45-6789"),
        (",", ","),
        ("$,", "$,"),
    ],
)
def test_parse_value(raw, expected):
    assert parse_value(raw) == expected


def test_parse_fields_normalises_labels():
    content = "Employer Name: Acme\nBox 1 Wages: $50,000\nnot a field\nFederal tax withheld: 7,500.25"
    assert parse_fields(content) == {
        "employer_name": "Acme",
        "box_1_wages": 50000.0,
        "federal_tax_withheld": 7500.25,
    }


def test_identify_document_type():
    service = DocumentProcessingService()

    def identify(doc_type, filename=""):
        return service.identify_document_type(
            DocumentData(id="d", type=doc_type, metadata={"filename": filename})
        )

    assert identify("1098") == "1098"
    assert identify("upload", "2024_W2_acme.pdf") == "W-2"
    assert identify("upload", "brokerage-1099-B.csv") == "1099-B"
    assert identify("upload", "receipt-office-chair.jpg") == "Receipt"
    assert identify("upload", "notes.txt") == "Unknown"


@pytest.mark.asyncio
async def test_process_document_extracts_and_categorises():
    service = DocumentProcessingService()
    document = DocumentData(
        id="r1",
        type="Receipt",
        content="Vendor: Clinic\nAmount: $300\nDeduction type: medical",
        metadata={"mime_type": "image/png"},
    )

    result = await service.process_document(document)

    assert result.success
    processed = result.data
    assert processed.extracted_data["amount"] == 300.0
    assert processed.extracted_data["deduction_type"] == "medical"
    assert processed.extracted_data["category"] == "deduction"
    assert processed.extracted_data["amounts"] == {"amount": 300.0}
    assert processed.extracted_data["total"] == 300.0
    assert processed.metadata["requires_ocr"] is True
    assert processed.metadata["mime_type"] == "image/png"
    assert document.extracted_data is None


@pytest.mark.asyncio
async def test_process_document_requires_content(backoff_calls):
    result = await DocumentProcessingService().process_document(
        DocumentData(id="d", type="W-2")
    )

    assert not result.success
    assert result.code == "VALIDATION_ERROR"
    assert result.metadata["details"] == {"missing": ["content"]}
    assert backoff_calls == []


@pytest.mark.asyncio
async def test_validate_document_checks_required_amounts(backoff_calls):
    service = DocumentProcessingService()

    ok = await service.validate_document(DocumentData(id="w2", type="W-2", content="Wages: 100"))
    assert ok.success and ok.data is True

    missing = await service.validate_document(
        DocumentData(id="w2", type="W-2", content="Employer: Acme")
    )
    assert not missing.success
    assert missing.metadata["details"]["missing"] == ["wages"]


@pytest.mark.asyncio
async def test_default_timeout_is_longer_for_documents():
    service = DocumentProcessingService()
    assert service.config.timeout_ms == 60_000

    health = await service.health_check()
    assert health.success
    assert "W-2" in health.data["details"]["extractors"]


@pytest.mark.asyncio
async def test_stray_punctuation_values_do_not_fail_extraction(backoff_calls):
    result = await DocumentProcessingService().process_document(
        DocumentData(id="w2", type="W-2", content="Wages: 50,000\nNotes: ,")
    )

    assert result.success
    assert result.data.extracted_data["wages"] == 50000.0
    assert result.data.extracted_data["notes"] == ","
    assert result.data.extracted_data["amounts"] == {"wages": 50000.0}
    assert backoff_calls == []


@pytest.mark.asyncio
async def test_unparseable_content_fails_the_extraction_step(backoff_calls):
    result = await DocumentProcessingService().process_document(
        DocumentData(id="scan", type="W-2", content="%PDF-1.7 binary blob")
    )

    assert not result.success
    assert result.code == "PROCESSING_ERROR"
    assert result.metadata["details"]["step"] == "extraction"
    assert result.metadata["details"]["document_id"] == "scan"
    assert result.metadata["attempts"] == 1
    assert backoff_calls == []
