"""Test fixtures and utilities."""

import pytest

from docbundle.schemas import DocumentRecord

CATALOG_URL = "http://catalog.test/api/documentManagement"
FILES_URL = "http://files.test/uploads"
TOKEN = "test-token-12345"

PDF_BYTES = b"%PDF-1.4 sample pdf content"
PNG_BYTES = b"\x89PNG\r\n\x1a\n sample image content"


def make_api_record(doc_id: int, filename: str, **overrides) -> dict:
    """Build a search result item as the catalog service returns it."""
    item = {
        "id": doc_id,
        "major_head": "Professional",
        "minor_head": "Accounts",
        "file_path": f"{FILES_URL}/{filename}",
        "document_date": "12-02-2024",
        "document_remarks": f"Remarks for {doc_id}",
        "tags": [{"tag_name": "invoice"}, {"tag_name": "2024"}],
        "uploaded_by": "42",
    }
    item.update(overrides)
    return item


@pytest.fixture
def api_records() -> list[dict]:
    """Three search result items with distinct filenames."""
    return [
        make_api_record(101, "invoice_jan.pdf"),
        make_api_record(102, "receipt.png"),
        make_api_record(103, "contract.pdf"),
    ]


@pytest.fixture
def records(api_records) -> list[DocumentRecord]:
    """DocumentRecords built from api_records."""
    return [DocumentRecord.from_api_response(item) for item in api_records]
