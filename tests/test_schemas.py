"""Tests for document records, outcomes and upload entries."""

from datetime import date

import pytest

from conftest import FILES_URL, make_api_record
from docbundle.schemas import (
    Category,
    DocumentRecord,
    MalformedRecordError,
    OutcomeStatus,
    RetrievalOutcome,
    ValidationError,
    ValidationErrorKind,
    build_upload_entry,
    filename_from_path,
    partition_outcomes,
)


class TestDocumentRecord:
    """Tests for DocumentRecord.from_api_response."""

    def test_maps_service_fields(self):
        record = DocumentRecord.from_api_response(make_api_record(7, "scan.pdf"))

        assert record.id == "7"
        assert record.remote_path == f"{FILES_URL}/scan.pdf"
        assert record.category == "Professional"
        assert record.subcategory == "Accounts"
        assert record.document_date == "12-02-2024"
        assert record.remarks == "Remarks for 7"
        assert record.tags == ("invoice", "2024")
        assert record.filename == "scan.pdf"

    def test_optional_fields_default_to_empty(self):
        record = DocumentRecord.from_api_response(
            {"id": 1, "file_path": "http://x/a.pdf"}
        )
        assert record.subcategory == ""
        assert record.remarks == ""
        assert record.tags == ()

    @pytest.mark.parametrize("missing", ["id", "file_path"])
    def test_missing_required_field(self, missing):
        item = make_api_record(1, "a.pdf")
        del item[missing]
        with pytest.raises(MalformedRecordError):
            DocumentRecord.from_api_response(item)

    def test_non_object_rejected(self):
        with pytest.raises(MalformedRecordError):
            DocumentRecord.from_api_response(["not", "a", "record"])

    def test_bad_tags_rejected(self):
        with pytest.raises(MalformedRecordError):
            DocumentRecord.from_api_response(make_api_record(1, "a.pdf", tags="tax"))
        with pytest.raises(MalformedRecordError):
            DocumentRecord.from_api_response(make_api_record(1, "a.pdf", tags=[{}]))


class TestFilenameFromPath:
    """Tests for filename derivation."""

    def test_final_segment(self):
        assert filename_from_path("http://x/a/b/report.pdf") == "report.pdf"

    def test_query_stripped_and_decoded(self):
        assert filename_from_path("http://x/my%20scan.png?sig=abc") == "my scan.png"

    def test_plain_path(self):
        assert filename_from_path("uploads/2024/photo.jpg") == "photo.jpg"

    def test_fallback_for_empty_segment(self):
        assert filename_from_path("http://x/", fallback="document_9") == "document_9"

    def test_encoded_slash_stays_in_name(self):
        assert filename_from_path("http://x/files/a%2Fb.pdf") == "a_b.pdf"

    def test_encoded_parent_reference_cannot_escape(self):
        name = filename_from_path("http://x/files/..%2Fevil.pdf")
        assert name == ".._evil.pdf"
        assert "/" not in name

    def test_encoded_backslash_and_nul_replaced(self):
        assert filename_from_path("http://x/a%5Cb%00c.pdf") == "a_b_c.pdf"

    def test_encoded_dot_dot_falls_back(self):
        assert filename_from_path("http://x/files/%2E%2E", fallback="doc") == "doc"

    def test_record_uses_id_fallback(self):
        record = DocumentRecord(id="9", remote_path="http://x/")
        assert record.filename == "document_9"


class TestRetrievalOutcome:
    """Tests for outcome helpers."""

    def test_success_payload_in_memory(self):
        outcome = RetrievalOutcome.success("1", "a.pdf", payload=b"data")
        assert outcome.ok
        assert outcome.status == OutcomeStatus.SUCCESS
        assert outcome.read_payload() == b"data"

    def test_success_payload_staged(self, tmp_path):
        staged = tmp_path / "0000_a.pdf"
        staged.write_bytes(b"staged")
        outcome = RetrievalOutcome.success("1", "a.pdf", staged_path=staged)

        assert outcome.read_payload() == b"staged"
        entry = outcome.to_archive_entry()
        assert entry.name == "a.pdf"
        assert entry.source_path == staged
        assert entry.read() == b"staged"

    def test_failure_has_no_payload(self):
        outcome = RetrievalOutcome.failure("2", "HTTP 404 Not Found")
        assert not outcome.ok
        with pytest.raises(ValueError):
            outcome.read_payload()
        with pytest.raises(ValueError):
            outcome.to_archive_entry()

    def test_partition_keeps_order(self):
        outcomes = [
            RetrievalOutcome.success("1", "a", payload=b""),
            RetrievalOutcome.failure("2", "boom"),
            RetrievalOutcome.success("3", "c", payload=b""),
        ]
        successes, failures = partition_outcomes(outcomes)
        assert [o.document_id for o in successes] == ["1", "3"]
        assert [o.document_id for o in failures] == ["2"]


class TestUploadEntry:
    """Tests for upload metadata validation."""

    def test_valid_entry_wire_shape(self):
        entry = build_upload_entry(
            document_date="2024-02-12",
            category="Personal",
            subcategory="Tom",
            tags=["school", "school", "fees"],
            user_id=42,
            remarks="  Term 2  ",
        )

        assert entry.document_date == date(2024, 2, 12)
        assert entry.category == Category.PERSONAL
        assert entry.to_wire() == {
            "major_head": "Personal",
            "minor_head": "Tom",
            "document_date": "12-02-2024",
            "document_remarks": "Term 2",
            "tags": [{"tag_name": "school"}, {"tag_name": "fees"}],
            "user_id": "42",
        }

    def test_missing_fields_listed(self):
        with pytest.raises(ValidationError) as exc_info:
            build_upload_entry(
                document_date=None,
                category="",
                subcategory="",
                tags=[],
                user_id=None,
            )
        assert exc_info.value.kind == ValidationErrorKind.MISSING_FIELD
        for name in ("document_date", "category", "subcategory", "tags", "user_id"):
            assert name in exc_info.value.detail

    def test_subcategory_validated(self):
        with pytest.raises(ValidationError) as exc_info:
            build_upload_entry(
                document_date="2024-02-12",
                category="Professional",
                subcategory="John",
                tags=["x"],
                user_id="1",
            )
        assert exc_info.value.kind == ValidationErrorKind.INVALID_SUBCATEGORY
