"""
Integration tests for the export pipeline.

Search and file downloads are both mocked with responses, so these run
the real client, orchestrator and assembler together.
"""

import io
import threading
import zipfile

import pytest
import responses

from conftest import CATALOG_URL, FILES_URL, PDF_BYTES, PNG_BYTES, TOKEN, make_api_record
from docbundle.archive import ArchiveAssembler, CollisionPolicy
from docbundle.catalog_client import CatalogClient
from docbundle.retrieval import RetrievalFailure, RetrievalOrchestrator
from docbundle.schemas import SearchFilter
from docbundle.services import ExportPipeline, PipelineError, PipelineErrorKind

SEARCH_URL = f"{CATALOG_URL}/searchDocumentEntry"


@pytest.fixture
def pipeline(tmp_path) -> ExportPipeline:
    return ExportPipeline(
        catalog=CatalogClient(CATALOG_URL),
        orchestrator=RetrievalOrchestrator(concurrency=2),
        assembler=ArchiveAssembler(),
        staging_root=tmp_path / "staging",
    )


def _add_search(items):
    responses.add(responses.POST, SEARCH_URL, json={"data": items}, status=200)


def _add_file(name, body=PDF_BYTES, status=200):
    responses.add(responses.GET, f"{FILES_URL}/{name}", body=body, status=status)


def _names(data: bytes) -> list[str]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return sorted(zf.namelist())


class TestExportAll:
    """Tests for ExportPipeline.export_all."""

    @responses.activate
    def test_full_export(self, pipeline, api_records):
        _add_search(api_records)
        _add_file("invoice_jan.pdf")
        _add_file("receipt.png", body=PNG_BYTES)
        _add_file("contract.pdf")

        result = pipeline.export_all(SearchFilter(), TOKEN)

        assert result.archive.filename == "documents.zip"
        assert _names(result.archive.data) == [
            "contract.pdf",
            "invoice_jan.pdf",
            "receipt.png",
        ]
        assert result.skipped == []
        assert result.total == 3
        assert result.exported == 3
        assert not result.partial

    @responses.activate
    def test_nothing_to_export_makes_no_fetch(self, pipeline):
        _add_search([])

        with pytest.raises(PipelineError) as exc_info:
            pipeline.export_all(SearchFilter(), TOKEN)

        assert exc_info.value.kind == PipelineErrorKind.NOTHING_TO_EXPORT
        assert len(responses.calls) == 1

    @responses.activate
    def test_search_failure(self, pipeline):
        responses.add(responses.POST, SEARCH_URL, body="Unauthorized", status=401)

        with pytest.raises(PipelineError) as exc_info:
            pipeline.export_all(SearchFilter(), TOKEN)

        assert exc_info.value.kind == PipelineErrorKind.SEARCH_FAILED
        assert exc_info.value.detail == "Unauthorized"

    @responses.activate
    def test_all_downloads_failed_lists_every_id(self, pipeline, api_records):
        _add_search(api_records)
        _add_file("invoice_jan.pdf", status=404)
        _add_file("receipt.png", status=500)
        _add_file("contract.pdf", status=403)

        with pytest.raises(PipelineError) as exc_info:
            pipeline.export_all(SearchFilter(), TOKEN)

        error = exc_info.value
        assert error.kind == PipelineErrorKind.ALL_DOWNLOADS_FAILED
        assert sorted(r.document_id for r in error.reasons) == ["101", "102", "103"]

    @responses.activate
    def test_partial_failure_still_exports(self, pipeline, api_records):
        """One of three fails: archive has two entries, one skip reported."""
        _add_search(api_records)
        _add_file("invoice_jan.pdf")
        _add_file("receipt.png", status=404)
        _add_file("contract.pdf")

        result = pipeline.export_all(SearchFilter(), TOKEN)

        assert _names(result.archive.data) == ["contract.pdf", "invoice_jan.pdf"]
        assert len(result.skipped) == 1
        assert result.skipped[0].document_id == "102"
        assert "404" in result.skipped[0].reason
        assert result.exported == 2
        assert result.partial

    @responses.activate
    def test_duplicate_filenames_are_suffixed(self, pipeline):
        _add_search(
            [
                make_api_record(1, "2024/scan.pdf"),
                make_api_record(2, "2023/scan.pdf"),
            ]
        )
        _add_file("2024/scan.pdf", body=b"new")
        _add_file("2023/scan.pdf", body=b"old")

        result = pipeline.export_all(SearchFilter(), TOKEN)

        with zipfile.ZipFile(io.BytesIO(result.archive.data)) as zf:
            assert zf.read("scan.pdf") == b"new"
            assert zf.read("scan (1).pdf") == b"old"

    @responses.activate
    def test_encoded_separators_stay_inside_archive(self, pipeline):
        """Names with %2F are staged and archived as flat, safe entries."""
        _add_search(
            [
                make_api_record(1, "a%2Fb.pdf"),
                make_api_record(2, "x/..%2Fevil.pdf"),
                make_api_record(3, "c.pdf"),
            ]
        )
        _add_file("a%2Fb.pdf", body=b"ab")
        _add_file("x/..%2Fevil.pdf", body=b"evil")
        _add_file("c.pdf", body=b"c")

        result = pipeline.export_all(SearchFilter(), TOKEN)

        assert result.skipped == []
        with zipfile.ZipFile(io.BytesIO(result.archive.data)) as zf:
            assert sorted(zf.namelist()) == [".._evil.pdf", "a_b.pdf", "c.pdf"]
            assert zf.read("a_b.pdf") == b"ab"
            assert zf.read(".._evil.pdf") == b"evil"

    @responses.activate
    def test_overwrite_policy(self, tmp_path):
        _add_search(
            [
                make_api_record(1, "2024/scan.pdf"),
                make_api_record(2, "2023/scan.pdf"),
            ]
        )
        _add_file("2024/scan.pdf", body=b"new")
        _add_file("2023/scan.pdf", body=b"old")
        pipeline = ExportPipeline(
            CatalogClient(CATALOG_URL),
            RetrievalOrchestrator(concurrency=1),
            ArchiveAssembler(collision_policy=CollisionPolicy.OVERWRITE),
        )

        result = pipeline.export_all(SearchFilter(), TOKEN)

        with zipfile.ZipFile(io.BytesIO(result.archive.data)) as zf:
            assert zf.namelist() == ["scan.pdf"]
            assert zf.read("scan.pdf") == b"old"

    @responses.activate
    def test_staging_removed_after_export(self, pipeline, api_records, tmp_path):
        _add_search(api_records)
        _add_file("invoice_jan.pdf")
        _add_file("receipt.png", status=404)
        _add_file("contract.pdf")

        pipeline.export_all(SearchFilter(), TOKEN)

        assert list((tmp_path / "staging").iterdir()) == []

    @responses.activate
    def test_cancel_leaves_no_archive_or_files(self, api_records, tmp_path):
        cancel = threading.Event()

        def cancel_on_request(request):
            cancel.set()
            return (200, {}, PNG_BYTES)

        _add_search(api_records)
        _add_file("invoice_jan.pdf")
        responses.add_callback(
            responses.GET, f"{FILES_URL}/receipt.png", callback=cancel_on_request
        )
        _add_file("contract.pdf")
        pipeline = ExportPipeline(
            CatalogClient(CATALOG_URL),
            RetrievalOrchestrator(concurrency=1),
            ArchiveAssembler(),
            staging_root=tmp_path,
        )

        with pytest.raises(PipelineError) as exc_info:
            pipeline.export_all(SearchFilter(), TOKEN, cancel_event=cancel)

        assert exc_info.value.kind == PipelineErrorKind.CANCELLED
        assert list(tmp_path.iterdir()) == []


class TestDownloadOne:
    """Tests for the single-document download."""

    @responses.activate
    def test_download_one(self, pipeline, records):
        _add_file("receipt.png", body=PNG_BYTES)

        outcome = pipeline.download_one(records[1], TOKEN)

        assert outcome.filename == "receipt.png"
        assert outcome.read_payload() == PNG_BYTES

    @responses.activate
    def test_download_one_failure(self, pipeline, records):
        _add_file("receipt.png", status=404)

        with pytest.raises(RetrievalFailure) as exc_info:
            pipeline.download_one(records[1], TOKEN)

        assert exc_info.value.document_id == "102"
