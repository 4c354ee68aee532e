"""Search-then-bulk-export orchestration.

This is the single entry point for "export everything matching these
filters as one archive":
1. Search the catalog
2. Refuse to export an empty result set
3. Retrieve every result concurrently into a private staging directory
4. Archive the successes, report the failures as skipped documents
5. Remove the staging directory, whatever happened

Partial failure is not fatal: the archive contains the successful subset
and ExportResult.skipped lists what was left out.
"""

from __future__ import annotations

import logging
import tempfile
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from ..catalog_client.client import ApiError
from ..errors import DocbundleError
from ..retrieval.orchestrator import RetrievalCancelled, RetrievalFailure
from ..schemas.outcome import RetrievalOutcome, SkippedDocument, partition_outcomes

if TYPE_CHECKING:
    from ..archive.assembler import ArchiveAssembler, AssembledArchive
    from ..catalog_client.client import CatalogClient
    from ..retrieval.orchestrator import RetrievalOrchestrator
    from ..schemas.document import DocumentRecord
    from ..schemas.search_filter import SearchFilter

logger = logging.getLogger(__name__)

STAGING_PREFIX = "docbundle-export-"


class PipelineErrorKind(str, Enum):
    """Reasons an export produced no archive."""

    SEARCH_FAILED = "search_failed"
    NOTHING_TO_EXPORT = "nothing_to_export"
    ALL_DOWNLOADS_FAILED = "all_downloads_failed"
    CANCELLED = "cancelled"


class PipelineError(DocbundleError):
    """An export failed as a whole."""

    def __init__(
        self,
        kind: PipelineErrorKind,
        detail: str,
        reasons: list[SkippedDocument] | None = None,
    ):
        self.reasons = reasons or []
        super().__init__(kind, detail)


@dataclass
class ExportResult:
    """A finished export: the archive plus whatever was skipped."""

    archive: AssembledArchive
    skipped: list[SkippedDocument] = field(default_factory=list)
    total: int = 0

    @property
    def exported(self) -> int:
        return self.total - len(self.skipped)

    @property
    def partial(self) -> bool:
        return bool(self.skipped)


def skipped_from(failures: list[RetrievalOutcome]) -> list[SkippedDocument]:
    return [
        SkippedDocument(document_id=o.document_id, reason=o.reason or "unknown error")
        for o in failures
    ]


class ExportPipeline:
    """
    Composes search, retrieval and archiving into one export call.

    Usage:
        pipeline = ExportPipeline(catalog, orchestrator, assembler)
        result = pipeline.export_all(search_filter, token)
        Path(result.archive.filename).write_bytes(result.archive.data)
    """

    def __init__(
        self,
        catalog: CatalogClient,
        orchestrator: RetrievalOrchestrator,
        assembler: ArchiveAssembler,
        staging_root: Path | None = None,
    ) -> None:
        """
        Args:
            catalog: Catalog client used for the search step
            orchestrator: Retrieval orchestrator for the downloads
            assembler: Archive assembler for the final ZIP
            staging_root: Parent directory for per-export staging
                directories (system temp dir if None)
        """
        self.catalog = catalog
        self.orchestrator = orchestrator
        self.assembler = assembler
        self.staging_root = staging_root

    def export_all(
        self,
        search_filter: SearchFilter,
        token: str,
        cancel_event: threading.Event | None = None,
    ) -> ExportResult:
        """
        Search, then export every match as one archive.

        Raises:
            PipelineError: SEARCH_FAILED, NOTHING_TO_EXPORT,
                ALL_DOWNLOADS_FAILED or CANCELLED
            AssemblyError: if the archive cannot be built
        """
        try:
            records = self.catalog.search(search_filter, token)
        except ApiError as e:
            raise PipelineError(PipelineErrorKind.SEARCH_FAILED, e.detail) from e

        return self.export_records(records, token, cancel_event=cancel_event)

    def export_records(
        self,
        records: list[DocumentRecord],
        token: str,
        cancel_event: threading.Event | None = None,
    ) -> ExportResult:
        """Export an already-fetched result set (steps 2-5 of export_all)."""
        if not records:
            raise PipelineError(
                PipelineErrorKind.NOTHING_TO_EXPORT, "The search returned no documents"
            )

        if self.staging_root is not None:
            self.staging_root.mkdir(parents=True, exist_ok=True)

        # Private to this call: concurrent exports never share staging
        with tempfile.TemporaryDirectory(
            prefix=STAGING_PREFIX, dir=self.staging_root
        ) as staging:
            try:
                outcomes = self.orchestrator.retrieve_all(
                    records,
                    token,
                    staging_dir=Path(staging),
                    cancel_event=cancel_event,
                )
            except RetrievalCancelled as e:
                raise PipelineError(PipelineErrorKind.CANCELLED, e.detail) from e

            successes, failures = partition_outcomes(outcomes)
            skipped = skipped_from(failures)

            if not successes:
                ids = ", ".join(s.document_id for s in skipped)
                raise PipelineError(
                    PipelineErrorKind.ALL_DOWNLOADS_FAILED,
                    f"All {len(records)} download(s) failed: {ids}",
                    reasons=skipped,
                )

            for item in skipped:
                logger.warning(f"Skipping document {item.document_id}: {item.reason}")

            # Archive is built while the staged files still exist
            archive = self.assembler.assemble(
                outcome.to_archive_entry() for outcome in successes
            )

        return ExportResult(archive=archive, skipped=skipped, total=len(records))

    def download_one(self, record: DocumentRecord, token: str) -> RetrievalOutcome:
        """
        Ad-hoc single download, kept in memory.

        Raises:
            RetrievalFailure: if the document could not be fetched
        """
        outcome = self.orchestrator.retrieve_one(record, token)
        if not outcome.ok:
            raise RetrievalFailure(outcome.document_id, outcome.reason or "unknown error")
        return outcome
